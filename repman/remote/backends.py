"""
Remote Backends Module - Synchronizes local repository mirrors with their servers

The set of backends is closed and selected by the scheme of the server URL:

    file://   LocalBackend        the repository directory is used in place
    rsync://  RsyncBackend        rsync over ssh (user@host:/path)
    s3://     S3Backend           s3cmd sync
    gs://     GCSBackend          gsutil rsync

Download replaces the local mirror with the remote state, upload replaces
the remote state with the local mirror. Both delete files missing on the
source side.
"""

import logging
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlsplit

from repman import config
from repman.common.errors import ConfigurationError, MissingDependency, RemoteSyncError, UnsupportedScheme
from repman.common.shell_executor import ShellExecutor

logger = logging.getLogger(__name__)


class RemoteBackend:
    """Base class of all backends"""

    scheme = ""
    required_tool: Optional[str] = None

    def __init__(self, url: str, local_dir: Path, shell_executor: Optional[ShellExecutor] = None):
        self.url = url
        self.local_dir = Path(local_dir)
        self.shell = shell_executor or ShellExecutor()

    @property
    def is_remote(self) -> bool:
        return True

    def download_command(self) -> List[str]:
        raise NotImplementedError

    def upload_command(self) -> List[str]:
        raise NotImplementedError

    def download(self):
        """Replace the local mirror by the remote repository"""
        logger.info(f"Downloading repository from {self.url} ... (this may take a while)")
        self._sync(self.download_command(), "download from")

    def upload(self):
        """Replace the remote repository by the local mirror"""
        logger.info(f"Uploading repository to {self.url} ... (this may take a while)")
        self._sync(self.upload_command(), "upload to")

    def _sync(self, cmd: List[str], direction: str):
        if self.required_tool and not self.shell.is_available(self.required_tool):
            raise MissingDependency(self.required_tool, f"to {direction} {self.url}")

        try:
            result = self.shell.run_command(cmd, capture=True, check=False)
        except OSError as e:
            raise RemoteSyncError(f"Cannot {direction} {self.url}") from e

        if result.returncode != 0:
            raise RemoteSyncError(
                f"Cannot {direction} {self.url}: {(result.stderr or '').strip()}",
                {"exit_code": result.returncode}
            )
        logger.info("✅ Done")

    def __repr__(self):
        return f"{self.__class__.__name__}(url={self.url!r}, local_dir={str(self.local_dir)!r})"


class LocalBackend(RemoteBackend):
    """Repository in a local directory, download and upload do nothing"""

    scheme = "file"

    @property
    def is_remote(self) -> bool:
        return False

    def download(self):
        logger.debug(f"{self.local_dir} is local, nothing to download")

    def upload(self):
        logger.debug(f"{self.local_dir} is local, nothing to upload")


class RsyncBackend(RemoteBackend):
    """Repository on a host reachable via ssh"""

    scheme = "rsync"
    required_tool = "rsync"

    def __init__(self, url: str, local_dir: Path, shell_executor: Optional[ShellExecutor] = None):
        super().__init__(url, local_dir, shell_executor)
        parts = urlsplit(url)
        if not parts.hostname:
            raise ConfigurationError(f"Server URL '{url}' has no host")
        user = f"{parts.username}@" if parts.username else ""
        self.ssh_dir = f"{user}{parts.hostname}:{parts.path}"

    def download_command(self) -> List[str]:
        return ["rsync"] + config.RSYNC_FLAGS + [f"{self.ssh_dir.rstrip('/')}/", str(self.local_dir)]

    def upload_command(self) -> List[str]:
        return ["rsync"] + config.RSYNC_FLAGS + [f"{self.local_dir}/", self.ssh_dir]


class S3Backend(RemoteBackend):
    """Repository in an S3 bucket"""

    scheme = "s3"
    required_tool = "s3cmd"

    def download_command(self) -> List[str]:
        return ["s3cmd"] + config.S3CMD_DOWNLOAD_FLAGS + [f"{self.url.rstrip('/')}/", f"{self.local_dir}/"]

    def upload_command(self) -> List[str]:
        return ["s3cmd"] + config.S3CMD_UPLOAD_FLAGS + [f"{self.local_dir}/", f"{self.url.rstrip('/')}/"]


class GCSBackend(RemoteBackend):
    """Repository in a Google Cloud Storage bucket"""

    scheme = "gs"
    required_tool = "gsutil"

    def download_command(self) -> List[str]:
        return ["gsutil"] + config.GSUTIL_FLAGS + [self.url.rstrip('/'), str(self.local_dir)]

    def upload_command(self) -> List[str]:
        return ["gsutil"] + config.GSUTIL_FLAGS + [str(self.local_dir), self.url.rstrip('/')]


BACKENDS = {backend.scheme: backend for backend in (LocalBackend, RsyncBackend, S3Backend, GCSBackend)}


def local_dir_for(url: str, cache_dir: Path) -> Path:
    """
    Local directory of a repository: the URL path for file:// servers,
    cache_dir for everything else
    """
    parts = urlsplit(url)
    if parts.scheme == LocalBackend.scheme:
        return Path(parts.path)
    return Path(cache_dir)


def create_backend(url: str, local_dir: Path, shell_executor: Optional[ShellExecutor] = None) -> RemoteBackend:
    """
    Backend for a server URL

    Raises:
        UnsupportedScheme: no backend handles the URL scheme
    """
    scheme = urlsplit(url).scheme
    try:
        backend_cls = BACKENDS[scheme]
    except KeyError:
        raise UnsupportedScheme(scheme, url) from None
    return backend_cls(url, local_dir, shell_executor)
