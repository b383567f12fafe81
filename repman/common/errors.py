"""
Error types raised by repman operations.

Every error derives from RepmanError so the CLI can report any failure
uniformly. Per-item failures inside a batch are logged by the caller and
do not leave the batch.
"""

from typing import Any, Dict, Optional


class RepmanError(Exception):
    """Base class for all repman errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return self.message


class ConfigurationError(RepmanError):
    """A configuration file or setting is missing or invalid."""


class UnsupportedScheme(ConfigurationError):
    """The server URL of a repository uses a scheme without a backend."""

    def __init__(self, scheme: str, url: str):
        super().__init__(
            f"Server URL '{url}' has an unsupported scheme '{scheme}'",
            {"scheme": scheme, "url": url},
        )
        self.scheme = scheme


class LockConflict(RepmanError):
    """The repository lock cannot be acquired or released."""


class RepositoryLocked(LockConflict):
    """Another process holds the repository lock."""

    def __init__(self, repo_name: str, pid: int, lock_file: str):
        super().__init__(
            f"Lock file {lock_file} exists: repository {repo_name} is locked by process {pid}",
            {"repo": repo_name, "pid": pid, "lock_file": lock_file},
        )
        self.pid = pid


class LockOwnershipMismatch(LockConflict):
    """The lock file records a process other than the current one."""


class RemoteSyncError(RepmanError):
    """Downloading or uploading a repository failed."""


class MissingDependency(RemoteSyncError):
    """A tool required for remote synchronization is not installed."""

    def __init__(self, tool: str, purpose: str):
        super().__init__(
            f"'{tool}' is required {purpose} but it is not installed",
            {"tool": tool},
        )
        self.tool = tool


class AurError(RepmanError):
    """The AUR RPC interface could not be queried."""


class VersionComparisonError(RepmanError):
    """Two package versions could not be compared."""


class BuildFailure(RepmanError):
    """Building a PKGBUILD failed."""


class NoOutputsDeclared(BuildFailure):
    """A PKGBUILD declares no package files."""


class DatabaseError(RepmanError):
    """The package database could not be read or changed."""


class SigningError(RepmanError):
    """Creating a detached signature failed."""


class SigningKeyMissing(SigningError):
    """Signing was requested but no GPG key is configured."""


class NotFoundError(RepmanError):
    """A file or package does not exist."""


class InvalidPackageFile(RepmanError):
    """A path does not follow the package file naming scheme."""


def format_error_chain(error: BaseException) -> str:
    """Join an exception with its causes into one readable line."""
    messages = []
    current: Optional[BaseException] = error
    while current is not None:
        text = str(current) or current.__class__.__name__
        if text not in messages:
            messages.append(text)
        current = current.__cause__
    return ": ".join(messages)
