"""
PKGBUILD Module - Collects PKGBUILDs and runs the build tools on them
"""

import logging
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

from repman import config
from repman.common.errors import BuildFailure
from repman.common.shell_executor import ShellExecutor

logger = logging.getLogger(__name__)

PKGBUILD_FILE_NAME = "PKGBUILD"


class PkgBuild:
    """A PKGBUILD file in its build directory"""

    def __init__(self, path: Path, shell_executor: Optional[ShellExecutor] = None):
        path = Path(path)
        if path.name != PKGBUILD_FILE_NAME:
            raise BuildFailure(f"{path} is not a {PKGBUILD_FILE_NAME}")
        if not path.is_file():
            raise BuildFailure(f"{path} does not exist")
        self.path = path.resolve()
        self.shell = shell_executor or ShellExecutor()

    @property
    def directory(self) -> Path:
        return self.path.parent

    @classmethod
    def from_dirs(cls, dirs: Iterable[Path], shell_executor: Optional[ShellExecutor] = None) -> List["PkgBuild"]:
        """
        PKGBUILDs of local build directories

        Directories that do not exist or contain no PKGBUILD are logged and skipped.
        """
        pkgbuilds = []
        for directory in dirs:
            directory = Path(directory)
            if not directory.is_dir():
                logger.error(f"Directory {directory} does not exist")
                continue
            try:
                pkgbuilds.append(cls(directory / PKGBUILD_FILE_NAME, shell_executor))
            except BuildFailure as e:
                logger.error(str(e))
        return pkgbuilds

    @classmethod
    def from_aur(cls, bases: Iterable[str], target_dir: Path,
                 shell_executor: Optional[ShellExecutor] = None) -> List["PkgBuild"]:
        """
        Clone the AUR git repositories of package bases into target_dir

        A base whose clone fails is logged and skipped.
        """
        shell = shell_executor or ShellExecutor()
        bases = list(bases)
        if not bases:
            return []
        if not shell.is_available("git"):
            raise BuildFailure("git is required to retrieve PKGBUILDs from AUR but it is not installed")

        pkgbuilds = []
        for base in bases:
            clone_dir = Path(target_dir) / base
            logger.info(f"Retrieving PKGBUILD of {base} from AUR")
            result = shell.run_command(
                ["git", "clone", config.AUR_GIT_URL.format(base=base), clone_dir],
                capture=True,
                check=False
            )
            if result.returncode != 0:
                logger.error(f"Cannot clone AUR repository of {base}: {(result.stderr or '').strip()}")
                continue
            try:
                pkgbuilds.append(cls(clone_dir / PKGBUILD_FILE_NAME, shell))
            except BuildFailure as e:
                logger.error(str(e))
        return pkgbuilds

    def _pkgdest_env(self, pkg_dir: Path) -> dict:
        return {"PKGDEST": str(pkg_dir)}

    def package_list(self, pkg_dir: Path) -> List[Path]:
        """Package files the PKGBUILD will produce (makepkg --packagelist)"""
        result = self.shell.run_command(
            ["makepkg", "--packagelist"],
            cwd=self.directory,
            capture=True,
            check=False,
            extra_env=self._pkgdest_env(pkg_dir)
        )
        if result.returncode != 0:
            raise BuildFailure(
                f"Cannot determine package files of {self.path}: {(result.stderr or '').strip()}"
            )
        return [Path(line.strip()) for line in result.stdout.splitlines() if line.strip()]

    def _build(self, cmd: List, pkg_dir: Path):
        try:
            self.shell.run_command(
                cmd,
                cwd=self.directory,
                capture=False,
                check=True,
                log_cmd=True,
                extra_env=self._pkgdest_env(pkg_dir)
            )
        except subprocess.CalledProcessError as e:
            raise BuildFailure(f"Build of {self.path} failed with exit code {e.returncode}") from e
        except OSError as e:
            raise BuildFailure(f"Cannot run {cmd[0]} for {self.path}") from e

    def build_with_makepkg(self, pkg_dir: Path, ignore_arch: bool = False):
        """Build directly on the host"""
        cmd = ["env", "-u", "SHELLOPTS", "makepkg"] + config.MAKEPKG_BUILD_FLAGS
        if ignore_arch:
            cmd.append("--ignorearch")
        self._build(cmd, pkg_dir)

    def build_with_makechrootpkg(self, pkg_dir: Path, repo_dir: Path, chroot_dir: Path,
                                 ignore_arch: bool = False):
        """Build in the repository's chroot with the local repository mounted read-only"""
        cmd = ["makechrootpkg", "-r", str(chroot_dir), "-D", str(repo_dir), "-u", "--"]
        cmd += config.MAKEPKG_BUILD_FLAGS
        if ignore_arch:
            cmd.append("--ignorearch")
        self._build(cmd, pkg_dir)

    def __repr__(self):
        return f"PkgBuild({str(self.path)!r})"
