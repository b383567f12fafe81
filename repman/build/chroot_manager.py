"""
Chroot Manager Module - Creates, updates and removes the build chroot of a repository
"""

import os
import re
import shutil
import logging
import subprocess
from pathlib import Path
from typing import Optional

from repman import config
from repman.common.errors import BuildFailure
from repman.common.paths import ensure_dir
from repman.common.shell_executor import ShellExecutor

logger = logging.getLogger(__name__)

# distcc enabled in an uncommented BUILDENV array
DISTCC_ENABLED_RE = re.compile(r"\n[^#\n]*BUILDENV *= *\((?:[^)]*\s)?distcc\b")


class ChrootManager:
    """Handles the chroot of one repository"""

    def __init__(self, repo_name: str, db_name: str, repo_dir: Path, chroot_dir: Path, config_dir: Path,
                 shell_executor: Optional[ShellExecutor] = None):
        self.repo_name = repo_name
        self.db_name = db_name
        self.repo_dir = Path(repo_dir)
        self.chroot_dir = Path(chroot_dir)
        self.config_dir = Path(config_dir)
        self.shell = shell_executor or ShellExecutor()

    @property
    def root_dir(self) -> Path:
        return self.chroot_dir / config.CHROOT_ROOT_DIR_NAME

    def exists(self) -> bool:
        return self.root_dir.is_dir()

    def prepare(self, pacman_conf: Path, makepkg_conf: Path, work_dir: Path):
        """Update an existing chroot or create a new one"""
        if self.exists():
            self.update()
        else:
            self.create(pacman_conf, makepkg_conf, work_dir)

    def update(self):
        logger.info(f"Updating chroot of repository {self.repo_name} ...")
        self._run(
            ["arch-nspawn", self.root_dir, f"--bind-ro={self.repo_dir}", "pacman", "-Syu", "--noconfirm"],
            "Cannot update chroot"
        )

    def create(self, pacman_conf: Path, makepkg_conf: Path, work_dir: Path):
        """
        Create a new chroot with base-devel installed

        The chroot uses a copy of pacman_conf that points to the local
        repository directory, so packages of the repository can satisfy
        build dependencies of other packages.
        """
        ensure_dir(self.chroot_dir)
        chroot_pacman_conf = self.write_pacman_conf(pacman_conf, Path(work_dir) / "pacman.conf")

        packages = list(config.CHROOT_BASE_PACKAGES)
        if self.distcc_enabled(makepkg_conf):
            if not self.shell.is_available("distcc"):
                logger.warning("⚠️ distcc is enabled in makepkg.conf but it is not installed on the host")
            packages.append(config.DISTCC_PACKAGE)

        logger.info(f"Creating chroot of repository {self.repo_name} ...")
        self._run(
            ["mkarchroot", "-C", chroot_pacman_conf, "-M", makepkg_conf, self.root_dir] + packages,
            "Cannot create chroot"
        )

        script = self.adjust_script()
        if script is not None:
            logger.info(f"Adjusting chroot with {script} ...")
            self._run([script, self.repo_name, self.root_dir], "Cannot adjust chroot")

    def write_pacman_conf(self, template: Path, target: Path) -> Path:
        """
        Copy template to target, replacing the section of the repository DB
        by one that points to the local repository directory
        """
        section_header = f"[{self.db_name}]"
        lines = []
        skipping = False
        for line in Path(template).read_text().splitlines():
            stripped = line.strip()
            if stripped.startswith("[") and stripped.endswith("]"):
                skipping = stripped == section_header
            if not skipping:
                lines.append(line)

        content = "\n".join(lines)
        content += f"\n\n{section_header}\nSigLevel = Optional TrustAll\nServer = file://{self.repo_dir}\n"
        Path(target).write_text(content)
        return Path(target)

    @staticmethod
    def distcc_enabled(makepkg_conf: Path) -> bool:
        try:
            content = Path(makepkg_conf).read_text()
        except OSError as e:
            logger.warning(f"⚠️ Cannot read {makepkg_conf}: {e}")
            return False
        return bool(DISTCC_ENABLED_RE.search("\n" + content))

    def adjust_script(self) -> Optional[Path]:
        """Executable script that adjusts a freshly created chroot, if configured"""
        for candidate in (self.config_dir / f"{config.ADJUST_CHROOT_SCRIPT}-{self.repo_name}",
                          self.config_dir / config.ADJUST_CHROOT_SCRIPT):
            if candidate.is_file():
                if not os.access(candidate, os.X_OK):
                    logger.warning(f"⚠️ {candidate} is not executable, skipping it")
                    return None
                return candidate
        return None

    def remove(self):
        """Delete the chroot directory (needs root since the chroot belongs to root)"""
        if not self.chroot_dir.exists():
            logger.info(f"Repository {self.repo_name} has no chroot")
            return

        logger.info(f"🧹 Removing chroot of repository {self.repo_name} ...")
        if os.geteuid() == 0:
            shutil.rmtree(self.chroot_dir)
        elif self.shell.is_available("sudo"):
            self._run(["sudo", "rm", "-rdf", self.chroot_dir], "Cannot remove chroot")
        else:
            self._run(["su", "root", "-c", f"rm -rdf {self.chroot_dir}"], "Cannot remove chroot")

    def _run(self, cmd, message: str):
        try:
            self.shell.run_command(cmd, capture=False, check=True, log_cmd=True)
        except subprocess.CalledProcessError as e:
            raise BuildFailure(f"{message} of repository {self.repo_name} (exit code {e.returncode})") from e
        except OSError as e:
            raise BuildFailure(f"{message} of repository {self.repo_name}") from e
