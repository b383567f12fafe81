"""
Database manager for repository database operations
"""

import glob
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from repman import config
from repman.common.errors import DatabaseError, SigningKeyMissing
from repman.common.shell_executor import ShellExecutor
from repman.repo.db_reader import DatabaseEntry, read_database

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages the package DB of one repository via repo-add / repo-remove"""

    def __init__(self, repo_dir: Path, db_name: str, sign_db: bool = False,
                 shell_executor: Optional[ShellExecutor] = None):
        self.repo_dir = Path(repo_dir)
        self.db_name = db_name
        self.sign_db = sign_db
        self.shell = shell_executor or ShellExecutor()

    @property
    def archive_path(self) -> Path:
        return self.repo_dir / f"{self.db_name}{config.DB_ARCHIVE_SUFFIX}"

    @property
    def link_path(self) -> Path:
        return self.repo_dir / f"{self.db_name}{config.DB_LINK_SUFFIX}"

    def exists(self) -> bool:
        return self.link_path.exists()

    def is_signed(self) -> bool:
        return Path(str(self.link_path) + config.SIGNATURE_SUFFIX).exists()

    def read(self) -> Dict[str, DatabaseEntry]:
        """Package entries of the DB, empty if there is no DB yet"""
        if not self.exists():
            return {}
        return read_database(self.archive_path)

    def ensure_db(self):
        """Create an empty DB unless one exists"""
        if self.exists():
            return
        logger.info(f"Creating repository DB {self.db_name} ...")
        self._run(["repo-add", "-n", "-R", str(self.archive_path)], "Cannot create repository DB")

    def signature_files(self) -> List[Path]:
        """Signatures of the DB and files archives and their links"""
        base = glob.escape(str(self.repo_dir / self.db_name))
        found = glob.glob(f"{base}.db*{config.SIGNATURE_SUFFIX}") + glob.glob(f"{base}.files*{config.SIGNATURE_SUFFIX}")
        return sorted(Path(p) for p in found)

    def remove_signature_files(self):
        for sig_file in self.signature_files():
            sig_file.unlink()
            logger.debug(f"Removed {sig_file}")

    def _signing_args(self, gpg_key: Optional[str]) -> List[str]:
        """
        repo-add/repo-remove arguments for the configured DB signing

        Switching signing off removes the existing DB signatures, otherwise
        they would no longer match the DB.
        """
        if self.sign_db:
            if not gpg_key:
                raise SigningKeyMissing(f"Repository DB {self.db_name} shall be signed but no GPG key is configured")
            return ["--sign", "--key", gpg_key]
        if self.is_signed():
            logger.info(f"Removing signatures of repository DB {self.db_name} since SignDB is off")
            self.remove_signature_files()
        return []

    def add_packages(self, pkg_files: Iterable[Path], gpg_key: Optional[str] = None):
        """Add package files to the DB in one repo-add call, replacing older entries"""
        pkg_files = [str(p) for p in pkg_files]
        if not pkg_files:
            return
        cmd = ["repo-add", "--remove", "--verify"] + self._signing_args(gpg_key)
        cmd += [str(self.archive_path)] + pkg_files
        self._run(cmd, "Cannot add packages to repository DB")
        logger.info(f"✅ Added {len(pkg_files)} package(s) to repository DB {self.db_name}")

    def remove_packages(self, names: Iterable[str], gpg_key: Optional[str] = None):
        """Remove packages from the DB in one repo-remove call"""
        names = list(names)
        if not names:
            return
        cmd = ["repo-remove", "--verify"] + self._signing_args(gpg_key)
        cmd += [str(self.archive_path)] + names
        self._run(cmd, "Cannot remove packages from repository DB")
        logger.info(f"Removed {', '.join(names)} from repository DB {self.db_name}")

    def _run(self, cmd: List[str], message: str):
        try:
            result = self.shell.run_command(cmd, capture=True, check=False)
        except OSError as e:
            raise DatabaseError(message) from e
        if result.returncode != 0:
            raise DatabaseError(f"{message}: {(result.stderr or '').strip()}")
