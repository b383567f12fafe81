"""
Cleanup Manager Module - Restores consistency between a repository DB and its files

Three passes, in this order:
1. DB entries whose package file is missing are removed from the DB
2. package files whose package name is not in the DB are deleted
3. signature files whose signed file does not exist are deleted

Pass 3 runs last so that signatures of files deleted in pass 2 go as well.
Running the manager a second time finds nothing to do.
"""

import glob
import logging
from pathlib import Path
from typing import Callable, List, Mapping, NamedTuple

from repman.config import SIGNATURE_SUFFIX
from repman.build.package_file import PackageIdentity
from repman.common.errors import InvalidPackageFile
from repman.repo.db_reader import DatabaseEntry

logger = logging.getLogger(__name__)


class CleanupReport(NamedTuple):
    removed_entries: List[str]
    removed_packages: List[Path]
    removed_signatures: List[Path]

    @property
    def is_clean(self) -> bool:
        """True if nothing had to be repaired"""
        return not (self.removed_entries or self.removed_packages or self.removed_signatures)


class CleanupManager:
    """Consistency checks for one repository directory"""

    def __init__(self, repo_dir: Path, pkg_ext: str):
        self.repo_dir = Path(repo_dir)
        self.pkg_ext = pkg_ext

    def run(self, entries: Mapping[str, DatabaseEntry],
            remove_entries: Callable[[List[str]], None]) -> CleanupReport:
        """
        Execute all passes

        Args:
            entries: DB snapshot taken before the clean-up
            remove_entries: Removes the given package names from the DB in one batch
        """
        logger.info("🧹 Cleaning up repository ...")

        missing = self.entries_without_files(entries)
        if missing:
            for name in missing:
                logger.error(f"Package file of {name} does not exist, removing it from DB")
            remove_entries(missing)

        removed_packages = self.remove_files_without_entries(entries)
        removed_signatures = self.remove_orphaned_signatures()

        report = CleanupReport(missing, removed_packages, removed_signatures)
        if report.is_clean:
            logger.info("✅ Repository is consistent")
        return report

    def entries_without_files(self, entries: Mapping[str, DatabaseEntry]) -> List[str]:
        missing = []
        for entry in entries.values():
            try:
                identity = PackageIdentity.from_metadata(
                    entry.name, entry.version, entry.arch, self.pkg_ext, self.repo_dir
                )
            except InvalidPackageFile as e:
                logger.error(f"DB entry of {entry.name} is invalid: {e}")
                missing.append(entry.name)
                continue
            if not identity.path.exists():
                missing.append(entry.name)
        return missing

    def remove_files_without_entries(self, entries: Mapping[str, DatabaseEntry]) -> List[Path]:
        removed = []
        pattern = f"{glob.escape(str(self.repo_dir))}/*-*-*-*{glob.escape(self.pkg_ext)}"
        for path in sorted(glob.glob(pattern)):
            try:
                identity = PackageIdentity.parse(path)
            except InvalidPackageFile:
                logger.debug(f"Ignoring {path}: not a package file")
                continue
            if identity.name in entries:
                continue
            logger.info(f"Package {identity.name} is not in DB, removing {Path(path).name}")
            try:
                Path(path).unlink()
            except OSError as e:
                logger.error(f"❌ Cannot remove {path}: {e}")
                continue
            removed.append(Path(path))
        return removed

    def remove_orphaned_signatures(self) -> List[Path]:
        removed = []
        pattern = f"{glob.escape(str(self.repo_dir))}/*{SIGNATURE_SUFFIX}"
        for path in sorted(glob.glob(pattern)):
            signed_file = Path(path[:-len(SIGNATURE_SUFFIX)])
            if signed_file.exists():
                continue
            logger.info(f"{signed_file.name} does not exist, removing signature {Path(path).name}")
            try:
                Path(path).unlink()
            except OSError as e:
                logger.error(f"❌ Cannot remove {path}: {e}")
                continue
            removed.append(Path(path))
        return removed
