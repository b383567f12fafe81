"""
Transaction Module - Scoped execution of work on a repository

repository_transaction(repo):
    lock -> download -> work -> upload -> unlock

If the lock cannot be acquired nothing else happens. If the download fails
the work and the upload are skipped and the lock is released. Once the
download has succeeded the upload runs even if the work fails, so whatever
the work completed before the failure gets published.

temporary_workspace(paths):
    per-process scratch directory, deleted when the block is left
"""

import shutil
import logging
from contextlib import contextmanager
from pathlib import Path

from repman import config
from repman.common.paths import RepmanPaths, ensure_dir

logger = logging.getLogger(__name__)


@contextmanager
def repository_transaction(repository):
    """
    Run a with block on a locked, downloaded repository and upload afterwards

    The repository must provide name, lock_manager, download() and upload().
    """
    with repository.lock_manager.hold(repository.name):
        repository.download()
        try:
            yield repository
        finally:
            repository.upload()


class Workspace:
    """Scratch directory with lazily created subdirectories for builds"""

    def __init__(self, root: Path):
        self.root = Path(root)

    @property
    def pkgbuild_dir(self) -> Path:
        """Target directory of PKGBUILD clones"""
        return ensure_dir(self.root / config.PKGBUILD_DIR_NAME)

    @property
    def pkg_dir(self) -> Path:
        """Build output directory (PKGDEST)"""
        return ensure_dir(self.root / config.PKG_DIR_NAME)


@contextmanager
def temporary_workspace(paths: RepmanPaths):
    root = ensure_dir(paths.tmp_dir())
    logger.debug(f"Created workspace {root}")
    try:
        yield Workspace(root)
    finally:
        try:
            shutil.rmtree(root)
            logger.debug(f"Removed workspace {root}")
        except OSError as e:
            logger.warning(f"⚠️ Cannot remove workspace {root}: {e}")
