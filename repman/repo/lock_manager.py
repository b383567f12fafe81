"""
Lock Manager Module - Mutual exclusion of repository operations across processes

A repository is locked by a file named after it in the locks directory that
holds the PID of the owning process. Acquiring a lock the current process
already holds succeeds; nested acquisitions are counted and only the
outermost release deletes the file.
"""

import os
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional

from repman.common.errors import LockConflict, LockOwnershipMismatch, RepositoryLocked
from repman.common.paths import ensure_dir

logger = logging.getLogger(__name__)


class LockManager:
    """File based repository locks"""

    def __init__(self, locks_dir: Path, pid: Optional[int] = None):
        self.locks_dir = Path(locks_dir)
        self.pid = pid if pid is not None else os.getpid()
        self._depth: Dict[str, int] = {}

    def lock_file(self, repo_name: str) -> Path:
        return self.locks_dir / repo_name

    def _read_pid(self, lock_file: Path) -> int:
        try:
            return int(lock_file.read_text().strip())
        except ValueError:
            raise LockConflict(f"Lock file {lock_file} does not contain a process ID") from None

    def acquire(self, repo_name: str):
        """
        Lock a repository for the current process

        Raises:
            RepositoryLocked: another process holds the lock
        """
        lock_file = self.lock_file(repo_name)
        if lock_file.exists():
            owner = self._read_pid(lock_file)
            if owner != self.pid:
                raise RepositoryLocked(repo_name, owner, str(lock_file))
        else:
            ensure_dir(self.locks_dir)
            try:
                # exclusive create: a racing process gets FileExistsError
                with open(lock_file, "x") as f:
                    f.write(str(self.pid))
            except FileExistsError:
                owner = self._read_pid(lock_file)
                if owner != self.pid:
                    raise RepositoryLocked(repo_name, owner, str(lock_file)) from None
            logger.debug(f"Locked repository {repo_name} ({lock_file})")

        self._depth[repo_name] = self._depth.get(repo_name, 0) + 1

    def release(self, repo_name: str):
        """
        Unlock a repository

        Raises:
            LockOwnershipMismatch: the lock file belongs to another process
        """
        depth = self._depth.get(repo_name, 0)
        if depth > 1:
            self._depth[repo_name] = depth - 1
            return
        self._depth.pop(repo_name, None)

        lock_file = self.lock_file(repo_name)
        if not lock_file.exists():
            logger.debug(f"Repository {repo_name} is not locked")
            return

        owner = self._read_pid(lock_file)
        if owner != self.pid:
            raise LockOwnershipMismatch(
                f"Cannot unlock repository {repo_name}: lock file {lock_file} belongs to process {owner}",
                {"repo": repo_name, "pid": owner}
            )
        lock_file.unlink()
        logger.debug(f"Unlocked repository {repo_name}")

    @contextmanager
    def hold(self, repo_name: str):
        """Keep a repository locked for the duration of a with block"""
        self.acquire(repo_name)
        try:
            yield
        finally:
            self.release(repo_name)
