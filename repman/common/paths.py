"""
Paths Module - Resolves the cache and configuration directories of repman
"""

import os
import logging
from pathlib import Path
from typing import Optional

from repman import config

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> Path:
    """Create a directory (with parents) if it does not exist yet"""
    path = Path(path)
    if path.exists() and not path.is_dir():
        raise FileExistsError(f"{path} exists but is not a directory")
    path.mkdir(parents=True, exist_ok=True)
    return path


def _xdg_dir(variable: str, fallback: str) -> Path:
    value = os.environ.get(variable)
    if value:
        return Path(value) / config.APP_NAME
    return Path.home() / fallback / config.APP_NAME


class RepmanPaths:
    """
    Directory layout of repman

    The cache directory holds locks, temporary workspaces, local mirrors of
    remote repositories and chroots. The configuration directory holds
    repos.yaml and the optional makepkg/pacman templates.
    """

    def __init__(self, cache_dir: Optional[Path] = None, config_dir: Optional[Path] = None):
        self.cache_dir = Path(cache_dir) if cache_dir else _xdg_dir("XDG_CACHE_HOME", ".cache")
        self.config_dir = Path(config_dir) if config_dir else _xdg_dir("XDG_CONFIG_HOME", ".config")

    @property
    def locks_dir(self) -> Path:
        return self.cache_dir / config.LOCKS_DIR_NAME

    @property
    def repos_dir(self) -> Path:
        return self.cache_dir / config.REPOS_DIR_NAME

    @property
    def chroots_dir(self) -> Path:
        return self.cache_dir / config.CHROOTS_DIR_NAME

    def tmp_dir(self, pid: Optional[int] = None) -> Path:
        """Temporary workspace of a process (defaults to the current one)"""
        return self.cache_dir / config.TMP_DIR_NAME / str(pid if pid is not None else os.getpid())

    def repo_cache_dir(self, repo_name: str) -> Path:
        """Local mirror of a remote repository"""
        return self.repos_dir / repo_name

    def chroot_dir(self, repo_name: str) -> Path:
        return self.chroots_dir / repo_name

    def __repr__(self):
        return f"RepmanPaths(cache_dir={self.cache_dir!s}, config_dir={self.config_dir!s})"
