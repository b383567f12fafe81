"""
Config Loader Module - Handles configuration loading and validation
"""

import os
import re
import logging
import platform
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

import yaml

from repman import config
from repman.common.errors import ConfigurationError
from repman.common.paths import RepmanPaths

logger = logging.getLogger(__name__)

KEY_SERVER = "Server"
KEY_DB_NAME = "DBName"
KEY_SIGN_DB = "SignDB"
KNOWN_REPO_KEYS = (KEY_SERVER, KEY_DB_NAME, KEY_SIGN_DB)

PKGEXT_RE = re.compile(r"""^[ \t]*PKGEXT[ \t]*=[ \t]*['"]([^'"\n]+)['"]""", re.MULTILINE)


class RepoConfig(NamedTuple):
    """Settings of one repository from repos.yaml, with variables substituted"""
    name: str
    server: str
    db_name: str
    sign_db: bool


class ConfigLoader:
    """Handles configuration loading and validation"""

    def __init__(self, paths: Optional[RepmanPaths] = None, global_config_file: Optional[Path] = None):
        self.paths = paths or RepmanPaths()
        if global_config_file is None:
            global_config_file = os.environ.get("REPMAN_CONFIG", config.GLOBAL_CONFIG_FILE)
        self.global_config_file = Path(global_config_file)
        self._repos: Optional[Dict[str, Any]] = None

    @property
    def repos_file(self) -> Path:
        return self.paths.config_dir / config.REPOS_FILE_NAME

    @staticmethod
    def machine_arch() -> str:
        """pacman architecture name of the current machine"""
        machine = platform.machine()
        try:
            return config.ARCH_MAP[machine]
        except KeyError:
            raise ConfigurationError(f"Architecture '{machine}' is not supported") from None

    @staticmethod
    def _load_yaml(path: Path) -> Any:
        try:
            with open(path, 'r') as f:
                return yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file {path} does not exist") from None
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read configuration file {path}") from e

    def load_repos(self) -> Dict[str, Any]:
        """Raw content of repos.yaml (loaded once)"""
        if self._repos is None:
            data = self._load_yaml(self.repos_file)
            if data is None:
                data = {}
            if not isinstance(data, dict):
                raise ConfigurationError(f"{self.repos_file} must map repository names to settings")
            self._repos = data
        return self._repos

    def repo_names(self) -> List[str]:
        return sorted(str(name) for name in self.load_repos())

    def load_repo_config(self, name: str) -> RepoConfig:
        """
        Settings of a configured repository

        Raises:
            ConfigurationError: repository not configured or settings invalid
        """
        repos = self.load_repos()
        if name not in repos:
            raise ConfigurationError(f"Repository '{name}' is not configured in {self.repos_file}")

        section = repos[name]
        if not isinstance(section, dict):
            raise ConfigurationError(f"Settings of repository '{name}' must be a mapping")

        for key in section:
            if key not in KNOWN_REPO_KEYS:
                logger.warning(f"⚠️ Ignoring unknown key '{key}' of repository '{name}' in {self.repos_file}")

        server = section.get(KEY_SERVER)
        if not server or not isinstance(server, str):
            raise ConfigurationError(f"Repository '{name}' has no valid '{KEY_SERVER}' entry")

        db_name = section.get(KEY_DB_NAME, name)
        if not isinstance(db_name, str) or not db_name:
            raise ConfigurationError(f"'{KEY_DB_NAME}' of repository '{name}' must be a non-empty string")

        sign_db = section.get(KEY_SIGN_DB, False)
        if not isinstance(sign_db, bool):
            raise ConfigurationError(f"'{KEY_SIGN_DB}' of repository '{name}' must be true or false")

        if "$arch" in server:
            server = server.replace("$arch", self.machine_arch())
        server = server.replace("$repo", name).replace("$db", db_name)

        return RepoConfig(name=name, server=server, db_name=db_name, sign_db=sign_db)

    def load_vcs_suffixes(self) -> List[str]:
        """Package name suffixes that mark VCS packages"""
        if not self.global_config_file.exists():
            logger.debug(f"{self.global_config_file} not found, using default VCS suffixes")
            return list(config.DEFAULT_VCS_SUFFIXES)

        data = self._load_yaml(self.global_config_file) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{self.global_config_file} must contain a mapping")

        suffixes = data.get("vcs_suffixes", config.DEFAULT_VCS_SUFFIXES)
        if not isinstance(suffixes, list) or not all(isinstance(s, str) for s in suffixes):
            raise ConfigurationError(f"'vcs_suffixes' in {self.global_config_file} must be a list of strings")
        return suffixes

    @staticmethod
    def resolve_tool_conf(stem: str, repo_name: str, config_dir: Path,
                          system_dir: Path = Path(config.SYSTEM_CONF_DIR)) -> Path:
        """
        Locate a build tool configuration file

        Resolution order:
        1. <config dir>/<stem>-<repo>.conf
        2. <config dir>/<stem>.conf
        3. /etc/<stem>.conf

        Raises:
            ConfigurationError: if none of the candidates exists
        """
        candidates = [
            config_dir / f"{stem}-{repo_name}.conf",
            config_dir / f"{stem}.conf",
            system_dir / f"{stem}.conf",
        ]
        for candidate in candidates:
            if candidate.is_file():
                logger.debug(f"Using {candidate} for repository {repo_name}")
                return candidate
        raise ConfigurationError(
            f"No {stem}.conf found for repository {repo_name} (looked at {', '.join(map(str, candidates))})"
        )

    @staticmethod
    def read_pkg_ext(makepkg_conf: Path) -> str:
        """Package file extension (PKGEXT) configured in a makepkg.conf"""
        try:
            content = Path(makepkg_conf).read_text()
        except OSError as e:
            raise ConfigurationError(f"Cannot read {makepkg_conf}") from e
        match = PKGEXT_RE.search(content)
        if not match:
            raise ConfigurationError(f"PKGEXT is not set in {makepkg_conf}")
        return match.group(1)
