"""
AUR RPC API Client - Resolves package names to AUR package bases and versions
"""

import re
import logging
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional

import requests

from repman import config
from repman.build.version_manager import VersionManager
from repman.common.errors import AurError

logger = logging.getLogger(__name__)

# names per RPC request, keeps the URL below common length limits
MAX_NAMES_PER_REQUEST = 100


class AurPackage(NamedTuple):
    """Version information of an AUR package base"""
    base: str
    version: str
    out_of_date: bool


class PackageUpdate(NamedTuple):
    name: str
    base: str
    old_version: str
    new_version: str


class AurData:
    """
    Result of an AUR query

    All packages of a split package share one base. Only the first package
    of a base seen in the answer determines the version of the base.
    """

    def __init__(self, name_to_base: Dict[str, str], packages: Dict[str, AurPackage]):
        self.name_to_base = name_to_base
        self.packages = packages

    @classmethod
    def from_results(cls, results: Iterable[dict]) -> "AurData":
        name_to_base: Dict[str, str] = {}
        packages: Dict[str, AurPackage] = {}
        for info in results:
            name = info.get("Name")
            base = info.get("PackageBase") or name
            if not name:
                continue
            name_to_base[name] = base
            if base in packages:
                continue
            out_of_date = bool(info.get("OutOfDate"))
            if out_of_date:
                logger.warning(f"⚠️ Package {name} is flagged as out-of-date in AUR")
            packages[base] = AurPackage(base=base, version=str(info.get("Version", "")), out_of_date=out_of_date)
        return cls(name_to_base, packages)

    def base_of(self, name: str) -> Optional[str]:
        return self.name_to_base.get(name)

    def version_of(self, name: str) -> Optional[str]:
        base = self.base_of(name)
        if base is None:
            return None
        return self.packages[base].version

    def check_exists(self, names: Iterable[str]) -> List[str]:
        """Log every name AUR does not know and return them"""
        missing = [name for name in names if name not in self.name_to_base]
        for name in missing:
            logger.error(f"Package {name} not found in AUR")
        return missing

    def updates_by_version(self, db_versions: Mapping[str, str],
                           version_manager: Optional[VersionManager] = None) -> List[PackageUpdate]:
        """
        Packages whose AUR version is newer than the version in the repository DB

        Args:
            db_versions: package name -> version in the repository DB
            version_manager: Comparator, defaults to one running vercmp
        """
        version_manager = version_manager or VersionManager()
        updates = []
        for name in sorted(self.name_to_base):
            current = db_versions.get(name)
            if current is None:
                logger.debug(f"{name} is not in the repository DB, skipping it")
                continue
            base = self.name_to_base[name]
            latest = self.packages[base].version
            if version_manager.is_newer(latest, current):
                updates.append(PackageUpdate(name, base, current, latest))
        return updates

    def updates_without_version_check(self, vcs_suffixes: Iterable[str],
                                      db_versions: Mapping[str, str]) -> List[PackageUpdate]:
        """
        VCS packages (name ends with -<suffix>), regardless of their versions

        Their real version is only known after pkgver() ran during a build,
        so the AUR version says nothing about available updates.
        """
        suffixes = [re.escape(s) for s in vcs_suffixes]
        if not suffixes:
            return []
        vcs_re = re.compile(r".+-(" + "|".join(suffixes) + r")")

        updates = []
        for name in sorted(self.name_to_base):
            if not vcs_re.fullmatch(name):
                continue
            base = self.name_to_base[name]
            updates.append(PackageUpdate(name, base, db_versions.get(name, ""), self.packages[base].version))
        return updates

    @staticmethod
    def bases_of(updates: Iterable[PackageUpdate]) -> List[str]:
        """Distinct package bases of updates, in order of first appearance"""
        bases: List[str] = []
        for update in updates:
            if update.base not in bases:
                bases.append(update.base)
        return bases


class AURClient:
    """AUR RPC API client"""

    def __init__(self, rpc_url: str = config.AUR_RPC_URL, timeout: float = config.AUR_TIMEOUT):
        self.rpc_url = rpc_url
        self.timeout = timeout

    def get_multiple_packages(self, package_names: List[str]) -> List[dict]:
        """
        Fetch info records of several packages

        Args:
            package_names: List of package names

        Returns:
            Info records of the packages AUR knows

        Raises:
            AurError: request failed or the answer is not a valid RPC result
        """
        results: List[dict] = []
        for start in range(0, len(package_names), MAX_NAMES_PER_REQUEST):
            chunk = package_names[start:start + MAX_NAMES_PER_REQUEST]
            params = [("v", config.AUR_RPC_VERSION), ("type", "info")] + [("arg[]", name) for name in chunk]
            try:
                response = requests.get(self.rpc_url, params=params, timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.RequestException as e:
                raise AurError("AUR RPC request failed") from e
            except ValueError as e:
                raise AurError("AUR RPC answer is not valid JSON") from e

            if data.get("type") == "error":
                raise AurError(f"AUR RPC request failed: {data.get('error')}")
            results.extend(data.get("results", []))

        logger.debug(f"Fetched metadata for {len(results)}/{len(package_names)} AUR packages")
        return results

    def fetch(self, package_names: Iterable[str], report_missing: bool = True) -> AurData:
        """
        Resolve package names to bases and versions

        Args:
            package_names: Names to look up
            report_missing: Log an error for each name AUR does not know
        """
        names = list(dict.fromkeys(package_names))
        if not names:
            return AurData({}, {})
        data = AurData.from_results(self.get_multiple_packages(names))
        if report_missing:
            data.check_exists(names)
        return data
