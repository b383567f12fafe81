"""
Repository Module - Operations on one configured package repository

A Repository bundles the settings of a repository (server, DB name, DB
signing) with its local directory, chroot, DB and remote backend. Values
that are expensive to determine (tool configuration files, signing key, DB
content, dependencies) are computed on first use and kept for the lifetime
of the object, i.e. for one invocation.

Every mutating operation runs in a repository transaction (lock, download,
work, upload, unlock), see repman.repo.transaction.
"""

import shutil
import logging
from functools import cached_property
from pathlib import Path
from typing import Dict, Iterable, List, NamedTuple, Optional

from repman import config
from repman.aur_client import AURClient, AurData, PackageUpdate
from repman.build.build_coordinator import BuildCoordinator
from repman.build.chroot_manager import ChrootManager
from repman.build.package_file import PackageFile, PackageIdentity
from repman.build.pkgbuild import PkgBuild
from repman.build.version_manager import VersionManager
from repman.common import prompt
from repman.common.config_loader import ConfigLoader
from repman.common.errors import (ConfigurationError, InvalidPackageFile, NotFoundError, RepmanError,
                                  SigningKeyMissing)
from repman.common.paths import RepmanPaths, ensure_dir
from repman.common.shell_executor import ShellExecutor
from repman.gpg.gpg_handler import GPGHandler
from repman.remote.backends import create_backend, local_dir_for
from repman.repo.cleanup_manager import CleanupManager, CleanupReport
from repman.repo.database_manager import DatabaseManager
from repman.repo.db_reader import DatabaseEntry
from repman.repo.dependency_index import DependencyIndex
from repman.repo.lock_manager import LockManager
from repman.repo.transaction import Workspace, repository_transaction, temporary_workspace

logger = logging.getLogger(__name__)


class PackageListing(NamedTuple):
    name: str
    version: str
    arch: str
    signed: bool
    has_dependents: bool


class RepositoryListing(NamedTuple):
    name: str
    db_signed: bool
    packages: List[PackageListing]

    def format(self) -> str:
        """Text table as printed by "repman ls" """
        lines = [f"{'s' if self.db_signed else '-'}  [{self.name}]"]
        name_width = max((len(p.name) for p in self.packages), default=0)
        arch_width = max((len(p.arch) for p in self.packages), default=0)
        for p in self.packages:
            lines.append(
                f"{'s' if p.signed else '-'}{'d' if p.has_dependents else '-'} "
                f"{p.arch:<{arch_width}} {p.name:<{name_width}} {p.version}"
            )
        return "\n".join(lines)


class Repository:
    """One package repository and the operations on it"""

    def __init__(self, name: str, server: str, db_name: Optional[str] = None, sign_db: bool = False,
                 paths: Optional[RepmanPaths] = None, shell_executor: Optional[ShellExecutor] = None,
                 aur_client: Optional[AURClient] = None, gpg_handler: Optional[GPGHandler] = None,
                 lock_manager: Optional[LockManager] = None, vcs_suffixes: Optional[List[str]] = None,
                 version_manager: Optional[VersionManager] = None):
        self.name = name
        self.server = server
        self.db_name = db_name or name
        self.sign_db = sign_db
        self.paths = paths or RepmanPaths()
        self.shell = shell_executor or ShellExecutor()
        self.aur_client = aur_client or AURClient()
        self.gpg_handler = gpg_handler or GPGHandler(self.shell)
        self.lock_manager = lock_manager or LockManager(self.paths.locks_dir)
        self.version_manager = version_manager or VersionManager(self.shell)
        self.vcs_suffixes = list(vcs_suffixes) if vcs_suffixes is not None else list(config.DEFAULT_VCS_SUFFIXES)

        self.local_dir = local_dir_for(server, self.paths.repo_cache_dir(name))
        self.backend = create_backend(server, self.local_dir, self.shell)
        self.chroot_dir = self.paths.chroot_dir(name)
        self.database = DatabaseManager(self.local_dir, self.db_name, sign_db, self.shell)
        self.chroot = ChrootManager(name, self.db_name, self.local_dir, self.chroot_dir,
                                    self.paths.config_dir, self.shell)

    @classmethod
    def from_config(cls, name: str, loader: Optional[ConfigLoader] = None, **kwargs) -> "Repository":
        """Repository as configured in repos.yaml"""
        loader = loader or ConfigLoader()
        repo_config = loader.load_repo_config(name)
        return cls(
            name=repo_config.name,
            server=repo_config.server,
            db_name=repo_config.db_name,
            sign_db=repo_config.sign_db,
            paths=loader.paths,
            vcs_suffixes=loader.load_vcs_suffixes(),
            **kwargs
        )

    def __repr__(self):
        return f"Repository(name={self.name!r}, server={self.server!r})"

    # ------------------------------------------------------------------
    # Lazily determined values
    # ------------------------------------------------------------------

    @property
    def is_remote(self) -> bool:
        return self.backend.is_remote

    @cached_property
    def makepkg_conf(self) -> Path:
        return ConfigLoader.resolve_tool_conf(config.MAKEPKG_CONF_STEM, self.name, self.paths.config_dir)

    @cached_property
    def pacman_conf(self) -> Path:
        return ConfigLoader.resolve_tool_conf(config.PACMAN_CONF_STEM, self.name, self.paths.config_dir)

    @cached_property
    def pkg_ext(self) -> str:
        return ConfigLoader.read_pkg_ext(self.makepkg_conf)

    @cached_property
    def gpg_key(self) -> Optional[str]:
        try:
            makepkg_conf = self.makepkg_conf
        except ConfigurationError:
            makepkg_conf = None
        return self.gpg_handler.resolve_key(makepkg_conf)

    @cached_property
    def is_db_signed(self) -> bool:
        return self.database.is_signed()

    @cached_property
    def entries(self) -> Dict[str, DatabaseEntry]:
        """DB content (read after the download of the transaction)"""
        return self.database.read()

    @cached_property
    def dependencies(self) -> DependencyIndex:
        return DependencyIndex(self.entries)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def download(self):
        ensure_dir(self.local_dir)
        self.backend.download()

    def upload(self):
        self.backend.upload()

    def transaction(self):
        """Context manager: lock, download, upload after the block, unlock"""
        return repository_transaction(self)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def valid_package_names(self, names: Optional[Iterable[str]] = None) -> List[str]:
        """Names that are in the DB (all DB packages if names is None); unknown names are logged"""
        if names is None:
            return list(self.entries)
        valid = []
        for name in names:
            if name in self.entries:
                valid.append(name)
            else:
                logger.error(f"Package {name} is not in repository {self.name}")
        return valid

    def package_identity(self, name: str) -> PackageIdentity:
        entry = self.entries[name]
        return PackageIdentity.from_metadata(entry.name, entry.version, entry.arch, self.pkg_ext, self.local_dir)

    def package_file(self, name: str) -> PackageFile:
        """Package file of a DB entry (NotFoundError if the file is missing)"""
        return PackageFile(self.package_identity(name).path)

    def _build_and_add(self, pkgbuilds: List[PkgBuild], workspace: Workspace, no_chroot: bool,
                       ignore_arch: bool, sign: Optional[bool]) -> List[PackageFile]:
        if not no_chroot:
            self.chroot.prepare(self.pacman_conf, self.makepkg_conf, workspace.root)

        coordinator = BuildCoordinator(
            repo_dir=self.local_dir,
            pkg_dir=workspace.pkg_dir,
            gpg_handler=self.gpg_handler,
            gpg_key=self.gpg_key,
            chroot_dir=self.chroot_dir,
            no_chroot=no_chroot,
            ignore_arch=ignore_arch
        )
        built = coordinator.build_all(pkgbuilds, sign)
        if built:
            self.database.add_packages([pkg.path for pkg in built], self.gpg_key)
        else:
            logger.warning("⚠️ No package was built")
        return built

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def add(self, aur_names: Iterable[str] = (), pkgbuild_dirs: Iterable[Path] = (), no_chroot: bool = False,
            ignore_arch: bool = False, clean_chroot: bool = False, sign: bool = False) -> List[PackageFile]:
        """
        Build packages from AUR and/or local PKGBUILD directories and add them

        Returns:
            Package files added to the repository
        """
        if sign and not self.gpg_key:
            raise SigningKeyMissing(f"Packages of repository {self.name} shall be signed but no GPG key is configured")

        aur_names = list(aur_names)
        aur_data = self.aur_client.fetch(aur_names, report_missing=True) if aur_names else AurData({}, {})
        bases = []
        for name in aur_names:
            base = aur_data.base_of(name)
            if base is not None and base not in bases:
                bases.append(base)

        with temporary_workspace(self.paths) as workspace:
            pkgbuilds = PkgBuild.from_dirs(pkgbuild_dirs, self.shell)
            pkgbuilds += PkgBuild.from_aur(bases, workspace.pkgbuild_dir, self.shell)
            if not pkgbuilds:
                logger.info("Nothing to add")
                return []

            with self.transaction():
                self.database.ensure_db()
                added = self._build_and_add(pkgbuilds, workspace, no_chroot, ignore_arch, sign)
                if clean_chroot:
                    self.remove_chroot()
        return added

    def packages_to_update(self, aur_data: AurData, names: List[str], force_no_version: bool = False,
                           no_confirm: bool = False, confirm: prompt.Confirm = prompt.confirm) -> List[str]:
        """Package bases to rebuild, after confirmation"""
        db_versions = {name: self.entries[name].version for name in names}
        updates: List[PackageUpdate]
        if force_no_version:
            updates = aur_data.updates_without_version_check(self.vcs_suffixes, db_versions)
        else:
            updates = aur_data.updates_by_version(db_versions, self.version_manager)

        if not updates:
            logger.info("No updates available")
            return []

        if not no_confirm:
            if force_no_version:
                print("Packages to be updated / re-added")
                for update in updates:
                    print(f"    {update.name}")
            else:
                print("Updates available")
                for update in updates:
                    print(f"    {update.name} {update.old_version} -> {update.new_version}")
            if not confirm("Continue?", True):
                return []

        return AurData.bases_of(updates)

    def update(self, names: Optional[Iterable[str]] = None, no_chroot: bool = False, ignore_arch: bool = False,
               force_no_version: bool = False, clean_chroot: bool = False, no_confirm: bool = False,
               confirm: prompt.Confirm = prompt.confirm) -> List[PackageFile]:
        """
        Rebuild packages that have newer versions in AUR

        Args:
            names: Packages to check, None checks all packages of the repository
            force_no_version: Rebuild all VCS packages without comparing versions
            no_confirm: Do not ask before building

        Returns:
            Package files added to the repository
        """
        explicit = names is not None
        with self.transaction():
            if not self.database.exists():
                logger.info(f"Repository {self.name} has no DB yet, nothing to update")
                return []

            valid = self.valid_package_names(names)
            if not valid:
                return []

            aur_data = self.aur_client.fetch(valid, report_missing=explicit)
            bases = self.packages_to_update(aur_data, valid, force_no_version, no_confirm, confirm)
            if not bases:
                return []

            with temporary_workspace(self.paths) as workspace:
                pkgbuilds = PkgBuild.from_aur(bases, workspace.pkgbuild_dir, self.shell)
                updated = self._build_and_add(pkgbuilds, workspace, no_chroot, ignore_arch, None)

            if clean_chroot:
                self.remove_chroot()
        return updated

    def remove(self, names: Iterable[str], no_confirm: bool = False,
               confirm: prompt.Confirm = prompt.confirm) -> List[str]:
        """
        Remove packages (files, signatures and DB entries)

        Packages that other packages of the repository depend on are only
        removed after confirmation.

        Returns:
            Names removed from the DB
        """
        with self.transaction():
            if not self.database.exists():
                logger.info(f"Repository {self.name} has no DB, nothing to remove")
                return []

            to_remove = []
            for name in self.valid_package_names(names):
                dependents = self.dependencies.dependents(name)
                if dependents and not no_confirm:
                    question = (f"Packages {', '.join(sorted(dependents))} depend on {name}. "
                                f"Remove {name} anyway?")
                    if not confirm(question, False):
                        continue
                to_remove.append(name)

            removed = []
            for name in to_remove:
                try:
                    self.package_identity(name).remove_from_directory(self.local_dir)
                except (RepmanError, OSError) as e:
                    logger.error(f"❌ Cannot remove files of package {name}: {e}")
                    continue
                removed.append(name)

            self.database.remove_packages(removed, self.gpg_key)
        return removed

    def sign(self, names: Optional[Iterable[str]] = None) -> List[PackageFile]:
        """
        Sign package files that are not signed yet

        Args:
            names: Packages to sign, None signs all packages of the repository

        Returns:
            Package files that got a new signature
        """
        with self.transaction():
            if not self.database.exists():
                logger.info(f"Repository {self.name} has no DB, nothing to sign")
                return []
            if not self.gpg_key:
                raise SigningKeyMissing(f"Cannot sign packages of repository {self.name}: no GPG key configured")

            signed = []
            for name in self.valid_package_names(names):
                try:
                    pkg = self.package_file(name)
                    if pkg.sign(self.gpg_handler, self.gpg_key):
                        signed.append(pkg)
                except (RepmanError, OSError) as e:
                    logger.error(f"❌ Cannot sign package {name}: {e}")
        return signed

    def clean_up(self) -> CleanupReport:
        """Restore consistency between DB, package files and signatures"""
        with self.transaction():
            if not self.database.exists():
                logger.info(f"Repository {self.name} has no DB, nothing to clean up")
                return CleanupReport([], [], [])
            manager = CleanupManager(self.local_dir, self.pkg_ext)
            return manager.run(self.entries, lambda names: self.database.remove_packages(names, self.gpg_key))

    def list_packages(self) -> RepositoryListing:
        """DB signing state and all packages with signing and dependency flags"""
        with self.transaction():
            if not self.database.exists():
                return RepositoryListing(self.name, False, [])

            packages = []
            for entry in self.entries.values():
                try:
                    signed = self.package_file(entry.name).is_signed()
                except (NotFoundError, InvalidPackageFile):
                    signed = False
                packages.append(PackageListing(
                    name=entry.name,
                    version=entry.version,
                    arch=entry.arch,
                    signed=signed,
                    has_dependents=self.dependencies.has_dependents(entry.name)
                ))
            return RepositoryListing(self.name, self.is_db_signed, packages)

    def clear_cache(self):
        """Delete the local copy of a remote repository"""
        with self.lock_manager.hold(self.name):
            if not self.is_remote:
                logger.warning(f"⚠️ Repository {self.name} is local, it has no cache to clear")
                return
            if self.local_dir.exists():
                logger.info(f"🧹 Removing cache of repository {self.name} ...")
                shutil.rmtree(self.local_dir)

    def remove_chroot(self):
        with self.lock_manager.hold(self.name):
            self.chroot.remove()

    def make_chroot(self, confirm: prompt.Confirm = prompt.confirm) -> bool:
        """
        (Re)create the chroot of the repository

        Returns:
            False if an existing chroot was kept
        """
        with self.lock_manager.hold(self.name):
            if self.chroot.exists():
                if not confirm(f"Chroot of repository {self.name} exists. Delete and re-create it?", False):
                    return False
                self.chroot.remove()
            with temporary_workspace(self.paths) as workspace:
                self.chroot.create(self.pacman_conf, self.makepkg_conf, workspace.root)
        return True
