"""
Build Coordinator Module - Turns PKGBUILDs into package files in the repository directory

For one PKGBUILD the coordinator:
1. asks makepkg which package files the build will produce
2. builds (in the chroot or directly on the host)
3. locates every produced file, ignoring the version (pkgver() of VCS
   packages may change it during the build)
4. decides whether to sign it: an explicit request wins, otherwise the file
   is signed iff the version it replaces was signed
5. replaces all older versions in the repository directory with it

Signing happens in the build output directory, before step 5 touches the
repository directory, and the signature moves along with the package file.
A failed signature therefore leaves the previous version in place. Each
produced file is handled on its own: a failure is logged and the files of
the same PKGBUILD that were already moved are still returned.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from repman.build.package_file import PackageFile, PackageIdentity
from repman.build.pkgbuild import PkgBuild
from repman.common.errors import InvalidPackageFile, NoOutputsDeclared, RepmanError, SigningKeyMissing

logger = logging.getLogger(__name__)


class BuildCoordinator:
    """Builds PKGBUILDs and moves the results into the repository directory"""

    def __init__(self, repo_dir: Path, pkg_dir: Path, gpg_handler, gpg_key: Optional[str],
                 chroot_dir: Optional[Path] = None, no_chroot: bool = False, ignore_arch: bool = False):
        """
        Args:
            repo_dir: Local repository directory receiving the package files
            pkg_dir: Build output directory (PKGDEST)
            gpg_handler: Signer used for package files
            gpg_key: Signing key, None if not configured
            chroot_dir: Chroot of the repository (required unless no_chroot)
            no_chroot: Build directly on the host
            ignore_arch: Pass --ignorearch to makepkg
        """
        if not no_chroot and chroot_dir is None:
            raise ValueError("chroot_dir is required for chroot builds")
        self.repo_dir = Path(repo_dir)
        self.pkg_dir = Path(pkg_dir)
        self.gpg_handler = gpg_handler
        self.gpg_key = gpg_key
        self.chroot_dir = chroot_dir
        self.no_chroot = no_chroot
        self.ignore_arch = ignore_arch

    def build(self, pkgbuild: PkgBuild, sign: Optional[bool] = None) -> List[PackageFile]:
        """
        Build one PKGBUILD

        Args:
            pkgbuild: PKGBUILD to build
            sign: True/False to force signing on/off, None to keep the signing
                state of the replaced package versions

        Returns:
            Package files now in the repository directory. Predicted files
            that the build did not produce are logged and left out.
        """
        if sign and not self.gpg_key:
            raise SigningKeyMissing("Packages shall be signed but no GPG key is configured")

        predicted = pkgbuild.package_list(self.pkg_dir)
        if not predicted:
            raise NoOutputsDeclared(f"{pkgbuild.path} does not declare any package files")

        logger.info(f"Building {pkgbuild.directory.name} ...")
        if self.no_chroot:
            pkgbuild.build_with_makepkg(self.pkg_dir, ignore_arch=self.ignore_arch)
        else:
            pkgbuild.build_with_makechrootpkg(self.pkg_dir, self.repo_dir, self.chroot_dir,
                                              ignore_arch=self.ignore_arch)

        results = []
        for predicted_path in predicted:
            try:
                identity = PackageIdentity.parse(predicted_path)
            except InvalidPackageFile as e:
                logger.error(f"Skipping {predicted_path}: {e}")
                continue

            built = identity.find_versions(self.pkg_dir)
            if not built:
                logger.error(f"Package file {identity.file_name} was not built")
                continue
            try:
                results.append(self._install(identity, PackageFile(built[0]), sign))
            except (RepmanError, OSError) as e:
                logger.error(f"❌ Cannot add {built[0].name} to the repository: {e}")

        return results

    def _install(self, identity: PackageIdentity, pkg: PackageFile, sign: Optional[bool]) -> PackageFile:
        """Sign a built file if required and let it replace its older versions"""
        to_be_signed = sign if sign is not None else identity.has_signed_version(self.repo_dir)
        if to_be_signed:
            pkg.sign(self.gpg_handler, self.gpg_key)

        removed = pkg.remove_from_directory(self.repo_dir)
        if removed:
            logger.debug(f"Replacing {', '.join(p.name for p in removed)}")
        return pkg.move_to_directory(self.repo_dir)

    def build_all(self, pkgbuilds: Iterable[PkgBuild], sign: Optional[bool] = None) -> List[PackageFile]:
        """Build several PKGBUILDs, a failing one is logged and does not stop the others"""
        results = []
        for pkgbuild in pkgbuilds:
            try:
                results.extend(self.build(pkgbuild, sign))
            except (RepmanError, OSError) as e:
                logger.error(f"❌ Cannot build {pkgbuild.directory.name}: {e}")
        return results
