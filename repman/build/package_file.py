"""
Package File Module - Identity of package files and operations on them

A package file is named <name>-<pkgver>-<pkgrel>-<arch><ext>, for example
foo-bar-1.2.3-1-x86_64.pkg.tar.zst. Name, architecture and extension form
the identity of a package independent of its version. Two files of the
same package (different versions) are found via a version agnostic glob.
"""

import glob
import logging
import re
import shutil
from pathlib import Path
from typing import List, NamedTuple, Optional, Union

from repman.config import SIGNATURE_SUFFIX
from repman.common.errors import InvalidPackageFile, NotFoundError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# greedy name group: the last three dash separated fields are version, release and arch
PACKAGE_FILE_RE = re.compile(r"^(.*/)?(.+)-([^-/]+)-([^-/]+)-([^-/]+)(\.pkg\.tar\.[^./]+)$")


class PackageIdentity(NamedTuple):
    """Components of a package file path"""
    directory: str
    name: str
    pkgver: str
    pkgrel: str
    arch: str
    extension: str

    @classmethod
    def parse(cls, path: PathLike) -> "PackageIdentity":
        """
        Split a package file path into its components

        Raises:
            InvalidPackageFile: if the path does not follow the naming scheme
        """
        text = str(path)
        match = PACKAGE_FILE_RE.match(text)
        if not match:
            raise InvalidPackageFile(f"{text} is not a package file")
        directory, name, pkgver, pkgrel, arch, extension = match.groups()
        return cls(directory or "", name, pkgver, pkgrel, arch, extension)

    @classmethod
    def from_metadata(cls, name: str, version: str, arch: str, extension: str,
                      directory: PathLike) -> "PackageIdentity":
        """Identity of a package as recorded in a repository DB (version is pkgver-pkgrel)"""
        if "-" not in version:
            raise InvalidPackageFile(f"Version '{version}' of package {name} has no release part")
        pkgver, pkgrel = version.rsplit("-", 1)
        return cls(_as_dir_prefix(directory), name, pkgver, pkgrel, arch, extension)

    @property
    def version(self) -> str:
        return f"{self.pkgver}-{self.pkgrel}"

    @property
    def file_name(self) -> str:
        return f"{self.name}-{self.pkgver}-{self.pkgrel}-{self.arch}{self.extension}"

    @property
    def full_path(self) -> str:
        """Path string rebuilt from the components"""
        return f"{self.directory}{self.file_name}"

    @property
    def path(self) -> Path:
        return Path(self.full_path)

    def same_package(self, other: "PackageIdentity") -> bool:
        """True if other is a (possibly different) version of the same package"""
        return (self.name, self.arch, self.extension) == (other.name, other.arch, other.extension)

    def version_agnostic_glob(self, directory: Optional[PathLike] = None) -> str:
        """
        Glob pattern matching every version of this package

        The pattern points to the own directory unless another one is given.
        It can also match packages whose name extends this one (foo-bar for
        foo), use find_versions for exact matches.
        """
        prefix = glob.escape(_as_dir_prefix(directory) if directory is not None else self.directory)
        return (f"{prefix}{glob.escape(self.name)}-*-*-"
                f"{glob.escape(self.arch)}{glob.escape(self.extension)}")

    def find_versions(self, directory: Optional[PathLike] = None, signatures: bool = False) -> List[Path]:
        """Existing files (or their signatures) of any version of this package"""
        pattern = self.version_agnostic_glob(directory)
        if signatures:
            pattern += SIGNATURE_SUFFIX

        found = []
        for candidate in glob.glob(pattern):
            base = candidate[:-len(SIGNATURE_SUFFIX)] if signatures else candidate
            try:
                other = PackageIdentity.parse(base)
            except InvalidPackageFile:
                continue
            if self.same_package(other):
                found.append(Path(candidate))
        return sorted(found)

    def has_signed_version(self, directory: PathLike) -> bool:
        """True if any version of this package in directory has a signature"""
        return bool(self.find_versions(directory, signatures=True))

    def remove_from_directory(self, directory: PathLike) -> List[Path]:
        """Delete all versions of this package and their signatures from directory"""
        removed = []
        for path in self.find_versions(directory) + self.find_versions(directory, signatures=True):
            path.unlink()
            logger.debug(f"Removed {path}")
            removed.append(path)
        return removed


def _as_dir_prefix(directory: PathLike) -> str:
    text = str(directory)
    if not text:
        return ""
    return text if text.endswith("/") else text + "/"


class PackageFile:
    """An existing package file"""

    def __init__(self, path: PathLike):
        path = Path(path)
        if not path.exists():
            raise NotFoundError(f"Package file {path} does not exist")
        self.identity = PackageIdentity.parse(path)
        self.path = path

    @classmethod
    def from_metadata(cls, name: str, version: str, arch: str, extension: str,
                      directory: PathLike) -> "PackageFile":
        """
        Package file described by DB metadata

        Raises:
            NotFoundError: if the exact file does not exist in directory
        """
        identity = PackageIdentity.from_metadata(name, version, arch, extension, directory)
        return cls(identity.path)

    @classmethod
    def find_ignoring_version(cls, path: PathLike) -> "PackageFile":
        """Some existing version of the package that path names"""
        identity = PackageIdentity.parse(path)
        versions = identity.find_versions()
        if not versions:
            raise NotFoundError(f"No version of package {identity.name} exists in {identity.directory or '.'}")
        return cls(versions[0])

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def version(self) -> str:
        return self.identity.version

    @property
    def arch(self) -> str:
        return self.identity.arch

    @property
    def extension(self) -> str:
        return self.identity.extension

    @property
    def signature_path(self) -> Path:
        return Path(str(self.path) + SIGNATURE_SUFFIX)

    def is_signed(self) -> bool:
        return self.signature_path.exists()

    def remove_from_directory(self, directory: PathLike) -> List[Path]:
        """Delete every version of this package (and signatures) from another directory"""
        return self.identity.remove_from_directory(directory)

    def move_to_directory(self, directory: PathLike) -> "PackageFile":
        """Move the file (and its signature, if any) into directory"""
        target = Path(directory) / self.path.name
        had_signature = self.is_signed()
        shutil.move(str(self.path), str(target))
        if had_signature:
            shutil.move(str(self.signature_path), str(target) + SIGNATURE_SUFFIX)
        logger.debug(f"Moved {self.path} to {target}")
        return PackageFile(target)

    def sign(self, gpg_handler, key: Optional[str]) -> bool:
        """
        Create a detached signature unless one exists already

        Returns:
            True if a new signature was created
        """
        if self.is_signed():
            logger.debug(f"{self.path.name} is already signed")
            return False
        gpg_handler.sign_file(self.path, key)
        return True

    def __eq__(self, other):
        return isinstance(other, PackageFile) and self.path == other.path

    def __hash__(self):
        return hash(self.path)

    def __repr__(self):
        return f"PackageFile({str(self.path)!r})"
