"""
Build module for package building operations
"""

from .build_coordinator import BuildCoordinator
from .chroot_manager import ChrootManager
from .package_file import PackageFile, PackageIdentity
from .pkgbuild import PkgBuild
from .version_manager import VersionManager

__all__ = [
    'BuildCoordinator',
    'ChrootManager',
    'PackageFile',
    'PackageIdentity',
    'PkgBuild',
    'VersionManager'
]
