"""
Configuration constants for repman
=================================================================================
PURPOSE: Centralized defaults for the repository manager. Values that users
         can change live in the YAML files under the configuration directory;
         this file holds names, locations and tool settings that do not change.

ORGANIZATION:
1. Directories and file names
2. Package database layout
3. AUR access
4. Build environment
5. Remote synchronization
"""

# ==============================================================================
# 1. DIRECTORIES AND FILE NAMES
# ==============================================================================

# APP_NAME: Name of the per-user cache and configuration subdirectories
APP_NAME = "repman"

# REPOS_FILE_NAME: Repository definitions inside the configuration directory
# Each top level key is a repository name, see ConfigLoader.load_repo_config
REPOS_FILE_NAME = "repos.yaml"

# GLOBAL_CONFIG_FILE: System wide settings (currently only vcs_suffixes)
# Can be overridden by REPMAN_CONFIG environment variable
GLOBAL_CONFIG_FILE = "/etc/repman.yaml"

# Subdirectories of the cache directory
LOCKS_DIR_NAME = "locks"
TMP_DIR_NAME = "tmp"
REPOS_DIR_NAME = "repos"
CHROOTS_DIR_NAME = "chroots"

# Subdirectories of a temporary workspace
PKGBUILD_DIR_NAME = "pkgbuild"
PKG_DIR_NAME = "pkg"

# Name of the container root inside a chroot directory
CHROOT_ROOT_DIR_NAME = "root"

# Build tool configuration templates, tried in this order:
#   <config dir>/<stem>-<repo>.conf, <config dir>/<stem>.conf, /etc/<stem>.conf
MAKEPKG_CONF_STEM = "makepkg"
PACMAN_CONF_STEM = "pacman"
SYSTEM_CONF_DIR = "/etc"

# Script run after a chroot has been created:
#   <config dir>/adjustchroot-<repo> or <config dir>/adjustchroot
ADJUST_CHROOT_SCRIPT = "adjustchroot"

# ==============================================================================
# 2. PACKAGE DATABASE LAYOUT
# ==============================================================================

# DB archive written by repo-add: <db name>.db.tar.xz
# repo-add also maintains the <db name>.db symlink that marks an existing DB
DB_ARCHIVE_SUFFIX = ".db.tar.xz"
DB_LINK_SUFFIX = ".db"

SIGNATURE_SUFFIX = ".sig"

# ==============================================================================
# 3. AUR ACCESS
# ==============================================================================

AUR_RPC_URL = "https://aur.archlinux.org/rpc/"
AUR_RPC_VERSION = "5"
AUR_GIT_URL = "https://aur.archlinux.org/{base}.git"

# AUR_TIMEOUT: Seconds to wait for an RPC answer
AUR_TIMEOUT = 60

# DEFAULT_VCS_SUFFIXES: Package name suffixes of VCS packages (foo-git, bar-svn)
# Used when /etc/repman.yaml does not define vcs_suffixes
DEFAULT_VCS_SUFFIXES = ["bzr", "cvs", "darcs", "git", "hg", "svn"]

# ==============================================================================
# 4. BUILD ENVIRONMENT
# ==============================================================================

# Machine architectures as returned by platform.machine() mapped to pacman names
ARCH_MAP = {
    "x86_64": "x86_64",
    "aarch64": "aarch64",
    "armv7l": "armv7h",
    "armv7h": "armv7h",
}

# Packages installed into a fresh chroot
CHROOT_BASE_PACKAGES = ["base-devel"]
DISTCC_PACKAGE = "distcc"

# Common makepkg flags for chroot and plain builds
MAKEPKG_BUILD_FLAGS = ["-c", "--noconfirm", "--needed", "--syncdeps"]

# ==============================================================================
# 5. REMOTE SYNCHRONIZATION
# ==============================================================================

RSYNC_FLAGS = ["-a", "-z", "--delete"]
S3CMD_DOWNLOAD_FLAGS = ["sync", "--delete-removed"]
S3CMD_UPLOAD_FLAGS = ["sync", "--follow-symlinks", "--delete-removed", "--acl-public"]
GSUTIL_FLAGS = ["-m", "rsync", "-d", "-r"]
