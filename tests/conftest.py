"""
Pytest configuration and shared fixtures
"""

import io
import subprocess
import tarfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from repman.build.version_manager import VersionManager
from repman.common.errors import BuildFailure
from repman.common.paths import RepmanPaths
from repman.common.shell_executor import ShellExecutor

PKG_EXT = ".pkg.tar.zst"


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the user's signing key and XDG directories out of the tests"""
    monkeypatch.delenv("GPGKEY", raising=False)
    monkeypatch.delenv("REPMAN_CONFIG", raising=False)


@pytest.fixture
def paths(tmp_path):
    return RepmanPaths(cache_dir=tmp_path / "cache", config_dir=tmp_path / "config")


@pytest.fixture
def fake_shell():
    """ShellExecutor double: every tool is installed and every command succeeds"""
    shell = MagicMock(spec=ShellExecutor)
    shell.is_available.return_value = True
    shell.run_command.return_value = completed()
    return shell


@pytest.fixture
def fake_versions():
    """VersionManager whose vercmp orders versions like plain strings"""
    def vercmp(cmd, **kwargs):
        a, b = cmd[1], cmd[2]
        return completed(stdout=f"{(a > b) - (a < b)}\n")

    shell = MagicMock(spec=ShellExecutor)
    shell.run_command.side_effect = vercmp
    return VersionManager(shell)


@pytest.fixture
def make_pkg():
    """Create an (empty) package file, optionally with a signature"""
    def _make(directory, name, version="1.0-1", arch="x86_64", ext=PKG_EXT, signed=False):
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}-{version}-{arch}{ext}"
        path.write_bytes(b"pkg")
        if signed:
            Path(str(path) + ".sig").write_bytes(b"sig")
        return path
    return _make


def desc_text(name, version, arch="x86_64", base=None, depends=(), makedepends=(), checkdepends=()):
    sections = [
        ("FILENAME", [f"{name}-{version}-{arch}{PKG_EXT}"]),
        ("NAME", [name]),
        ("BASE", [base or name]),
        ("VERSION", [version]),
        ("ARCH", [arch]),
        ("DEPENDS", list(depends)),
        ("MAKEDEPENDS", list(makedepends)),
        ("CHECKDEPENDS", list(checkdepends)),
    ]
    parts = []
    for key, values in sections:
        if values:
            parts.append(f"%{key}%\n" + "\n".join(values) + "\n")
    return "\n".join(parts)


@pytest.fixture
def make_db():
    """
    Write a repo-add style DB archive

    entries: list of dicts with the keyword arguments of desc_text
    """
    def _make(directory, db_name, entries, signed=False):
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        archive = directory / f"{db_name}.db.tar.xz"
        with tarfile.open(archive, "w:xz") as tar:
            for entry in entries:
                data = desc_text(**entry).encode("utf-8")
                info = tarfile.TarInfo(f"{entry['name']}-{entry['version']}/desc")
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
        link = directory / f"{db_name}.db"
        if not link.exists():
            link.symlink_to(archive.name)
        if signed:
            Path(str(archive) + ".sig").write_bytes(b"sig")
            Path(str(link) + ".sig").write_bytes(b"sig")
        return archive
    return _make


@pytest.fixture
def makepkg_conf(paths):
    """makepkg.conf in the configuration directory"""
    paths.config_dir.mkdir(parents=True, exist_ok=True)
    conf = paths.config_dir / "makepkg.conf"
    conf.write_text(
        "#!/hint/bash\n"
        "BUILDENV=(!distcc color !ccache check !sign)\n"
        "#GPGKEY=\"\"\n"
        f"PKGEXT='{PKG_EXT}'\n"
    )
    return conf


class FakePkgBuild:
    """
    PKGBUILD double: declares `predicted` files and, when built, writes
    `produced` files into the build output directory
    """

    def __init__(self, name, predicted, produced=None, fail=False):
        self.directory = Path("/build") / name
        self.path = self.directory / "PKGBUILD"
        self.predicted = predicted
        self.produced = predicted if produced is None else produced
        self.fail = fail
        self.build_calls = []

    def package_list(self, pkg_dir):
        return [Path(pkg_dir) / f for f in self.predicted]

    def _write(self, pkg_dir):
        if self.fail:
            raise BuildFailure(f"Build of {self.path} failed with exit code 2")
        for f in self.produced:
            (Path(pkg_dir) / f).write_bytes(b"pkg")

    def build_with_makepkg(self, pkg_dir, ignore_arch=False):
        self.build_calls.append(("makepkg", ignore_arch))
        self._write(pkg_dir)

    def build_with_makechrootpkg(self, pkg_dir, repo_dir, chroot_dir, ignore_arch=False):
        self.build_calls.append(("makechrootpkg", repo_dir, chroot_dir))
        self._write(pkg_dir)
