"""
Tests for package file identity and file operations
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from repman.build.package_file import PackageFile, PackageIdentity
from repman.common.errors import InvalidPackageFile, NotFoundError

from conftest import PKG_EXT


class TestPackageIdentity:
    @pytest.mark.parametrize("path", [
        "/repo/x86_64/foo-bar-1.2.3-1-x86_64.pkg.tar.zst",
        "foo-1.0-1-any.pkg.tar.xz",
        "relative/dir/python-foo-2:0.1.r12.gabc-3-aarch64.pkg.tar.zst",
    ])
    def test_round_trip(self, path):
        assert PackageIdentity.parse(path).full_path == path

    def test_components(self):
        identity = PackageIdentity.parse("/repo/foo-bar-1.2.3-1-x86_64.pkg.tar.zst")
        assert identity.directory == "/repo/"
        assert identity.name == "foo-bar"
        assert identity.version == "1.2.3-1"
        assert identity.arch == "x86_64"
        assert identity.extension == ".pkg.tar.zst"

    @pytest.mark.parametrize("path", [
        "/repo/foo.tar.gz",
        "/repo/foo-1.0-x86_64.pkg.tar.zst",
        "/repo/foo-1.0-1-x86_64.pkg.tar.zst.sig",
    ])
    def test_invalid_names(self, path):
        with pytest.raises(InvalidPackageFile):
            PackageIdentity.parse(path)

    def test_version_agnostic_glob(self):
        identity = PackageIdentity.parse("/tmp/pkg/foo-1.0-1-x86_64.pkg.tar.zst")
        assert identity.version_agnostic_glob() == "/tmp/pkg/foo-*-*-x86_64.pkg.tar.zst"
        assert identity.version_agnostic_glob("/srv/repo") == "/srv/repo/foo-*-*-x86_64.pkg.tar.zst"

    def test_from_metadata(self):
        identity = PackageIdentity.from_metadata("foo", "2:1.0-3", "any", PKG_EXT, "/srv/repo")
        assert identity.full_path == "/srv/repo/foo-2:1.0-3-any.pkg.tar.zst"

    def test_from_metadata_without_release(self):
        with pytest.raises(InvalidPackageFile):
            PackageIdentity.from_metadata("foo", "1.0", "any", PKG_EXT, "/srv/repo")

    def test_find_versions_matches_exact_name_only(self, tmp_path, make_pkg):
        old = make_pkg(tmp_path, "foo", "1.0-1")
        new = make_pkg(tmp_path, "foo", "1.1-1")
        make_pkg(tmp_path, "foo-bar", "1.0-1")
        make_pkg(tmp_path, "foo", "1.0-1", arch="any")
        make_pkg(tmp_path, "bar", "1.0-1")

        identity = PackageIdentity.parse(tmp_path / f"foo-9-9-x86_64{PKG_EXT}")
        assert identity.find_versions() == [old, new]

    def test_remove_from_directory(self, tmp_path, make_pkg):
        repo = tmp_path / "repo"
        make_pkg(repo, "foo", "1.0-1", signed=True)
        make_pkg(repo, "foo", "0.9-1")
        other = make_pkg(repo, "foobar", "1.0-1", signed=True)

        identity = PackageIdentity.parse(f"/elsewhere/foo-2.0-1-x86_64{PKG_EXT}")
        removed = identity.remove_from_directory(repo)

        assert len(removed) == 3
        assert sorted(p.name for p in repo.iterdir()) == sorted([other.name, other.name + ".sig"])


class TestPackageFile:
    def test_missing_file(self, tmp_path):
        with pytest.raises(NotFoundError):
            PackageFile(tmp_path / f"foo-1.0-1-x86_64{PKG_EXT}")

    def test_existing_file_with_invalid_name(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("x")
        with pytest.raises(InvalidPackageFile):
            PackageFile(path)

    def test_from_metadata_requires_exact_file(self, tmp_path, make_pkg):
        make_pkg(tmp_path, "foo", "1.0-1")
        assert PackageFile.from_metadata("foo", "1.0-1", "x86_64", PKG_EXT, tmp_path).version == "1.0-1"
        with pytest.raises(NotFoundError):
            PackageFile.from_metadata("foo", "1.1-1", "x86_64", PKG_EXT, tmp_path)

    def test_find_ignoring_version(self, tmp_path, make_pkg):
        existing = make_pkg(tmp_path, "foo", "r10.abc-1")
        pkg = PackageFile.find_ignoring_version(tmp_path / f"foo-r11.def-1-x86_64{PKG_EXT}")
        assert pkg.path == existing

    def test_find_ignoring_version_without_match(self, tmp_path):
        with pytest.raises(NotFoundError):
            PackageFile.find_ignoring_version(tmp_path / f"foo-1-1-x86_64{PKG_EXT}")

    def test_is_signed(self, tmp_path, make_pkg):
        assert PackageFile(make_pkg(tmp_path, "foo", signed=True)).is_signed()
        assert not PackageFile(make_pkg(tmp_path, "bar")).is_signed()

    def test_move_to_directory_keeps_signature(self, tmp_path, make_pkg):
        pkg = PackageFile(make_pkg(tmp_path / "pkg", "foo", signed=True))
        target = tmp_path / "repo"
        target.mkdir()

        moved = pkg.move_to_directory(target)

        assert moved.path == target / pkg.path.name
        assert moved.is_signed()
        assert not pkg.path.exists()

    def test_sign_skips_signed_files(self, tmp_path, make_pkg):
        gpg = MagicMock()
        pkg = PackageFile(make_pkg(tmp_path, "foo", signed=True))
        assert pkg.sign(gpg, "KEY") is False
        gpg.sign_file.assert_not_called()

    def test_sign(self, tmp_path, make_pkg):
        gpg = MagicMock()
        pkg = PackageFile(make_pkg(tmp_path, "foo"))
        assert pkg.sign(gpg, "KEY") is True
        gpg.sign_file.assert_called_once_with(pkg.path, "KEY")

    def test_equality_by_path(self, tmp_path, make_pkg):
        path = make_pkg(tmp_path, "foo")
        assert PackageFile(path) == PackageFile(Path(str(path)))
