"""
Tests for building PKGBUILDs and moving the results into the repository
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from repman.build.build_coordinator import BuildCoordinator
from repman.build.pkgbuild import PkgBuild
from repman.common.errors import BuildFailure, NoOutputsDeclared, SigningError, SigningKeyMissing

from conftest import PKG_EXT, FakePkgBuild


@pytest.fixture
def dirs(tmp_path):
    repo_dir = tmp_path / "repo"
    pkg_dir = tmp_path / "pkg"
    repo_dir.mkdir()
    pkg_dir.mkdir()
    return repo_dir, pkg_dir


@pytest.fixture
def gpg():
    handler = MagicMock()
    handler.sign_file.side_effect = lambda path, key: Path(str(path) + ".sig").write_bytes(b"sig")
    return handler


def coordinator(dirs, gpg, key="KEY", no_chroot=True):
    repo_dir, pkg_dir = dirs
    return BuildCoordinator(repo_dir, pkg_dir, gpg, key, chroot_dir=repo_dir.parent / "chroot",
                            no_chroot=no_chroot)


def pkg_name(name, version="1.0-1"):
    return f"{name}-{version}-x86_64{PKG_EXT}"


def test_builds_and_moves_results(dirs, gpg):
    repo_dir, pkg_dir = dirs
    pkgbuild = FakePkgBuild("foo", [pkg_name("foo")])

    results = coordinator(dirs, gpg).build(pkgbuild, sign=False)

    assert [p.path for p in results] == [repo_dir / pkg_name("foo")]
    assert not (pkg_dir / pkg_name("foo")).exists()
    gpg.sign_file.assert_not_called()


def test_chroot_build(dirs, gpg, tmp_path):
    pkgbuild = FakePkgBuild("foo", [pkg_name("foo")])
    coordinator(dirs, gpg, no_chroot=False).build(pkgbuild)
    assert pkgbuild.build_calls == [("makechrootpkg", dirs[0], tmp_path / "chroot")]


def test_replaces_all_old_versions(dirs, gpg, make_pkg):
    repo_dir, _ = dirs
    make_pkg(repo_dir, "foo", "0.8-1")
    make_pkg(repo_dir, "foo", "0.9-1", signed=True)
    unrelated = make_pkg(repo_dir, "foo-docs", "0.9-1")

    coordinator(dirs, gpg).build(FakePkgBuild("foo", [pkg_name("foo")]), sign=False)

    assert sorted(p.name for p in repo_dir.iterdir()) == sorted([pkg_name("foo"), unrelated.name])


def test_version_changed_during_build(dirs, gpg):
    repo_dir, _ = dirs
    pkgbuild = FakePkgBuild("foo-git", [pkg_name("foo-git", "r1.abc-1")], produced=[pkg_name("foo-git", "r7.def-1")])

    results = coordinator(dirs, gpg).build(pkgbuild)

    assert [p.path.name for p in results] == [pkg_name("foo-git", "r7.def-1")]
    assert (repo_dir / pkg_name("foo-git", "r7.def-1")).exists()


def test_partial_split_build(dirs, gpg, caplog):
    pkgbuild = FakePkgBuild("foo", [pkg_name("foo-libs"), pkg_name("foo-tools")], produced=[pkg_name("foo-libs")])

    results = coordinator(dirs, gpg).build(pkgbuild)

    assert [p.name for p in results] == ["foo-libs"]
    assert "foo-tools" in caplog.text


def test_failed_output_keeps_finished_outputs(dirs, gpg, make_pkg, caplog):
    repo_dir, _ = dirs
    make_pkg(repo_dir, "foo-libs", "0.9-1", signed=True)
    old_tools = make_pkg(repo_dir, "foo-tools", "0.9-1", signed=True)

    def sign(path, key):
        if path.name.startswith("foo-tools"):
            raise SigningError("gpg failed")
        Path(str(path) + ".sig").write_bytes(b"sig")
    gpg.sign_file.side_effect = sign
    pkgbuild = FakePkgBuild("foo", [pkg_name("foo-libs"), pkg_name("foo-tools")])

    results = coordinator(dirs, gpg).build_all([pkgbuild])

    assert [p.path for p in results] == [repo_dir / pkg_name("foo-libs")]
    assert results[0].is_signed()
    assert not (repo_dir / pkg_name("foo-libs", "0.9-1")).exists()
    # the output that failed to sign leaves its previous version untouched
    assert old_tools.exists()
    assert Path(str(old_tools) + ".sig").exists()
    assert not (repo_dir / pkg_name("foo-tools")).exists()
    assert "gpg failed" in caplog.text


def test_signing_is_sticky(dirs, gpg, make_pkg):
    repo_dir, _ = dirs
    make_pkg(repo_dir, "signed", "0.9-1", signed=True)
    make_pkg(repo_dir, "plain", "0.9-1")
    pkgbuild = FakePkgBuild("multi", [pkg_name("signed"), pkg_name("plain"), pkg_name("new")])

    results = coordinator(dirs, gpg).build(pkgbuild, sign=None)

    signed = {p.name: p.is_signed() for p in results}
    assert signed == {"signed": True, "plain": False, "new": False}
    assert not (repo_dir / (pkg_name("signed", "0.9-1") + ".sig")).exists()


def test_explicit_sign_overrides_previous_state(dirs, gpg, make_pkg):
    repo_dir, _ = dirs
    make_pkg(repo_dir, "foo", "0.9-1", signed=True)

    results = coordinator(dirs, gpg).build(FakePkgBuild("foo", [pkg_name("foo")]), sign=False)

    assert not results[0].is_signed()


def test_sign_requires_key(dirs, gpg):
    pkgbuild = FakePkgBuild("foo", [pkg_name("foo")])
    with pytest.raises(SigningKeyMissing):
        coordinator(dirs, gpg, key=None).build(pkgbuild, sign=True)
    assert pkgbuild.build_calls == []


def test_no_outputs_declared(dirs, gpg):
    with pytest.raises(NoOutputsDeclared):
        coordinator(dirs, gpg).build(FakePkgBuild("empty", []))


def test_build_all_continues_after_failure(dirs, gpg, caplog):
    broken = FakePkgBuild("broken", [pkg_name("broken")], fail=True)
    good = FakePkgBuild("good", [pkg_name("good")])

    results = coordinator(dirs, gpg).build_all([broken, good], sign=False)

    assert [p.name for p in results] == ["good"]
    assert "Cannot build broken" in caplog.text


def test_failed_build_keeps_old_version(dirs, gpg, make_pkg):
    repo_dir, _ = dirs
    old = make_pkg(repo_dir, "foo", "0.9-1")
    coordinator(dirs, gpg).build_all([FakePkgBuild("foo", [pkg_name("foo")], fail=True)])
    assert old.exists()


def test_requires_chroot_dir(dirs, gpg):
    repo_dir, pkg_dir = dirs
    with pytest.raises(ValueError):
        BuildCoordinator(repo_dir, pkg_dir, gpg, "KEY", chroot_dir=None, no_chroot=False)


class TestPkgBuild:
    def test_from_dirs_skips_invalid(self, tmp_path, fake_shell, caplog):
        good = tmp_path / "good"
        good.mkdir()
        (good / "PKGBUILD").write_text("pkgname=good\n")
        empty = tmp_path / "empty"
        empty.mkdir()

        pkgbuilds = PkgBuild.from_dirs([good, empty, tmp_path / "missing"], fake_shell)

        assert [p.directory for p in pkgbuilds] == [good.resolve()]
        assert "missing does not exist" in caplog.text

    def test_package_list_uses_pkgdest(self, tmp_path, fake_shell):
        (tmp_path / "PKGBUILD").write_text("pkgname=foo\n")
        fake_shell.run_command.return_value.stdout = f"/out/{pkg_name('foo')}\n"

        result = PkgBuild(tmp_path / "PKGBUILD", fake_shell).package_list(Path("/out"))

        assert result == [Path("/out") / pkg_name("foo")]
        kwargs = fake_shell.run_command.call_args[1]
        assert kwargs["extra_env"] == {"PKGDEST": "/out"}
        assert kwargs["cwd"] == tmp_path.resolve()

    def test_makechrootpkg_command(self, tmp_path, fake_shell):
        (tmp_path / "PKGBUILD").write_text("pkgname=foo\n")
        PkgBuild(tmp_path / "PKGBUILD", fake_shell).build_with_makechrootpkg(
            Path("/out"), Path("/repo"), Path("/chroot"), ignore_arch=True
        )
        assert fake_shell.run_command.call_args[0][0] == [
            "makechrootpkg", "-r", "/chroot", "-D", "/repo", "-u", "--",
            "-c", "--noconfirm", "--needed", "--syncdeps", "--ignorearch",
        ]

    def test_from_aur_skips_failed_clones(self, tmp_path, fake_shell, caplog):
        def clone(cmd, **kwargs):
            target = Path(cmd[-1])
            if target.name == "broken":
                return MagicMock(returncode=128, stderr="repository not found")
            target.mkdir(parents=True)
            (target / "PKGBUILD").write_text("pkgname=x\n")
            return MagicMock(returncode=0, stderr="")
        fake_shell.run_command.side_effect = clone

        pkgbuilds = PkgBuild.from_aur(["foo", "broken"], tmp_path, fake_shell)

        assert [p.directory.name for p in pkgbuilds] == ["foo"]
        assert fake_shell.run_command.call_args_list[0][0][0][:3] == [
            "git", "clone", "https://aur.archlinux.org/foo.git"
        ]
        assert "repository not found" in caplog.text

    def test_from_aur_requires_git(self, tmp_path, fake_shell):
        fake_shell.is_available.return_value = False
        with pytest.raises(BuildFailure):
            PkgBuild.from_aur(["foo"], tmp_path, fake_shell)
