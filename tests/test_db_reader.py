"""
Tests for reading repository DB archives and the dependency index
"""

import pytest

from repman.common.errors import DatabaseError, NotFoundError
from repman.repo.db_reader import parse_desc, read_database
from repman.repo.dependency_index import DependencyIndex, dependency_name


def test_parse_desc_sections():
    sections = parse_desc("%NAME%\nfoo\n\n%DEPENDS%\nglibc\nbar>=2\n\n%EMPTY%\n")
    assert sections == {"NAME": ["foo"], "DEPENDS": ["glibc", "bar>=2"], "EMPTY": []}


def test_read_database(tmp_path, make_db):
    archive = make_db(tmp_path, "myrepo", [
        {"name": "zeta", "version": "1.0-1", "depends": ["glibc"]},
        {"name": "alpha", "version": "2:3.0-2", "arch": "any", "base": "alpha-base", "makedepends": ["zeta"]},
    ])

    entries = read_database(archive)

    assert list(entries) == ["alpha", "zeta"]
    alpha = entries["alpha"]
    assert alpha.version == "2:3.0-2"
    assert alpha.arch == "any"
    assert alpha.base == "alpha-base"
    assert alpha.makedepends == ("zeta",)
    assert entries["zeta"].depends == ("glibc",)


def test_missing_database(tmp_path):
    with pytest.raises(NotFoundError):
        read_database(tmp_path / "none.db.tar.xz")


def test_corrupt_database(tmp_path):
    archive = tmp_path / "bad.db.tar.xz"
    archive.write_bytes(b"this is not a tar archive")
    with pytest.raises(DatabaseError):
        read_database(archive)


@pytest.mark.parametrize("dependency,name", [
    ("foo", "foo"),
    ("foo>=1.2", "foo"),
    ("foo<2", "foo"),
    ("foo=1:1.0", "foo"),
    ("libfoo.so=1-64", "libfoo.so"),
])
def test_dependency_name(dependency, name):
    assert dependency_name(dependency) == name


def test_dependency_index(tmp_path, make_db):
    archive = make_db(tmp_path, "myrepo", [
        {"name": "app", "version": "1-1", "depends": ["lib>=1"], "checkdepends": ["testkit"]},
        {"name": "tool", "version": "1-1", "makedepends": ["lib"]},
        {"name": "lib", "version": "1-1"},
        {"name": "testkit", "version": "1-1"},
    ])
    index = DependencyIndex(read_database(archive))

    assert index.dependents("lib") == {"app", "tool"}
    assert index.dependents("testkit") == {"app"}
    assert index.dependents("app") == set()
    assert "lib" in index
    assert "tool" not in index
