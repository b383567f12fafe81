"""
Dependency Index Module - Which packages of a repository depend on a package
"""

import re
from typing import Dict, Iterable, Mapping, Set

from repman.repo.db_reader import DatabaseEntry

_CONSTRAINT_RE = re.compile(r"[<>=:]")


def dependency_name(dependency: str) -> str:
    """Package name of a dependency string ("foo>=1.2" -> "foo")"""
    return _CONSTRAINT_RE.split(dependency, 1)[0].strip()


class DependencyIndex:
    """
    Reverse dependencies within one repository

    Runtime, make and check dependencies all count, so a package is
    "needed" if any other package of the repository needs it to run,
    build or test.
    """

    def __init__(self, entries: Mapping[str, DatabaseEntry]):
        self._dependents: Dict[str, Set[str]] = {}
        for entry in entries.values():
            for dependency in _all_dependencies(entry):
                name = dependency_name(dependency)
                if name and name != entry.name:
                    self._dependents.setdefault(name, set()).add(entry.name)

    def dependents(self, name: str) -> Set[str]:
        """Names of packages depending on name (empty if none)"""
        return set(self._dependents.get(name, ()))

    def has_dependents(self, name: str) -> bool:
        return bool(self._dependents.get(name))

    def __contains__(self, name: str) -> bool:
        return self.has_dependents(name)


def _all_dependencies(entry: DatabaseEntry) -> Iterable[str]:
    yield from entry.depends
    yield from entry.makedepends
    yield from entry.checkdepends
