"""
DB Reader Module - Reads the package entries of a repository DB archive

A DB archive (<db>.db.tar.xz) holds one directory per package with a
"desc" file of %KEY% sections:

    %NAME%
    foo

    %VERSION%
    1.0-1

    %DEPENDS%
    glibc
    bar>=2
"""

import logging
import tarfile
from pathlib import Path
from typing import Dict, List, NamedTuple, Tuple

from repman.common.errors import DatabaseError, NotFoundError

logger = logging.getLogger(__name__)


class DatabaseEntry(NamedTuple):
    """Metadata of one package in the repository DB"""
    name: str
    version: str
    arch: str
    base: str
    filename: str
    depends: Tuple[str, ...] = ()
    makedepends: Tuple[str, ...] = ()
    checkdepends: Tuple[str, ...] = ()


def parse_desc(content: str) -> Dict[str, List[str]]:
    """Split a desc file into its sections"""
    sections: Dict[str, List[str]] = {}
    current = None
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if line.startswith("%") and line.endswith("%") and len(line) > 2:
            current = line[1:-1]
            sections[current] = []
        elif line and current is not None:
            sections[current].append(line)
    return sections


def entry_from_desc(content: str) -> DatabaseEntry:
    sections = parse_desc(content)

    def first(key: str, default: str = "") -> str:
        values = sections.get(key)
        return values[0] if values else default

    name = first("NAME")
    if not name:
        raise DatabaseError("DB entry without %NAME% section")
    return DatabaseEntry(
        name=name,
        version=first("VERSION"),
        arch=first("ARCH"),
        base=first("BASE", name),
        filename=first("FILENAME"),
        depends=tuple(sections.get("DEPENDS", ())),
        makedepends=tuple(sections.get("MAKEDEPENDS", ())),
        checkdepends=tuple(sections.get("CHECKDEPENDS", ())),
    )


def read_database(archive: Path) -> Dict[str, DatabaseEntry]:
    """
    Read all package entries of a DB archive

    Returns:
        Mapping package name -> DatabaseEntry, sorted by name

    Raises:
        NotFoundError: archive does not exist
        DatabaseError: archive cannot be read
    """
    archive = Path(archive)
    if not archive.exists():
        raise NotFoundError(f"Repository DB {archive} does not exist")

    entries = {}
    try:
        with tarfile.open(archive, "r:*") as tar:
            for member in tar.getmembers():
                if not member.isfile() or not member.name.endswith("/desc"):
                    continue
                f = tar.extractfile(member)
                if f is None:
                    continue
                with f:
                    entry = entry_from_desc(f.read().decode("utf-8"))
                entries[entry.name] = entry
    except (tarfile.TarError, OSError, UnicodeDecodeError) as e:
        raise DatabaseError(f"Cannot read repository DB {archive}") from e

    logger.debug(f"Read {len(entries)} entries from {archive.name}")
    return dict(sorted(entries.items()))
