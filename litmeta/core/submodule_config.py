"""Submodule configuration stored in the ``.litmodules`` file.

The file lives at the root of the meta repository and is tracked like any
other file.  Each submodule has one section::

    [submodule "libs/x"]
    	path = libs/x
    	url = ../x

``include`` names submodules after their path, so name and path normally
coincide; lookups accept either.
"""

import configparser
import re
from dataclasses import dataclass
from typing import Dict, Optional

from .errors import ConsistencyError
from .objects import MODE_SUBMODULE

MODULES_FILENAME = '.litmodules'

_SECTION_RE = re.compile(r'^submodule "(?P<name>.+)"$')


@dataclass(frozen=True)
class SubmoduleRecord:
    """One ``[submodule]`` section."""
    name: str
    path: str
    url: str


def parse_modules(text: str) -> Dict[str, SubmoduleRecord]:
    """Parse ``.litmodules`` content into ``name -> SubmoduleRecord``."""
    parser = configparser.ConfigParser(interpolation=None)
    try:
        parser.read_string(text)
    except configparser.Error as e:
        raise ConsistencyError(f"Malformed {MODULES_FILENAME}: {e}")

    records = {}
    for section in parser.sections():
        match = _SECTION_RE.match(section)
        if not match:
            continue
        name = match.group('name')
        path = parser.get(section, 'path', fallback=name)
        url = parser.get(section, 'url', fallback='')
        records[name] = SubmoduleRecord(name, path, url)
    return records


def format_modules(records: Dict[str, SubmoduleRecord]) -> str:
    """Render records as ``.litmodules`` content, sorted by name."""
    lines = []
    for name in sorted(records):
        record = records[name]
        lines.append(f'[submodule "{record.name}"]')
        lines.append(f'\tpath = {record.path}')
        lines.append(f'\turl = {record.url}')
    return '\n'.join(lines) + '\n' if lines else ''


def read_modules_from_tree(repo, tree_hash: Optional[str]) -> Dict[str, SubmoduleRecord]:
    """Records of the ``.litmodules`` blob in ``tree_hash`` (empty if absent)."""
    if tree_hash is None:
        return {}
    entry = repo.get_tree(tree_hash).get_entry(MODULES_FILENAME)
    if entry is None:
        return {}
    return parse_modules(repo.read_object(entry.hash).data.decode())


def read_modules_from_workdir(repo) -> Dict[str, SubmoduleRecord]:
    """Records of the ``.litmodules`` file in the working tree."""
    modules_file = repo.work_tree / MODULES_FILENAME
    if not modules_file.is_file():
        return {}
    return parse_modules(modules_file.read_text())


def write_modules_to_workdir(repo, records: Dict[str, SubmoduleRecord]) -> None:
    """Write ``records`` to the working tree ``.litmodules`` file."""
    (repo.work_tree / MODULES_FILENAME).write_text(format_modules(records))


def find_record(records: Dict[str, SubmoduleRecord], name: str) -> Optional[SubmoduleRecord]:
    """Look up a record by name, falling back to its path."""
    if name in records:
        return records[name]
    for record in records.values():
        if record.path == name:
            return record
    return None


def submodule_pointers(repo, tree_hash: Optional[str]) -> Dict[str, str]:
    """``path -> commit id`` for every submodule pointer entry in a tree."""
    return {
        path: entry.hash
        for path, entry in repo.flatten_tree(tree_hash).items()
        if entry.mode == MODE_SUBMODULE
    }


def check_tree_consistency(repo, tree_hash: Optional[str]) -> None:
    """
    Verify that pointer entries and ``.litmodules`` records match.

    Raises:
        ConsistencyError: If a pointer has no record or a record no pointer
    """
    pointer_paths = set(submodule_pointers(repo, tree_hash))
    record_paths = {r.path for r in read_modules_from_tree(repo, tree_hash).values()}

    missing_records = sorted(pointer_paths - record_paths)
    if missing_records:
        raise ConsistencyError(
            f"Submodule pointer(s) without {MODULES_FILENAME} record: {', '.join(missing_records)}"
        )
    missing_pointers = sorted(record_paths - pointer_paths)
    if missing_pointers:
        raise ConsistencyError(
            f"{MODULES_FILENAME} record(s) without submodule pointer: {', '.join(missing_pointers)}"
        )
