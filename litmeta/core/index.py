"""Index (staging area) implementation."""

import hashlib
import stat
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .objects import Blob, MODE_EXECUTABLE, MODE_FILE, MODE_SUBMODULE
from .repository import FileEntry

SUBMODULE_MODE = 0o160000
STAGE_MASK = 0x3000
STAGE_SHIFT = 12


@dataclass
class IndexEntry:
    """
    Represents a single entry in the index.

    Stores metadata about a staged file including timestamps,
    permissions, and the hash of its content.  Submodule pointers are
    stored with mode 0o160000 and the recorded commit id as ``sha1``.
    """
    ctime: int          # Creation time (seconds)
    ctime_ns: int       # Creation time (nanoseconds)
    mtime: int          # Modification time (seconds)
    mtime_ns: int       # Modification time (nanoseconds)
    dev: int            # Device ID
    ino: int            # Inode number
    mode: int           # File mode/permissions
    uid: int            # User ID
    gid: int            # Group ID
    size: int           # File size
    sha1: str           # SHA-1 hash of content
    flags: int          # Flags (stage bits and name length)
    path: str           # File path

    @property
    def stage(self) -> int:
        """Merge stage; non-zero marks a conflicted entry."""
        return (self.flags & STAGE_MASK) >> STAGE_SHIFT

    @property
    def is_submodule(self) -> bool:
        return stat.S_IFMT(self.mode) == SUBMODULE_MODE

    @property
    def tree_mode(self) -> str:
        """Mode string this entry gets in a tree object."""
        if self.is_submodule:
            return MODE_SUBMODULE
        return MODE_EXECUTABLE if self.mode & 0o111 else MODE_FILE

    def __repr__(self) -> str:
        return f"IndexEntry({self.mode:o} {self.sha1[:7]} {self.path})"


class Index:
    """
    Lit index (staging area) implementation.

    The index stores a list of files to be included in the next commit.
    Each entry contains file metadata and a hash of the file content.
    """

    def __init__(self):
        self.entries: Dict[str, IndexEntry] = {}
        self.version: int = 2

    def add_entry(
        self,
        path: str,
        sha1: str,
        mode: int,
        size: int,
        mtime: int = 0,
        mtime_ns: int = 0,
        ctime: int = 0,
        ctime_ns: int = 0,
        dev: int = 0,
        ino: int = 0,
        uid: int = 0,
        gid: int = 0,
        stage: int = 0
    ) -> None:
        """Add or update entry in index."""
        flags = (len(path.encode()) & 0xFFF) | ((stage << STAGE_SHIFT) & STAGE_MASK)

        self.entries[path] = IndexEntry(
            ctime=ctime,
            ctime_ns=ctime_ns,
            mtime=mtime,
            mtime_ns=mtime_ns,
            dev=dev,
            ino=ino,
            mode=mode,
            uid=uid,
            gid=gid,
            size=size,
            sha1=sha1,
            flags=flags,
            path=path
        )

    def add_file(self, repo, filepath) -> str:
        """
        Stage a file for commit and persist the index.

        Args:
            repo: Repository instance
            filepath: Path to file (absolute or relative to the work tree)

        Returns:
            str: SHA-1 hash of staged content
        """
        file_path = Path(filepath)
        if not file_path.is_absolute():
            file_path = repo.work_tree / file_path

        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {filepath}")

        sha1 = repo.write_object(Blob.from_file(file_path))

        st = file_path.stat()
        rel_path = file_path.relative_to(repo.work_tree).as_posix()

        self.add_entry(
            path=rel_path,
            sha1=sha1,
            mode=st.st_mode,
            size=st.st_size,
            mtime=int(st.st_mtime),
            mtime_ns=st.st_mtime_ns % 1_000_000_000,
            ctime=int(st.st_ctime),
            ctime_ns=st.st_ctime_ns % 1_000_000_000,
            dev=st.st_dev & 0xFFFFFFFF,
            ino=st.st_ino & 0xFFFFFFFF,
            uid=st.st_uid,
            gid=st.st_gid
        )
        self.write(str(repo.index_file))

        return sha1

    def add_submodule(self, path: str, commit_hash: str) -> None:
        """Record a submodule pointer entry."""
        self.add_entry(path=path, sha1=commit_hash, mode=SUBMODULE_MODE, size=0)

    def get_entry(self, path: str) -> Optional[IndexEntry]:
        """Get entry by path."""
        return self.entries.get(path)

    def conflicted_paths(self) -> List[str]:
        """Paths of entries left conflicted by a merge."""
        return sorted(path for path, entry in self.entries.items() if entry.stage)

    def to_files(self) -> Dict[str, FileEntry]:
        """Flat ``path -> FileEntry`` view of the stage-0 entries."""
        return {
            path: FileEntry(entry.tree_mode, entry.sha1)
            for path, entry in self.entries.items()
            if not entry.stage
        }

    @classmethod
    def from_tree(cls, repo, tree_hash: Optional[str]) -> 'Index':
        """Build an index matching the tree ``tree_hash``."""
        index = cls()
        for path, entry in repo.flatten_tree(tree_hash).items():
            if entry.mode == MODE_SUBMODULE:
                index.add_submodule(path, entry.hash)
            else:
                blob = repo.read_object(entry.hash)
                index.add_entry(path, entry.hash, int(entry.mode, 8), len(blob.data))
        return index

    def write(self, index_path: str) -> None:
        """
        Write index to disk in binary format.

        Format:
        - Header: 'DIRC' + version (4 bytes) + entry count (4 bytes)
        - Entries: sorted by path, each with metadata + path
        - Checksum: SHA-1 of entire index
        """
        content = bytearray()

        content.extend(b'DIRC')
        content.extend(struct.pack('>I', self.version))
        content.extend(struct.pack('>I', len(self.entries)))

        for path in sorted(self.entries):
            entry = self.entries[path]

            entry_data = struct.pack(
                '>IIIIIIIIII20sH',
                entry.ctime,
                entry.ctime_ns,
                entry.mtime,
                entry.mtime_ns,
                entry.dev,
                entry.ino,
                entry.mode,
                entry.uid,
                entry.gid,
                entry.size,
                bytes.fromhex(entry.sha1),
                entry.flags
            )

            content.extend(entry_data)
            content.extend(entry.path.encode())
            content.extend(b'\x00')

            # Padding to 8-byte alignment
            entry_len = len(entry_data) + len(entry.path.encode()) + 1
            content.extend(b'\x00' * ((8 - (entry_len % 8)) % 8))

        content.extend(hashlib.sha1(content).digest())

        Path(index_path).write_bytes(content)

    def read(self, index_path: str) -> None:
        """Read index from disk; a missing file means an empty index."""
        if not Path(index_path).exists():
            self.entries.clear()
            return

        data = Path(index_path).read_bytes()

        if hashlib.sha1(data[:-20]).digest() != data[-20:]:
            raise ValueError("Index checksum mismatch")

        signature = data[0:4]
        if signature != b'DIRC':
            raise ValueError(f"Invalid index signature: {signature}")

        self.version = struct.unpack('>I', data[4:8])[0]
        entry_count = struct.unpack('>I', data[8:12])[0]

        self.entries.clear()
        offset = 12

        for _ in range(entry_count):
            fields = struct.unpack('>IIIIIIIIII20sH', data[offset:offset + 62])
            offset += 62

            path_end = data.index(b'\x00', offset)
            path = data[offset:path_end].decode()
            offset = path_end + 1

            entry_len = 62 + len(path.encode()) + 1
            offset += (8 - (entry_len % 8)) % 8

            self.entries[path] = IndexEntry(
                ctime=fields[0],
                ctime_ns=fields[1],
                mtime=fields[2],
                mtime_ns=fields[3],
                dev=fields[4],
                ino=fields[5],
                mode=fields[6],
                uid=fields[7],
                gid=fields[8],
                size=fields[9],
                sha1=fields[10].hex(),
                flags=fields[11],
                path=path
            )

    def __len__(self) -> int:
        return len(self.entries)

    def __repr__(self) -> str:
        return f"Index(entries={len(self.entries)})"
