"""Repository management for litmeta."""

import logging
import posixpath
import zlib
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from .errors import ConsistencyError, NotFoundError, ObjectNotFoundError
from .objects import LitObject, Blob, Tree, Commit, MODE_TREE, object_type_for_mode

logger = logging.getLogger(__name__)

LINK_PREFIX = 'litdir: '


class FileEntry(NamedTuple):
    """A leaf of a flattened tree: a blob or a submodule pointer."""
    mode: str
    hash: str


class Repository:
    """
    Represents a Lit repository.

    A repository is an object store (the lit directory) optionally paired
    with a working tree.  Normally the lit directory is ``<work_tree>/.lit``;
    an open submodule instead has a ``.lit`` link file in its working tree
    pointing at a store kept inside the meta repository
    (``<meta>/.lit/modules/<name>``).  A repository without a working tree
    is *bare*: only commit, tree and merge operations are available.
    """

    def __init__(self, path: Optional[str] = '.', lit_dir: Optional[str] = None):
        """
        Initialize repository.

        Args:
            path: Path to the working tree, or None for a bare repository
            lit_dir: Path to the lit directory (defaults to ``<path>/.lit``)
        """
        self.work_tree = Path(path).resolve() if path is not None else None
        if lit_dir is None:
            if self.work_tree is None:
                raise ValueError("A bare repository needs an explicit lit directory")
            lit_dir = self.work_tree / '.lit'
        self.lit_dir = Path(lit_dir).resolve()
        self.objects_dir = self.lit_dir / 'objects'
        self.refs_dir = self.lit_dir / 'refs'
        self.heads_dir = self.refs_dir / 'heads'
        self.tags_dir = self.refs_dir / 'tags'
        self.modules_dir = self.lit_dir / 'modules'
        self.hooks_dir = self.lit_dir / 'hooks'
        self.head_file = self.lit_dir / 'HEAD'
        self.index_file = self.lit_dir / 'index'
        self.config_file = self.lit_dir / 'config'

        self._ref_manager = None
        self._diff_engine = None

    @property
    def refs(self):
        """Get RefManager instance."""
        if self._ref_manager is None:
            from .refs import RefManager
            self._ref_manager = RefManager(self)
        return self._ref_manager

    @property
    def diff(self):
        """Get DiffEngine instance."""
        if self._diff_engine is None:
            from litmeta.operations.diff import DiffEngine
            self._diff_engine = DiffEngine(self)
        return self._diff_engine

    @property
    def is_bare(self) -> bool:
        """Whether this handle has no working tree."""
        return self.work_tree is None

    def init(self) -> 'Repository':
        """
        Initialize a new repository.

        Creates the lit directory structure:
        .lit/
        ├── objects/       # Object database
        ├── refs/
        │   ├── heads/     # Branch references
        │   └── tags/      # Tag references
        ├── HEAD           # Current branch/commit
        └── config         # Repository configuration

        Returns:
            Repository: self for method chaining
        """
        if self.lit_dir.exists():
            raise FileExistsError(f"Repository already exists at {self.lit_dir}")

        self.lit_dir.mkdir(parents=True)
        self.objects_dir.mkdir()
        self.refs_dir.mkdir()
        self.heads_dir.mkdir()
        self.tags_dir.mkdir()

        self.head_file.write_text('ref: refs/heads/main\n')
        self.config_file.write_text('[core]\n\trepositoryformatversion = 0\n')

        return self

    @classmethod
    def open(cls, path: str) -> 'Repository':
        """
        Open the repository whose working tree is ``path``.

        Follows a ``.lit`` link file if the working tree has one.

        Raises:
            ConsistencyError: If the link file is malformed or points at a
                missing directory
        """
        work_tree = Path(path).resolve()
        marker = work_tree / '.lit'
        if marker.is_file():
            content = marker.read_text().strip()
            if not content.startswith(LINK_PREFIX):
                raise ConsistencyError(f"Invalid lit link file: {marker}")
            lit_dir = Path(content[len(LINK_PREFIX):])
            if not lit_dir.is_absolute():
                lit_dir = work_tree / lit_dir
            if not lit_dir.is_dir():
                raise ConsistencyError(f"{marker} points at missing directory {lit_dir}")
            return cls(str(work_tree), str(lit_dir))
        return cls(str(work_tree))

    @classmethod
    def open_bare(cls, lit_dir) -> 'Repository':
        """Open the object store at ``lit_dir`` without a working tree."""
        return cls(None, str(lit_dir))

    @classmethod
    def find_repository(cls, path: str = '.') -> Optional['Repository']:
        """
        Find repository by searching up the directory tree.

        Searches from the given path upwards until it finds a .lit directory
        (or link file) or reaches the filesystem root.

        Args:
            path: Starting path for search

        Returns:
            Repository if found, None otherwise
        """
        current = Path(path).resolve()

        while True:
            if (current / '.lit').exists():
                return cls.open(str(current))

            if current == current.parent:
                return None

            current = current.parent

    @classmethod
    def discover(cls, path: str = '.') -> Optional['Repository']:
        """
        Like ``find_repository``, but a lit directory itself (as for a
        bare repository) is opened bare.
        """
        current = Path(path).resolve()
        if (current / 'HEAD').is_file() and (current / 'objects').is_dir():
            return cls.open_bare(current)
        return cls.find_repository(str(current))

    def write_link_file(self) -> None:
        """Point ``<work_tree>/.lit`` at this repository's lit directory."""
        if self.work_tree is None:
            raise ValueError("Cannot link a bare repository")
        self.work_tree.mkdir(parents=True, exist_ok=True)
        (self.work_tree / '.lit').write_text(f'{LINK_PREFIX}{self.lit_dir}\n')

    def object_path(self, hash: str) -> Path:
        """
        Get filesystem path for an object.

        Objects are stored in subdirectories named by the first 2 characters
        of the hash, with the remaining 38 characters as the filename.
        """
        return self.objects_dir / hash[:2] / hash[2:]

    def write_object(self, obj: LitObject) -> str:
        """
        Write object to repository.

        Objects are stored compressed with zlib. The format is:
        <type> <size>\\0<content>

        Args:
            obj: Lit object to write

        Returns:
            str: SHA-1 hash of the object
        """
        hash = obj.hash
        path = self.object_path(hash)

        if path.exists():
            return hash

        data = obj.serialize()
        header = f"{obj.type} {len(data)}\0".encode()

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(zlib.compress(header + data))

        return hash

    def read_object(self, hash: str) -> LitObject:
        """
        Read object from repository.

        Args:
            hash: 40-character SHA-1 hash

        Returns:
            LitObject: Deserialized object (Blob, Tree, or Commit)

        Raises:
            ObjectNotFoundError: If the object is not in this store
            ValueError: If the stored object is malformed
        """
        path = self.object_path(hash)

        if len(hash) != 40 or not path.exists():
            raise ObjectNotFoundError(hash)

        content = zlib.decompress(path.read_bytes())

        null_idx = content.index(b'\0')
        header = content[:null_idx].decode()
        data = content[null_idx + 1:]

        try:
            obj_type, size_str = header.split(' ', 1)
            size = int(size_str)
        except ValueError:
            raise ValueError(f"Invalid object header: {header}")

        if len(data) != size:
            raise ValueError(f"Object size mismatch: expected {size}, got {len(data)}")

        if obj_type == 'blob':
            obj = Blob()
        elif obj_type == 'tree':
            obj = Tree()
        elif obj_type == 'commit':
            obj = Commit()
        else:
            raise ValueError(f"Unknown object type: {obj_type}")

        obj.deserialize(data)
        return obj

    def object_exists(self, hash: str) -> bool:
        """Check if object exists in repository."""
        return len(hash) == 40 and self.object_path(hash).exists()

    def find_objects_by_prefix(self, prefix: str) -> List[str]:
        """Return the ids of all objects whose id starts with ``prefix``."""
        prefix = prefix.lower()
        if len(prefix) < 4:
            return []
        obj_dir = self.objects_dir / prefix[:2]
        if not obj_dir.is_dir():
            return []
        rest = prefix[2:]
        return sorted(prefix[:2] + p.name for p in obj_dir.iterdir() if p.name.startswith(rest))

    def get_commit(self, hash: str) -> Commit:
        """
        Read the commit ``hash``.

        Raises:
            NotFoundError: If ``hash`` does not name a commit in this store
        """
        try:
            obj = self.read_object(hash)
        except ObjectNotFoundError:
            raise NotFoundError(f"Commit {hash} not found in {self.lit_dir}")
        if not isinstance(obj, Commit):
            raise NotFoundError(f"{hash} is a {obj.type}, not a commit")
        return obj

    def get_tree(self, hash: str) -> Tree:
        """Read the tree ``hash``."""
        obj = self.read_object(hash)
        if not isinstance(obj, Tree):
            raise NotFoundError(f"{hash} is a {obj.type}, not a tree")
        return obj

    def resolve_commitish(self, name: str) -> Optional[str]:
        """
        Resolve a branch, tag, HEAD or (abbreviated) id to a commit id.

        Returns:
            Commit id, or None if ``name`` does not name a commit
        """
        return self.refs.resolve_reference(name)

    def resolve_treeish(self, name: str) -> Optional[str]:
        """
        Resolve a commit-ish or tree id to a tree id.

        Returns:
            Tree id, or None if ``name`` does not name a tree
        """
        commit_hash = self.resolve_commitish(name)
        if commit_hash is not None:
            return self.get_commit(commit_hash).tree

        candidates = [name] if len(name) == 40 else self.find_objects_by_prefix(name)
        for candidate in candidates:
            if self.object_exists(candidate) and isinstance(self.read_object(candidate), Tree):
                return candidate
        return None

    def head_commit(self) -> Optional[str]:
        """Commit id HEAD points at, or None on an unborn branch."""
        return self.refs.resolve_head()

    def head_tree(self) -> Optional[str]:
        """Tree id of the HEAD commit, or None on an unborn branch."""
        head = self.head_commit()
        if head is None:
            return None
        return self.get_commit(head).tree

    def index(self):
        """Read and return this repository's index."""
        from .index import Index
        index = Index()
        index.read(str(self.index_file))
        return index

    def flatten_tree(self, tree_hash: Optional[str], prefix: str = '') -> Dict[str, FileEntry]:
        """
        Recursively list the leaves of a tree.

        Submodule pointers are leaves; they are not followed into the
        submodule's store.

        Args:
            tree_hash: Tree id, or None for the empty tree
            prefix: Path prefix for the returned keys

        Returns:
            Dict mapping repository-relative paths to FileEntry
        """
        files: Dict[str, FileEntry] = {}
        if tree_hash is None:
            return files

        for entry in self.get_tree(tree_hash).entries:
            path = f"{prefix}{entry.name}"
            if entry.type == 'tree':
                files.update(self.flatten_tree(entry.hash, f"{path}/"))
            else:
                files[path] = FileEntry(entry.mode, entry.hash)

        return files

    def build_tree(self, files: Dict[str, FileEntry]) -> str:
        """
        Write the trees for a flat ``path -> FileEntry`` mapping.

        The inverse of ``flatten_tree``.  Blob objects must already be in the
        store; submodule pointer ids are recorded as given.

        Returns:
            Id of the root tree

        Raises:
            ValueError: If a path is also the parent directory of another path
        """
        for path in files:
            parent = posixpath.dirname(path)
            while parent:
                if parent in files:
                    raise ValueError(f"'{parent}' is both an entry and a directory")
                parent = posixpath.dirname(parent)

        trees = defaultdict(Tree)
        trees['']

        for path in sorted(files):
            entry = files[path]
            dir_path, filename = posixpath.split(path)

            parts = dir_path.split('/') if dir_path else []
            for i in range(len(parts)):
                trees['/'.join(parts[:i + 1])]

            trees[dir_path].add_entry(entry.mode, object_type_for_mode(entry.mode), entry.hash, filename)

        for dir_path in sorted(trees, key=lambda x: x.count('/'), reverse=True):
            if dir_path:
                tree_hash = self.write_object(trees[dir_path])
                parent_path, dir_name = posixpath.split(dir_path)
                trees[parent_path].add_entry(MODE_TREE, 'tree', tree_hash, dir_name)

        return self.write_object(trees[''])

    def __repr__(self) -> str:
        location = self.work_tree if self.work_tree is not None else f"{self.lit_dir} (bare)"
        return f"Repository(path={location})"
