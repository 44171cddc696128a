"""Diff engine for comparing trees, the index and the working tree."""

import logging
import os
import posixpath
import stat
from dataclasses import dataclass
from difflib import unified_diff
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set

from colorama import Fore, Style

from litmeta.core.errors import LitMetaError, UserError
from litmeta.core.hash import hash_blob_data
from litmeta.core.objects import MODE_EXECUTABLE, MODE_FILE, MODE_SUBMODULE, MODE_TREE
from litmeta.utils.ignore import load_ignore_matcher

logger = logging.getLogger(__name__)


class DeltaStatus(Enum):
    """How a path differs between the two sides of a diff."""
    ADDED = 'A'
    MODIFIED = 'M'
    DELETED = 'D'
    RENAMED = 'R'
    TYPECHANGED = 'T'
    CONFLICTED = 'U'
    UNTRACKED = '?'


@dataclass
class DiffFile:
    """
    One side of a delta.  ``mode`` and ``hash`` are None when absent.

    ``error`` is set on a working-tree submodule that could not be read.
    """
    path: str
    mode: Optional[str] = None
    hash: Optional[str] = None
    workdir: bool = False
    dirty: bool = False
    error: Optional[str] = None

    @property
    def exists(self) -> bool:
        return self.mode is not None

    @property
    def is_submodule(self) -> bool:
        return self.mode == MODE_SUBMODULE


@dataclass
class DiffDelta:
    """A per-path difference."""
    status: DeltaStatus
    old_file: DiffFile
    new_file: DiffFile

    @property
    def path(self) -> str:
        return self.new_file.path if self.new_file.exists else self.old_file.path


class Diff:
    """An ordered sequence of deltas, sorted by path."""

    def __init__(self, repo, deltas: List[DiffDelta]):
        self.repo = repo
        self.deltas = deltas

    def __iter__(self) -> Iterator[DiffDelta]:
        return iter(self.deltas)

    def __len__(self) -> int:
        return len(self.deltas)

    def __repr__(self) -> str:
        return f"Diff(deltas={len(self.deltas)})"


def matches_pathspec(path: str, paths: Optional[Iterable[str]], container: bool = False) -> bool:
    """
    Whether ``path`` is selected by the path prefixes ``paths``.

    With ``container`` set, ``path`` is also selected when a prefix points
    inside it (used for submodule pointers).
    """
    if not paths:
        return True
    for spec in paths:
        spec = spec.rstrip('/')
        if spec in ('', '.') or path == spec or path.startswith(spec + '/'):
            return True
        if container and spec.startswith(path + '/'):
            return True
    return False


def _mode_kind(mode: str) -> str:
    if mode == MODE_SUBMODULE:
        return 'submodule'
    if mode == MODE_TREE:
        return 'tree'
    return 'blob'


class DiffHunk:
    """Represents a single hunk (continuous block of changes) in a diff."""

    def __init__(self, old_start: int, old_count: int, new_start: int, new_count: int):
        self.old_start = old_start
        self.old_count = old_count
        self.new_start = new_start
        self.new_count = new_count
        self.lines = []

    def add_line(self, line: str):
        """Add a line to this hunk."""
        self.lines.append(line)

    def __str__(self):
        return f"@@ -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} @@"


class FileDiff:
    """Represents the textual diff for a single file."""

    def __init__(self, path: str, old_content: Optional[bytes], new_content: Optional[bytes],
                 old_mode: Optional[str] = None, new_mode: Optional[str] = None):
        self.path = path
        self.old_content = old_content
        self.new_content = new_content
        self.old_mode = old_mode
        self.new_mode = new_mode
        self.is_new = old_content is None
        self.is_deleted = new_content is None
        self.is_modified = old_content is not None and new_content is not None
        self.hunks = []

    def compute_diff(self):
        """Compute diff hunks for this file."""
        if self.is_new:
            new_lines = self.new_content.decode('utf-8', errors='replace').splitlines(keepends=True)
            if new_lines:
                hunk = DiffHunk(0, 0, 1, len(new_lines))
                for line in new_lines:
                    hunk.add_line(f"+{line.rstrip()}")
                self.hunks.append(hunk)
        elif self.is_deleted:
            old_lines = self.old_content.decode('utf-8', errors='replace').splitlines(keepends=True)
            if old_lines:
                hunk = DiffHunk(1, len(old_lines), 0, 0)
                for line in old_lines:
                    hunk.add_line(f"-{line.rstrip()}")
                self.hunks.append(hunk)
        else:
            old_lines = self.old_content.decode('utf-8', errors='replace').splitlines(keepends=True)
            new_lines = self.new_content.decode('utf-8', errors='replace').splitlines(keepends=True)

            diff_lines = list(unified_diff(
                old_lines, new_lines,
                fromfile=f"a/{self.path}",
                tofile=f"b/{self.path}",
                lineterm=''
            ))

            if len(diff_lines) > 2:  # Skip if only headers
                self._parse_unified_diff(diff_lines[2:])

    def _parse_unified_diff(self, diff_lines: List[str]):
        """Parse unified diff output into hunks."""
        current_hunk = None

        for line in diff_lines:
            if line.startswith('@@'):
                # Format: @@ -old_start,old_count +new_start,new_count @@
                parts = line.split('@@')[1].strip().split()
                old_start, old_count = self._parse_range(parts[0][1:])
                new_start, new_count = self._parse_range(parts[1][1:])
                current_hunk = DiffHunk(old_start, old_count, new_start, new_count)
                self.hunks.append(current_hunk)
            elif current_hunk and line[:1] in ('+', '-', ' '):
                current_hunk.add_line(line.rstrip())

    @staticmethod
    def _parse_range(part: str):
        if ',' in part:
            start, count = part.split(',')
            return int(start), int(count)
        return int(part), 1


class DiffEngine:
    """
    Engine for computing diffs within one repository.

    The delta primitives (``tree_to_tree``, ``tree_to_index``,
    ``index_to_workdir``, ``tree_to_workdir`` and
    ``tree_to_workdir_with_index``) compare two snapshots of the repository
    and return a ``Diff`` sorted by path.  Submodule pointers are compared by
    commit id; an open submodule on the working-tree side contributes its
    HEAD commit and is flagged dirty when it has local changes.

    Rendering (``file_diffs`` and the ``format_*`` methods) turns a ``Diff``
    into unified patches or name listings.
    """

    def __init__(self, repo):
        self.repo = repo

    # ------------------------------------------------------------------
    # Snapshots

    def _tree_side(self, tree_hash: Optional[str]) -> Dict[str, DiffFile]:
        return {
            path: DiffFile(path, entry.mode, entry.hash)
            for path, entry in self.repo.flatten_tree(tree_hash).items()
        }

    def _index_side(self, index) -> Dict[str, DiffFile]:
        return {
            path: DiffFile(path, entry.tree_mode, entry.sha1)
            for path, entry in index.entries.items()
            if not entry.stage
        }

    def _require_work_tree(self) -> Path:
        if self.repo.work_tree is None:
            raise UserError(f"{self.repo} has no working tree")
        return self.repo.work_tree

    def _workdir_side(self, reference: Dict[str, DiffFile]) -> Dict[str, DiffFile]:
        """
        Snapshot the working tree.

        ``reference`` supplies the submodule paths: the scan does not descend
        into them and reports their state as a pointer instead.  Paths matched
        by ``.litignore`` are skipped unless ``reference`` tracks them.
        """
        work_tree = self._require_work_tree()
        submodules = {path: f for path, f in reference.items() if f.is_submodule}
        files: Dict[str, DiffFile] = {}
        ignore = load_ignore_matcher(work_tree)
        tracked_dirs = {posixpath.dirname(path) for path in reference}
        for directory in list(tracked_dirs):
            while directory:
                directory = posixpath.dirname(directory)
                tracked_dirs.add(directory)

        for path, recorded in submodules.items():
            files[path] = self._submodule_workdir_file(path, recorded)

        for dirpath, dirnames, filenames in os.walk(work_tree):
            rel_dir = Path(dirpath).relative_to(work_tree).as_posix()
            prefix = '' if rel_dir == '.' else rel_dir + '/'

            kept = []
            for d in sorted(dirnames):
                rel = prefix + d
                if d == '.lit' or rel in submodules:
                    continue
                if (Path(dirpath) / d / '.lit').exists():
                    # Nested repository that is not a known submodule.
                    continue
                if rel not in tracked_dirs and ignore.is_ignored(rel, is_dir=True):
                    continue
                kept.append(d)
            dirnames[:] = kept

            for name in filenames:
                if name == '.lit':
                    continue
                rel = prefix + name
                if rel not in reference and ignore.is_ignored(rel):
                    continue
                full = Path(dirpath) / name
                if not full.is_file():
                    continue
                data = full.read_bytes()
                mode = MODE_EXECUTABLE if full.stat().st_mode & stat.S_IXUSR else MODE_FILE
                files[rel] = DiffFile(rel, mode, hash_blob_data(data), workdir=True)

        return files

    def _submodule_workdir_file(self, path: str, recorded: DiffFile) -> DiffFile:
        sub_dir = self.repo.work_tree / path
        if not (sub_dir / '.lit').exists():
            # Not open: nothing in the working tree can differ from the pointer.
            return DiffFile(path, MODE_SUBMODULE, recorded.hash)

        from litmeta.core.repository import Repository
        try:
            sub_repo = Repository.open(str(sub_dir))
            head = sub_repo.head_commit()
            dirty = sub_repo.diff.is_dirty()
        except LitMetaError as e:
            logger.warning("Cannot read submodule %s: %s", path, e)
            return DiffFile(path, MODE_SUBMODULE, recorded.hash, dirty=True, error=str(e))
        return DiffFile(path, MODE_SUBMODULE, head or recorded.hash, dirty=dirty)

    def is_dirty(self) -> bool:
        """Whether the index or working tree differs from HEAD."""
        index = self.repo.index()
        return bool(len(self.tree_to_index(self.repo.head_tree(), index))
                    or len(self.index_to_workdir(index)))

    # ------------------------------------------------------------------
    # Comparison

    def _compare(
        self,
        old: Dict[str, DiffFile],
        new: Dict[str, DiffFile],
        paths: Optional[List[str]],
        tracked: Optional[Set[str]] = None,
        include_untracked: bool = False,
        recurse_untracked_dirs: bool = False,
        conflicted: Iterable[str] = ()
    ) -> Diff:
        """
        Compare two snapshots.

        When ``tracked`` is given, paths of ``new`` outside it are untracked:
        they are dropped unless ``include_untracked`` is set, and unless
        ``recurse_untracked_dirs`` is set they are collapsed to their
        outermost directory holding no tracked path.
        """
        deltas: List[DiffDelta] = []
        conflicted = {p for p in conflicted if matches_pathspec(p, paths)}
        untracked: List[str] = []

        for path in sorted(set(old) | set(new)):
            o = old.get(path)
            n = new.get(path)
            is_submodule = (o is not None and o.is_submodule) or (n is not None and n.is_submodule)
            if path in conflicted or not matches_pathspec(path, paths, container=is_submodule):
                continue

            if o is None:
                if tracked is not None and path not in tracked:
                    untracked.append(path)
                    continue
                deltas.append(DiffDelta(DeltaStatus.ADDED, DiffFile(path), n))
            elif n is None:
                deltas.append(DiffDelta(DeltaStatus.DELETED, o, DiffFile(path)))
            elif _mode_kind(o.mode) != _mode_kind(n.mode):
                deltas.append(DiffDelta(DeltaStatus.TYPECHANGED, o, n))
            elif o.hash != n.hash or o.mode != n.mode or n.dirty:
                deltas.append(DiffDelta(DeltaStatus.MODIFIED, o, n))

        for path in sorted(conflicted):
            side = old.get(path) or new.get(path) or DiffFile(path)
            deltas.append(DiffDelta(DeltaStatus.CONFLICTED, side, side))

        if include_untracked and untracked:
            if not recurse_untracked_dirs:
                untracked = self._collapse_untracked(untracked, tracked)
            for path in untracked:
                if path.endswith('/'):
                    new_file = DiffFile(path, MODE_TREE, None, workdir=True)
                else:
                    new_file = new[path]
                deltas.append(DiffDelta(DeltaStatus.UNTRACKED, DiffFile(path), new_file))

        deltas.sort(key=lambda d: d.path)
        return Diff(self.repo, deltas)

    @staticmethod
    def _collapse_untracked(untracked: List[str], tracked: Set[str]) -> List[str]:
        tracked_dirs = set()
        for path in tracked:
            parts = path.split('/')
            for i in range(1, len(parts)):
                tracked_dirs.add('/'.join(parts[:i]))

        collapsed = []
        seen = set()
        for path in untracked:
            parts = path.split('/')
            result = path
            for i in range(1, len(parts)):
                directory = '/'.join(parts[:i])
                if directory not in tracked_dirs:
                    result = directory + '/'
                    break
            if result not in seen:
                seen.add(result)
                collapsed.append(result)
        return collapsed

    def tree_to_tree(self, old_tree: Optional[str], new_tree: Optional[str],
                     paths: Optional[List[str]] = None) -> Diff:
        """Compare two trees (None is the empty tree)."""
        return self._compare(self._tree_side(old_tree), self._tree_side(new_tree), paths)

    def tree_to_index(self, tree: Optional[str], index=None,
                      paths: Optional[List[str]] = None) -> Diff:
        """Compare a tree with the index (staged changes)."""
        if index is None:
            index = self.repo.index()
        return self._compare(self._tree_side(tree), self._index_side(index), paths,
                             conflicted=index.conflicted_paths())

    def index_to_workdir(self, index=None, paths: Optional[List[str]] = None,
                         include_untracked: bool = False,
                         recurse_untracked_dirs: bool = False) -> Diff:
        """Compare the index with the working tree (unstaged changes)."""
        if index is None:
            index = self.repo.index()
        old = self._index_side(index)
        new = self._workdir_side(old)
        return self._compare(old, new, paths,
                             tracked=set(index.entries),
                             include_untracked=include_untracked,
                             recurse_untracked_dirs=recurse_untracked_dirs,
                             conflicted=index.conflicted_paths())

    def tree_to_workdir(self, tree: Optional[str], paths: Optional[List[str]] = None,
                        include_untracked: bool = False,
                        recurse_untracked_dirs: bool = False) -> Diff:
        """Compare a tree with the working tree, ignoring the index."""
        old = self._tree_side(tree)
        new = self._workdir_side(old)
        return self._compare(old, new, paths,
                             tracked=set(old),
                             include_untracked=include_untracked,
                             recurse_untracked_dirs=recurse_untracked_dirs)

    def tree_to_workdir_with_index(self, tree: Optional[str], index=None,
                                   paths: Optional[List[str]] = None) -> Diff:
        """
        Compare a tree with the working tree, using the index to decide
        which working tree files are tracked.
        """
        if index is None:
            index = self.repo.index()
        old = self._tree_side(tree)
        reference = dict(old)
        reference.update(self._index_side(index))
        workdir = self._workdir_side(reference)
        new = {path: f for path, f in workdir.items() if path in index.entries}
        return self._compare(old, new, paths, conflicted=index.conflicted_paths())

    # ------------------------------------------------------------------
    # Rendering

    def load_content(self, diff_file: DiffFile) -> Optional[bytes]:
        """Content of one side of a delta, or None if absent."""
        if not diff_file.exists or diff_file.mode == MODE_TREE:
            return None
        if diff_file.is_submodule:
            suffix = '-dirty' if diff_file.dirty else ''
            return f"Subproject commit {diff_file.hash}{suffix}\n".encode()
        if diff_file.workdir:
            return (self._require_work_tree() / diff_file.path).read_bytes()
        return self.repo.read_object(diff_file.hash).data

    def diff_blobs(self, path: str, old_content: Optional[bytes], new_content: Optional[bytes],
                   old_mode: Optional[str] = None, new_mode: Optional[str] = None) -> FileDiff:
        """
        Compute diff between two blob contents.

        Args:
            path: File path
            old_content: Old file content (None for new files)
            new_content: New file content (None for deleted files)

        Returns:
            FileDiff object
        """
        file_diff = FileDiff(path, old_content, new_content, old_mode, new_mode)
        file_diff.compute_diff()
        return file_diff

    def file_diffs(self, diff: Diff) -> List[FileDiff]:
        """Textual diffs for every delta that has content on some side."""
        diffs = []
        for delta in diff:
            if delta.status in (DeltaStatus.CONFLICTED, DeltaStatus.UNTRACKED):
                continue
            diffs.append(self.diff_blobs(
                delta.path,
                self.load_content(delta.old_file),
                self.load_content(delta.new_file),
                delta.old_file.mode,
                delta.new_file.mode,
            ))
        return diffs

    def format_diff(self, diffs: List[FileDiff], color: bool = True) -> str:
        """
        Format diffs as unified diff output.

        Args:
            diffs: List of FileDiff objects
            color: Whether to use color output

        Returns:
            Formatted diff string
        """
        output = []

        for diff in diffs:
            output.append(f"diff --lit a/{diff.path} b/{diff.path}")
            if diff.is_new:
                output.append(f"new file mode {diff.new_mode or MODE_FILE}")
                output.append("--- /dev/null")
                output.append(f"+++ b/{diff.path}")
            elif diff.is_deleted:
                output.append(f"deleted file mode {diff.old_mode or MODE_FILE}")
                output.append(f"--- a/{diff.path}")
                output.append("+++ /dev/null")
            else:
                if diff.old_mode and diff.new_mode and diff.old_mode != diff.new_mode:
                    output.append(f"old mode {diff.old_mode}")
                    output.append(f"new mode {diff.new_mode}")
                output.append(f"--- a/{diff.path}")
                output.append(f"+++ b/{diff.path}")

            for hunk in diff.hunks:
                if color:
                    output.append(f"{Fore.CYAN}{hunk}{Style.RESET_ALL}")
                else:
                    output.append(str(hunk))

                for line in hunk.lines:
                    if color and line.startswith('+'):
                        output.append(f"{Fore.GREEN}{line}{Style.RESET_ALL}")
                    elif color and line.startswith('-'):
                        output.append(f"{Fore.RED}{line}{Style.RESET_ALL}")
                    else:
                        output.append(line)

        return '\n'.join(output)

    def format_name_only(self, diff: Diff) -> str:
        return '\n'.join(delta.path for delta in diff)

    def format_name_status(self, diff: Diff) -> str:
        return '\n'.join(f"{delta.status.value}\t{delta.path}" for delta in diff)

    def format_raw(self, diff: Diff) -> str:
        lines = []
        for delta in diff:
            old, new = delta.old_file, delta.new_file
            lines.append(
                f":{old.mode or '000000'} {new.mode or '000000'} "
                f"{(old.hash or '0' * 40)[:7]} {(new.hash or '0' * 40)[:7]} "
                f"{delta.status.value}\t{delta.path}"
            )
        return '\n'.join(lines)


def diff_filesystem_paths(old_path: str, new_path: str) -> List[FileDiff]:
    """
    Compare two files or directories outside of any repository.

    Directories are compared file by file on their relative paths.
    """
    old_root, new_root = Path(old_path), Path(new_path)
    for p in (old_root, new_root):
        if not p.exists():
            raise UserError(f"Could not access '{p}'")

    def _files(root: Path) -> Dict[str, Path]:
        if root.is_file():
            return {'': root}
        return {p.relative_to(root).as_posix(): p for p in root.rglob('*') if p.is_file()}

    old_files, new_files = _files(old_root), _files(new_root)
    diffs = []
    for rel in sorted(set(old_files) | set(new_files)):
        old_content = old_files[rel].read_bytes() if rel in old_files else None
        new_content = new_files[rel].read_bytes() if rel in new_files else None
        if old_content == new_content:
            continue
        path = rel or new_root.as_posix()
        file_diff = FileDiff(path, old_content, new_content)
        file_diff.compute_diff()
        diffs.append(file_diff)
    return diffs
