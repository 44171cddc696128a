"""Merge operations for meta repositories.

``MergeEngine`` merges two commits of one repository without touching a
working tree or moving any ref.  Ordinary files are merged line by line;
submodule pointers that both sides moved are merged by running the same
engine inside the submodule's own store, so nested submodules are handled
recursively.  Nothing is written to the repository being merged until every
file and submodule merged cleanly.
"""

import logging
import posixpath
from collections import deque
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from litmeta.core.config import get_config
from litmeta.core.errors import NotFoundError, ConsistencyError, UserError
from litmeta.core.hooks import exec_hook
from litmeta.core.objects import Blob, Commit, MODE_FILE, MODE_SUBMODULE
from litmeta.core.repository import FileEntry
from litmeta.core.submodule_config import (MODULES_FILENAME, SubmoduleRecord,
                                           format_modules, parse_modules)
from litmeta.operations.open import Opener, SubOpenOption

logger = logging.getLogger(__name__)


class MergeMode(Enum):
    """NORMAL fast-forwards when possible; FORCE_COMMIT always creates a merge commit."""
    NORMAL = 'normal'
    FORCE_COMMIT = 'force_commit'


@dataclass
class MergeConflict:
    """Represents a merge conflict on one path."""
    path: str
    kind: str
    detail: str = ''

    def describe(self) -> str:
        if self.kind == 'content':
            return f"CONFLICT (content): Merge conflict in {self.path}"
        if self.kind == 'modify/delete':
            return f"CONFLICT (modify/delete): {self.path} deleted on one side and modified on the other"
        if self.kind == 'add/add':
            return f"CONFLICT (add/add): Merge conflict in {self.path}"
        if self.kind == 'submodule modify/delete':
            return (f"CONFLICT (submodule modify/delete): submodule {self.path} "
                    f"deleted on one side and modified on the other")
        if self.kind == 'file/directory':
            return f"CONFLICT (file/directory): {self.path} is a directory on one side"
        if self.kind == 'submodule':
            return f"CONFLICT (submodule): Merge conflict in submodule {self.path}\n{self.detail}".rstrip()
        if self.detail:
            return f"CONFLICT ({self.kind}): {self.path} ({self.detail})"
        return f"CONFLICT ({self.kind}): {self.path}"

    def __repr__(self) -> str:
        return f"MergeConflict({self.kind} {self.path})"


@dataclass
class MergeResult:
    """
    Result of a merge operation.

    On success ``error_message`` is None and ``commit`` is the resulting
    commit id, or None when there was nothing to merge.  A fast-forward
    carries the existing commit it advanced to.  On failure ``commit`` is
    None and ``error_message`` describes what went wrong.
    """
    commit: Optional[str] = None
    error_message: Optional[str] = None
    fast_forward: bool = False
    conflicts: List[MergeConflict] = field(default_factory=list)

    def __post_init__(self):
        if self.commit is not None and self.error_message is not None:
            raise ValueError("A merge result cannot carry both a commit and an error")

    @property
    def success(self) -> bool:
        return self.error_message is None

    @property
    def created_commit(self) -> bool:
        """Whether the merge wrote a new commit."""
        return self.commit is not None and not self.fast_forward

    @classmethod
    def failure(cls, message: str, conflicts: Optional[List[MergeConflict]] = None) -> 'MergeResult':
        return cls(error_message=message, conflicts=conflicts or [])

    def __repr__(self) -> str:
        if not self.success:
            return f"MergeResult(failed, conflicts={len(self.conflicts)})"
        if self.fast_forward:
            return f"MergeResult(fast-forward to {self.commit[:7]})"
        if self.commit is None:
            return "MergeResult(up to date)"
        return f"MergeResult(commit={self.commit[:7]})"


def merge_lines(base: Sequence[str], ours: Sequence[str], theirs: Sequence[str]) -> Optional[List[str]]:
    """
    Three-way merge of line sequences.

    Changes from both sides are applied to ``base``.  Changes that overlap
    or touch are a conflict unless both sides made the same change.

    Returns:
        Merged lines, or None on conflict
    """
    ours, theirs = list(ours), list(theirs)
    if ours == theirs:
        return ours
    if list(base) == ours:
        return theirs
    if list(base) == theirs:
        return ours

    our_changes = _line_changes(base, ours)
    their_changes = _line_changes(base, theirs)

    merged: List[str] = []
    pos = 0
    i = j = 0
    while i < len(our_changes) or j < len(their_changes):
        if j >= len(their_changes) or (i < len(our_changes) and our_changes[i][0] <= their_changes[j][0]):
            start, end = our_changes[i][0], our_changes[i][1]
            ours_group, theirs_group = [our_changes[i]], []
            i += 1
        else:
            start, end = their_changes[j][0], their_changes[j][1]
            ours_group, theirs_group = [], [their_changes[j]]
            j += 1

        while True:
            if i < len(our_changes) and our_changes[i][0] <= end:
                end = max(end, our_changes[i][1])
                ours_group.append(our_changes[i])
                i += 1
            elif j < len(their_changes) and their_changes[j][0] <= end:
                end = max(end, their_changes[j][1])
                theirs_group.append(their_changes[j])
                j += 1
            else:
                break

        merged.extend(base[pos:start])
        our_side = _apply_changes(base, start, end, ours_group)
        their_side = _apply_changes(base, start, end, theirs_group)
        if not theirs_group:
            merged.extend(our_side)
        elif not ours_group:
            merged.extend(their_side)
        elif our_side == their_side:
            merged.extend(our_side)
        else:
            return None
        pos = end

    merged.extend(base[pos:])
    return merged


def _line_changes(base: Sequence[str], other: Sequence[str]) -> List[Tuple[int, int, List[str]]]:
    matcher = SequenceMatcher(None, base, other, autojunk=False)
    return [
        (i1, i2, list(other[j1:j2]))
        for tag, i1, i2, j1, j2 in matcher.get_opcodes()
        if tag != 'equal'
    ]


def _apply_changes(base: Sequence[str], start: int, end: int,
                   changes: List[Tuple[int, int, List[str]]]) -> List[str]:
    out: List[str] = []
    pos = start
    for change_start, change_end, lines in changes:
        out.extend(base[pos:change_start])
        out.extend(lines)
        pos = change_end
    out.extend(base[pos:end])
    return out


def merge_contents(base: Optional[bytes], ours: Optional[bytes],
                   theirs: Optional[bytes]) -> Optional[bytes]:
    """
    Three-way merge of file contents (None means the file is absent).

    Returns:
        Merged content, or None if the contents conflict
    """
    if ours == theirs:
        return ours
    if base == ours:
        return theirs
    if base == theirs:
        return ours
    if base is None or ours is None or theirs is None:
        return None

    try:
        base_lines = base.decode('utf-8').splitlines(keepends=True)
        ours_lines = ours.decode('utf-8').splitlines(keepends=True)
        theirs_lines = theirs.decode('utf-8').splitlines(keepends=True)
    except UnicodeDecodeError:
        return None

    merged = merge_lines(base_lines, ours_lines, theirs_lines)
    if merged is None:
        return None
    return ''.join(merged).encode('utf-8')


@dataclass
class _TreeMerge:
    files: Dict[str, FileEntry] = field(default_factory=dict)
    blobs: List[Blob] = field(default_factory=list)
    conflicts: List[MergeConflict] = field(default_factory=list)


def _directory_conflicts(paths) -> List[str]:
    """Paths that are also the parent directory of another path."""
    conflicts = set()
    for path in paths:
        parent = posixpath.dirname(path)
        while parent:
            if parent in paths:
                conflicts.add(parent)
            parent = posixpath.dirname(parent)
    return sorted(conflicts)


class MergeEngine:
    """
    Handles merge operations for one repository.

    Supports:
    - Fast-forward detection
    - Three-way merges of ordinary files
    - Recursive merges of submodule pointers
    - Merge base finding (common ancestor)

    Args:
        repo: Repository to merge in; a bare handle is enough
        open_option: How submodules are opened for recursive merges
        author: Identity for created commits; read from config when None
    """

    def __init__(self, repo, open_option: SubOpenOption = SubOpenOption.FORCE_BARE,
                 author: Optional[str] = None):
        self.repo = repo
        self.open_option = open_option
        self.author = author

    def find_merge_base(self, commit1_hash: str, commit2_hash: str) -> Optional[str]:
        """
        Find the common ancestor (merge base) of two commits.

        Among the common ancestors, picks the one with the smallest sum of
        distances to both commits.

        Returns:
            Hash of merge base commit, or None if no common ancestor
        """
        if commit1_hash == commit2_hash:
            return commit1_hash

        distances1 = self._ancestor_distances(commit1_hash)
        distances2 = self._ancestor_distances(commit2_hash)

        common = set(distances1) & set(distances2)
        if not common:
            return None

        return min(common, key=lambda h: (distances1[h] + distances2[h], h))

    def _ancestor_distances(self, commit_hash: str) -> Dict[str, int]:
        """Breadth-first distances from ``commit_hash`` to each ancestor (itself included)."""
        distances = {commit_hash: 0}
        to_visit = deque([commit_hash])

        while to_visit:
            current = to_visit.popleft()
            for parent in self.repo.get_commit(current).parents:
                if parent not in distances:
                    distances[parent] = distances[current] + 1
                    to_visit.append(parent)

        return distances

    def _get_ancestors(self, commit_hash: str):
        return set(self._ancestor_distances(commit_hash))

    def is_ancestor(self, ancestor_hash: str, commit_hash: str) -> bool:
        """Whether ``ancestor_hash`` is ``commit_hash`` or one of its ancestors."""
        return ancestor_hash in self._get_ancestors(commit_hash)

    def can_fast_forward(self, current_hash: str, target_hash: str) -> bool:
        """A fast-forward is possible when current is an ancestor of target."""
        return self.is_ancestor(current_hash, target_hash)

    def merge(self, our_commitish: str, their_commitish: str,
              mode: MergeMode = MergeMode.NORMAL, message: str = '') -> MergeResult:
        """
        Resolve two commit-ish names and merge them.

        Returns:
            MergeResult; an unresolvable name is a failed result
        """
        resolved = []
        for name in (our_commitish, their_commitish):
            commit_hash = self.repo.resolve_commitish(name)
            if commit_hash is None:
                return MergeResult.failure(f"Could not resolve {name} to a commit.")
            resolved.append(commit_hash)

        return self.merge_commits(resolved[0], resolved[1], mode, message)

    def merge_commits(self, our_hash: str, their_hash: str,
                      mode: MergeMode = MergeMode.NORMAL, message: str = '') -> MergeResult:
        """
        Merge ``their_hash`` into ``our_hash``.

        Creates a two-parent commit when a merge is needed but moves no ref.

        Raises:
            ConsistencyError: If a submodule needed for the merge cannot be
                opened or its pointers and records disagree
        """
        if our_hash == their_hash or self.is_ancestor(their_hash, our_hash):
            logger.debug("%s already contains %s", our_hash[:7], their_hash[:7])
            return MergeResult()

        if mode == MergeMode.NORMAL and self.can_fast_forward(our_hash, their_hash):
            logger.debug("Fast-forward %s to %s", our_hash[:7], their_hash[:7])
            return MergeResult(commit=their_hash, fast_forward=True)

        base_hash = self.find_merge_base(our_hash, their_hash)
        if base_hash is None:
            return MergeResult.failure(
                f"Refusing to merge unrelated histories {our_hash[:7]} and {their_hash[:7]}."
            )

        try:
            author = self.author or get_config(self.repo).get_author()
        except UserError as e:
            return MergeResult.failure(str(e))

        tree_merge = self.merge_trees(
            self.repo.get_commit(base_hash).tree,
            self.repo.get_commit(our_hash).tree,
            self.repo.get_commit(their_hash).tree,
            our_hash, their_hash, author, message
        )
        if tree_merge.conflicts:
            return MergeResult.failure(
                '\n'.join(c.describe() for c in tree_merge.conflicts),
                tree_merge.conflicts
            )

        for blob in tree_merge.blobs:
            self.repo.write_object(blob)
        tree_hash = self.repo.build_tree(tree_merge.files)

        commit = Commit.create(tree_hash, [our_hash, their_hash], author, author, message)
        commit_hash = self.repo.write_object(commit)
        logger.info("Created merge commit %s", commit_hash[:7])
        return MergeResult(commit=commit_hash)

    def merge_trees(self, base_tree: Optional[str], ours_tree: Optional[str],
                    theirs_tree: Optional[str], our_hash: Optional[str] = None,
                    their_hash: Optional[str] = None, author: Optional[str] = None,
                    message: str = '') -> _TreeMerge:
        """
        Three-way merge of trees.

        Ordinary files are merged first and all their conflicts collected.
        Submodule pointers are then merged in path order, stopping at the
        first submodule that fails.  New blobs are returned rather than
        written.
        """
        base_files = self.repo.flatten_tree(base_tree)
        ours_files = self.repo.flatten_tree(ours_tree)
        theirs_files = self.repo.flatten_tree(theirs_tree)

        modules = (base_files.pop(MODULES_FILENAME, None),
                   ours_files.pop(MODULES_FILENAME, None),
                   theirs_files.pop(MODULES_FILENAME, None))

        result = _TreeMerge()
        submodule_paths = []

        for path in sorted(set(base_files) | set(ours_files) | set(theirs_files)):
            entries = (base_files.get(path), ours_files.get(path), theirs_files.get(path))
            if any(e is not None and e.mode == MODE_SUBMODULE for e in entries):
                submodule_paths.append(path)
                continue
            self._merge_file(path, *entries, result)

        merged_paths = set(result.files)
        merged_paths.update(
            path for path in submodule_paths
            if self._survives(base_files.get(path), ours_files.get(path), theirs_files.get(path))
        )
        for path in _directory_conflicts(merged_paths):
            result.conflicts.append(MergeConflict(path, 'file/directory'))

        if result.conflicts:
            return result

        openers = _SubmoduleOpeners(self.repo, our_hash, their_hash)
        for path in submodule_paths:
            entries = (base_files.get(path), ours_files.get(path), theirs_files.get(path))
            conflict = self._merge_submodule(path, *entries, openers, author, message, result)
            if conflict is not None:
                result.conflicts.append(conflict)
                return result

        self._merge_modules_file(*modules, result)
        return result

    def _merge_file(self, path: str, base: Optional[FileEntry], ours: Optional[FileEntry],
                    theirs: Optional[FileEntry], result: _TreeMerge) -> None:
        # Case 1: unchanged in both (or the same change)
        if ours == theirs:
            if ours is not None:
                result.files[path] = ours
            return

        # Case 2: only changed in ours
        if base == theirs:
            if ours is not None:
                result.files[path] = ours
            return

        # Case 3: only changed in theirs
        if base == ours:
            if theirs is not None:
                result.files[path] = theirs
            return

        # Case 4: changed in both
        if ours is None or theirs is None:
            result.conflicts.append(MergeConflict(path, 'modify/delete'))
            return
        if base is None:
            if ours.hash != theirs.hash:
                result.conflicts.append(MergeConflict(path, 'add/add'))
                return
            merged_hash = ours.hash
        else:
            merged = merge_contents(self._blob_data(base.hash),
                                    self._blob_data(ours.hash),
                                    self._blob_data(theirs.hash))
            if merged is None:
                result.conflicts.append(MergeConflict(path, 'content'))
                return
            blob = Blob(merged)
            result.blobs.append(blob)
            merged_hash = blob.hash

        result.files[path] = FileEntry(self._merge_mode(base, ours, theirs), merged_hash)

    @staticmethod
    def _survives(base: Optional[FileEntry], ours: Optional[FileEntry],
                  theirs: Optional[FileEntry]) -> bool:
        """Whether a path is still present after merging its three entries."""
        if ours == theirs or base == theirs:
            return ours is not None
        if base == ours:
            return theirs is not None
        return True

    @staticmethod
    def _merge_mode(base: Optional[FileEntry], ours: FileEntry, theirs: FileEntry) -> str:
        if base is not None and ours.mode == base.mode:
            return theirs.mode
        return ours.mode

    def _blob_data(self, blob_hash: str) -> bytes:
        return self.repo.read_object(blob_hash).data

    def _merge_submodule(self, path: str, base: Optional[FileEntry], ours: Optional[FileEntry],
                         theirs: Optional[FileEntry], openers: '_SubmoduleOpeners',
                         author: Optional[str], message: str,
                         result: _TreeMerge) -> Optional[MergeConflict]:
        if ours == theirs:
            if ours is not None:
                result.files[path] = ours
            return None
        if base == theirs:
            if ours is not None:
                result.files[path] = ours
            return None
        if base == ours:
            if theirs is not None:
                result.files[path] = theirs
            return None

        if ours is None or theirs is None:
            return MergeConflict(path, 'submodule modify/delete')
        if ours.mode != MODE_SUBMODULE or theirs.mode != MODE_SUBMODULE:
            return MergeConflict(path, 'file/submodule')

        logger.info("Merging submodule %s: %s and %s", path, ours.hash[:7], theirs.hash[:7])
        sub_repo = openers.get_subrepo(path, self.open_option)
        sub_engine = MergeEngine(sub_repo, self.open_option, author)
        sub_result = sub_engine.merge_commits(ours.hash, theirs.hash, MergeMode.NORMAL, message)

        if not sub_result.success:
            return MergeConflict(path, 'submodule', sub_result.error_message)

        result.files[path] = FileEntry(MODE_SUBMODULE, sub_result.commit or ours.hash)
        return None

    def _read_records(self, entry: Optional[FileEntry]) -> Dict[str, SubmoduleRecord]:
        if entry is None:
            return {}
        return parse_modules(self._blob_data(entry.hash).decode())

    def _merge_modules_file(self, base: Optional[FileEntry], ours: Optional[FileEntry],
                            theirs: Optional[FileEntry], result: _TreeMerge) -> None:
        """
        Merge ``.litmodules`` and make its records match the merged pointers.

        Records are merged per submodule name.  Records whose pointer did not
        survive the merge are dropped; a surviving pointer without a merged
        record takes its record from whichever side has one.

        Raises:
            ConsistencyError: If a merged pointer has no record on any side
        """
        base_records = self._read_records(base)
        our_records = self._read_records(ours)
        their_records = self._read_records(theirs)

        pointer_paths = {p for p, e in result.files.items() if e.mode == MODE_SUBMODULE}
        merged: Dict[str, SubmoduleRecord] = {}

        for name in sorted(set(base_records) | set(our_records) | set(their_records)):
            b, o, t = base_records.get(name), our_records.get(name), their_records.get(name)
            if o == t or b == t:
                record = o
            elif b == o:
                record = t
            elif o is not None and t is not None:
                result.conflicts.append(MergeConflict(MODULES_FILENAME, 'submodule config', name))
                return
            else:
                record = o or t
            if record is not None and record.path in pointer_paths:
                merged[name] = record

        recorded_paths = {r.path for r in merged.values()}
        for path in sorted(pointer_paths - recorded_paths):
            for records in (our_records, their_records, base_records):
                record = next((r for r in records.values() if r.path == path), None)
                if record is not None:
                    merged[record.name] = record
                    break
            else:
                raise ConsistencyError(f"Submodule pointer {path} has no {MODULES_FILENAME} record")

        if not merged:
            return

        if ours == theirs or base == theirs:
            candidates = ((ours, our_records), (theirs, their_records))
        else:
            candidates = ((theirs, their_records), (ours, our_records))
        for entry, records in candidates:
            if entry is not None and records == merged:
                result.files[MODULES_FILENAME] = entry
                return

        blob = Blob(format_modules(merged).encode())
        result.blobs.append(blob)
        result.files[MODULES_FILENAME] = FileEntry(MODE_FILE, blob.hash)


class _SubmoduleOpeners:
    """Opens submodules known to either side of a merge."""

    def __init__(self, repo, our_hash: Optional[str], their_hash: Optional[str]):
        self.repo = repo
        self.commits = [h for h in (our_hash, their_hash) if h is not None]
        self._openers: Dict[str, Opener] = {}

    def _opener(self, commit_hash: str) -> Opener:
        if commit_hash not in self._openers:
            self._openers[commit_hash] = Opener(self.repo, commit_hash)
        return self._openers[commit_hash]

    def get_subrepo(self, path: str, open_option: SubOpenOption):
        for commit_hash in self.commits:
            try:
                return self._opener(commit_hash).get_subrepo(path, open_option)
            except NotFoundError:
                continue
        raise ConsistencyError(f"Submodule {path} has no {MODULES_FILENAME} record")


def merge_bare(repo, our_commitish: str, their_commitish: str, message: str,
               mode: MergeMode = MergeMode.NORMAL,
               open_option: SubOpenOption = SubOpenOption.FORCE_BARE) -> MergeResult:
    """
    Merge two commits of a meta repository without a working tree.

    Runs the ``post-merge`` hook once when a new commit was created.

    Args:
        repo: Meta repository (bare or not)
        our_commitish: Commit to merge into
        their_commitish: Commit to merge
        message: Message for the merge commit
        mode: NORMAL or FORCE_COMMIT
        open_option: How submodules are opened

    Returns:
        MergeResult
    """
    if not message:
        raise UserError("A merge message is required")

    result = MergeEngine(repo, open_option).merge(our_commitish, their_commitish, mode, message)
    if result.created_commit:
        exec_hook(repo, 'post-merge', ['0'])
    return result
