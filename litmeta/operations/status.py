"""Per-repository status computation.

``get_repo_status`` reports the ordinary files of one repository.  Submodule
pointer entries and ``.litmodules`` never appear in its result; for a meta
repository their state is collected separately by ``get_meta_status``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from litmeta.core.errors import LitMetaError
from litmeta.core.objects import MODE_SUBMODULE
from litmeta.core.submodule_config import (MODULES_FILENAME, read_modules_from_tree,
                                           read_modules_from_workdir)
from litmeta.operations.diff import DeltaStatus, Diff, matches_pathspec

logger = logging.getLogger(__name__)


class FileStatus(Enum):
    ADDED = 'added'
    MODIFIED = 'modified'
    REMOVED = 'removed'
    RENAMED = 'renamed'
    TYPECHANGED = 'typechanged'


_DELTA_TO_FILE_STATUS = {
    DeltaStatus.ADDED: FileStatus.ADDED,
    DeltaStatus.UNTRACKED: FileStatus.ADDED,
    DeltaStatus.MODIFIED: FileStatus.MODIFIED,
    DeltaStatus.DELETED: FileStatus.REMOVED,
    DeltaStatus.RENAMED: FileStatus.RENAMED,
    DeltaStatus.TYPECHANGED: FileStatus.TYPECHANGED,
}


@dataclass
class RepoStatus:
    """Staged and unstaged changes of one repository, keyed by path."""
    staged: Dict[str, FileStatus] = field(default_factory=dict)
    workdir: Dict[str, FileStatus] = field(default_factory=dict)

    @property
    def is_clean(self) -> bool:
        return not self.staged and not self.workdir


def convert_delta_status(status: DeltaStatus) -> FileStatus:
    """Map a diff delta status to a file status."""
    try:
        return _DELTA_TO_FILE_STATUS[status]
    except KeyError:
        raise ValueError(f"No file status for delta status {status.name}")


def read_diff(diff: Diff) -> Dict[str, FileStatus]:
    """
    Collect ``path -> FileStatus`` from a diff.

    Conflicted deltas, submodule pointers and ``.litmodules`` are skipped.
    """
    result = {}
    for delta in diff:
        if delta.status == DeltaStatus.CONFLICTED:
            continue
        if delta.path == MODULES_FILENAME:
            continue
        if delta.old_file.mode == MODE_SUBMODULE or delta.new_file.mode == MODE_SUBMODULE:
            continue
        result[delta.path] = convert_delta_status(delta.status)
    return result


def get_repo_status(
    repo,
    tree_hash: Optional[str],
    paths: Optional[List[str]] = None,
    ignore_index: bool = False,
    all_untracked: bool = False
) -> RepoStatus:
    """
    Compute the status of ``repo`` against ``tree_hash``.

    Args:
        repo: Repository with a working tree
        tree_hash: Reference tree, or None for the empty tree
        paths: Path prefixes to restrict to; empty means everything
        ignore_index: Compare the working tree directly against the tree and
            leave ``staged`` empty
        all_untracked: List untracked files individually instead of
            collapsing them to their outermost untracked directory

    Returns:
        RepoStatus
    """
    engine = repo.diff
    status = RepoStatus()

    if ignore_index:
        diff = engine.tree_to_workdir(tree_hash, paths,
                                      include_untracked=True,
                                      recurse_untracked_dirs=all_untracked)
        status.workdir = read_diff(diff)
        return status

    index = repo.index()
    status.workdir = read_diff(engine.index_to_workdir(index, paths,
                                                       include_untracked=True,
                                                       recurse_untracked_dirs=all_untracked))
    status.staged = read_diff(engine.tree_to_index(tree_hash, index, paths))
    return status


@dataclass
class SubmoduleStatus:
    """
    Pointer state of one submodule.

    ``commit_sha`` is the pointer in HEAD, ``index_sha`` the staged pointer
    and ``workdir_sha`` the HEAD of the open submodule (None when bare).
    ``repo_status`` is the open submodule's own RepoStatus.
    """
    name: str
    path: str
    commit_sha: Optional[str] = None
    index_sha: Optional[str] = None
    workdir_sha: Optional[str] = None
    repo_status: Optional[RepoStatus] = None
    error: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.workdir_sha is not None

    @property
    def staged_change(self) -> Optional[FileStatus]:
        if self.commit_sha == self.index_sha:
            return None
        if self.commit_sha is None:
            return FileStatus.ADDED
        if self.index_sha is None:
            return FileStatus.REMOVED
        return FileStatus.MODIFIED

    @property
    def workdir_changed(self) -> bool:
        return self.is_open and self.index_sha is not None and self.workdir_sha != self.index_sha


@dataclass
class MetaStatus:
    """Status of a meta repository: its own files plus every submodule."""
    repo_status: RepoStatus
    submodules: Dict[str, SubmoduleStatus] = field(default_factory=dict)


def get_meta_status(repo, paths: Optional[List[str]] = None,
                    all_untracked: bool = False) -> MetaStatus:
    """
    Compute the status of a meta repository and its submodules.

    Submodules that cannot be inspected are reported with ``error`` set;
    the others are still computed.
    """
    from litmeta.operations.open import Opener, SubOpenOption

    head_tree = repo.head_tree()
    meta = MetaStatus(get_repo_status(repo, head_tree, paths, all_untracked=all_untracked))

    head_pointers = {
        path: entry.hash
        for path, entry in repo.flatten_tree(head_tree).items()
        if entry.mode == MODE_SUBMODULE
    }
    index_pointers = {
        path: entry.sha1
        for path, entry in repo.index().entries.items()
        if entry.is_submodule
    }

    records = dict(read_modules_from_tree(repo, head_tree))
    records.update(read_modules_from_workdir(repo))
    names_by_path = {record.path: name for name, record in records.items()}

    opener = Opener(repo)
    for path in sorted(set(head_pointers) | set(index_pointers)):
        if not matches_pathspec(path, paths, container=True):
            continue
        sub = SubmoduleStatus(name=names_by_path.get(path, path), path=path,
                              commit_sha=head_pointers.get(path),
                              index_sha=index_pointers.get(path))
        meta.submodules[path] = sub
        if (repo.work_tree / path / '.lit').exists():
            try:
                sub_repo = opener.get_subrepo(sub.name, SubOpenOption.PREFER_CACHED)
                sub.workdir_sha = sub_repo.head_commit()
                sub.repo_status = get_repo_status(sub_repo, sub_repo.head_tree(),
                                                  all_untracked=all_untracked)
            except LitMetaError as e:
                logger.warning("Could not read status of submodule %s: %s", path, e)
                sub.error = str(e)

    return meta
