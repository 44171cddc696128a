"""Diff across a meta repository and its submodules.

The meta repository is diffed first.  Every submodule pointer that changed
in that diff is then opened and diffed in its own repository, with the
meta-level targets and path filters translated into the submodule's terms.
Submodules are visited in the order they appear in the meta diff, which is
path order.
"""

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional, TextIO, Tuple

from litmeta.core.errors import ConsistencyError, LitMetaError, NotFoundError, UserError
from litmeta.operations.diff import DeltaStatus, Diff, DiffDelta
from litmeta.operations.open import Opener, SubOpenOption

logger = logging.getLogger(__name__)


@dataclass
class DiffTargets:
    """
    Parsed ``diff`` arguments.

    ``treeish1``/``treeish2`` are the literal names given on the command
    line, ``tree1``/``tree2`` the trees they resolved to.  ``paths`` holds
    the path filters, relative to the meta repository root.
    """
    treeish1: Optional[str] = None
    treeish2: Optional[str] = None
    tree1: Optional[str] = None
    tree2: Optional[str] = None
    cached: bool = False
    name_only: bool = False
    name_status: bool = False
    raw: bool = False
    color: bool = False
    paths: List[str] = field(default_factory=list)

    @property
    def num_trees(self) -> int:
        return sum(1 for t in (self.treeish1, self.treeish2) if t is not None)

    @property
    def uses_workdir(self) -> bool:
        return self.num_trees < 2 and not self.cached


class SubmoduleChange(NamedTuple):
    """Pointer change of one submodule; None marks an added or removed side."""
    old_sha: Optional[str]
    new_sha: Optional[str]


def _normalize_path(path: str) -> str:
    path = path.strip()
    while path.startswith('./'):
        path = path[2:]
    return path.rstrip('/') or '.'


def resolve_diff_targets(
    repo,
    args: List[str],
    paths: Optional[List[str]] = None,
    cached: bool = False,
    name_only: bool = False,
    name_status: bool = False,
    raw: bool = False,
    color: bool = False
) -> DiffTargets:
    """
    Split ``diff`` arguments into tree-ish targets and path filters.

    Args:
        repo: Meta repository
        args: Arguments before ``--`` (or all arguments if there was none)
        paths: Arguments after an explicit ``--``, or None if there was no
            separator

    Leading arguments are resolved as tree-ish in order; ``A..B`` names two.
    With an explicit ``--`` every argument before it must resolve.  Without
    one, the first argument that does not resolve starts the path filters,
    provided it names an existing path.

    Raises:
        UserError: If an argument is neither a tree-ish nor (where allowed)
            an existing path, or too many trees are given
    """
    treeishes: List[Tuple[str, str]] = []
    path_filters: List[str] = []

    def _resolve(arg: str) -> Optional[List[Tuple[str, str]]]:
        names = arg.split('..', 1) if '..' in arg else [arg]
        if '' in names:
            return None
        resolved = []
        for name in names:
            tree = repo.resolve_treeish(name)
            if tree is None:
                return None
            resolved.append((name, tree))
        return resolved

    for i, arg in enumerate(args):
        if len(treeishes) >= 2:
            if paths is not None:
                raise UserError(f"Too many revisions: '{arg}'")
            path_filters.extend(args[i:])
            break

        resolved = _resolve(arg)
        if resolved is not None and len(treeishes) + len(resolved) <= 2:
            treeishes.extend(resolved)
            continue

        if paths is not None:
            raise UserError(f"bad revision '{arg}'")
        if repo.work_tree is None or not (repo.work_tree / arg).exists():
            raise UserError(
                f"ambiguous argument '{arg}': unknown revision or path not in the working tree."
            )
        path_filters.extend(args[i:])
        break

    if paths is not None:
        path_filters.extend(paths)

    targets = DiffTargets(cached=cached, name_only=name_only, name_status=name_status,
                          raw=raw, color=color,
                          paths=[_normalize_path(p) for p in path_filters])
    if treeishes:
        targets.treeish1, targets.tree1 = treeishes[0]
    if len(treeishes) > 1:
        targets.treeish2, targets.tree2 = treeishes[1]

    if cached and targets.num_trees > 1:
        raise UserError("--cached takes at most one revision")

    logger.debug("Diff targets: %s", targets)
    return targets


def get_diff(repo, targets: DiffTargets, paths: Optional[List[str]] = None) -> Diff:
    """
    Diff ``repo`` according to ``targets``.

    Two trees are compared directly.  With one tree the tree is compared
    against the working tree (through the index), or against the index when
    ``cached``.  With none the index is compared against the working tree,
    or HEAD against the index when ``cached``.
    """
    engine = repo.diff
    if paths is None:
        paths = targets.paths

    if targets.num_trees == 2:
        return engine.tree_to_tree(targets.tree1, targets.tree2, paths)

    if targets.cached:
        tree = targets.tree1 if targets.num_trees == 1 else repo.head_tree()
        return engine.tree_to_index(tree, paths=paths)

    if repo.work_tree is None:
        raise UserError("This operation must be run in a work tree")
    if targets.num_trees == 1:
        return engine.tree_to_workdir_with_index(targets.tree1, paths=paths)
    return engine.index_to_workdir(paths=paths)


def get_submodule_changes_from_diff(diff: Diff, include_renames: bool = False) -> Dict[str, SubmoduleChange]:
    """
    Pointer changes in ``diff``, keyed by submodule path in diff order.

    Args:
        diff: Meta repository diff
        include_renames: Also report pointer entries whose delta is RENAMED.
            ``DiffEngine`` does no rename detection and reports a moved
            pointer as a deletion plus an addition, so this only matters
            for diffs that carry RENAMED deltas
    """
    changes: Dict[str, SubmoduleChange] = {}
    for delta in diff:
        if not (delta.old_file.is_submodule or delta.new_file.is_submodule):
            continue
        if delta.status == DeltaStatus.RENAMED and not include_renames:
            continue
        changes[delta.path] = SubmoduleChange(
            delta.old_file.hash if delta.old_file.is_submodule else None,
            delta.new_file.hash if delta.new_file.is_submodule else None,
        )
    return changes


def map_paths_to_submodule(sub_path: str, paths: List[str]) -> List[str]:
    """
    Express meta-level path filters relative to the submodule at
    ``sub_path``.

    Filters outside the submodule are dropped; a filter naming the submodule
    or a directory containing it becomes ``.``.
    """
    mapped = []
    for path in paths:
        path = _normalize_path(path)
        if path == '.' or path == sub_path or sub_path.startswith(path + '/'):
            mapped.append('.')
        elif path.startswith(sub_path + '/'):
            mapped.append(path[len(sub_path) + 1:])
    return mapped


def _commit_tree(sub_repo, commit_hash: Optional[str]) -> Optional[str]:
    if commit_hash is None:
        return None
    try:
        return sub_repo.get_commit(commit_hash).tree
    except NotFoundError:
        raise ConsistencyError(f"Submodule is missing commit {commit_hash}")


def render_diff(repo, diff: Diff, targets: DiffTargets) -> str:
    """Render ``diff`` in the output format selected by ``targets``."""
    engine = repo.diff
    if targets.name_only:
        text = engine.format_name_only(diff)
    elif targets.name_status:
        text = engine.format_name_status(diff)
    elif targets.raw:
        text = engine.format_raw(diff)
    else:
        text = engine.format_diff(engine.file_diffs(diff), color=targets.color)
    return text + '\n' if text else ''


def print_diff(meta_repo, sub_repo, sub_path: str, change: SubmoduleChange,
               targets: DiffTargets, stream: TextIO) -> bool:
    """
    Write the diff of one changed submodule to ``stream``.

    The meta-level targets are translated for the submodule: two trees
    become the old and new pointer commits, one tree compares the old
    pointer against the submodule's working tree, no tree compares the
    submodule's index against its working tree, and ``cached`` compares the
    old pointer against the new one.

    Returns:
        False if the path filters exclude the submodule entirely
    """
    sub_paths = map_paths_to_submodule(sub_path, targets.paths) if targets.paths else []
    if targets.paths and not sub_paths:
        logger.debug("Path filters exclude submodule %s", sub_path)
        return False
    if '.' in sub_paths:
        sub_paths = []

    engine = sub_repo.diff
    if targets.num_trees == 2 or targets.cached or sub_repo.is_bare:
        diff = engine.tree_to_tree(_commit_tree(sub_repo, change.old_sha),
                                   _commit_tree(sub_repo, change.new_sha),
                                   sub_paths)
    elif targets.num_trees == 1:
        diff = engine.tree_to_workdir_with_index(_commit_tree(sub_repo, change.old_sha),
                                                 paths=sub_paths)
    else:
        diff = engine.index_to_workdir(paths=sub_paths)

    stream.write(render_diff(sub_repo, diff, targets))
    return True


def _meta_file_diff(diff: Diff) -> Diff:
    deltas: List[DiffDelta] = [
        d for d in diff
        if not (d.old_file.is_submodule or d.new_file.is_submodule)
    ]
    return Diff(diff.repo, deltas)


def run_meta_diff(repo, targets: DiffTargets, stream: TextIO,
                  jobs: int = 1) -> List[Tuple[str, str]]:
    """
    Diff the meta repository and every changed submodule.

    Submodule diffs may be rendered by up to ``jobs`` threads; each is
    buffered and written to ``stream`` in discovery order.  A submodule that
    cannot be opened or diffed is reported and skipped.

    Returns:
        ``(submodule path, error message)`` for every submodule that failed
    """
    meta_diff = get_diff(repo, targets)
    stream.write(render_diff(repo, _meta_file_diff(meta_diff), targets))

    changes = get_submodule_changes_from_diff(meta_diff, include_renames=True)
    if not changes:
        return []

    opener = Opener(repo)
    open_option = SubOpenOption.FORCE_OPEN if targets.uses_workdir else SubOpenOption.PREFER_CACHED

    def _render(sub_path: str) -> Tuple[str, Optional[str]]:
        buffer = io.StringIO()
        try:
            sub_repo = opener.get_subrepo(sub_path, open_option)
            print_diff(repo, sub_repo, sub_path, changes[sub_path], targets, buffer)
        except NotFoundError as e:
            return '', f"Submodule '{sub_path}' cannot be opened: {e}"
        except LitMetaError as e:
            return '', str(e)
        return buffer.getvalue(), None

    names = list(changes)
    if jobs > 1 and len(names) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            results = list(executor.map(_render, names))
    else:
        results = [_render(name) for name in names]

    failures = []
    for name, (output, error) in zip(names, results):
        if error is not None:
            logger.warning("Skipping submodule %s: %s", name, error)
            failures.append((name, error))
            continue
        stream.write(output)
    return failures
