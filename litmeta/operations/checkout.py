"""Writing a commit's tree into a working tree."""

import logging
import os

from litmeta.core.index import Index
from litmeta.core.objects import MODE_EXECUTABLE, Tree

logger = logging.getLogger(__name__)


def checkout_commit(repo, commit_hash: str, detach: bool = True) -> None:
    """
    Check out ``commit_hash`` into the (empty or fresh) working tree of
    ``repo`` and write a matching index.

    Files already present in the working tree are overwritten; nothing is
    removed.  Submodule pointer entries become empty directories.

    Args:
        repo: Repository with a working tree
        commit_hash: Commit to check out
        detach: Point HEAD directly at the commit
    """
    commit = repo.get_commit(commit_hash)
    repo.work_tree.mkdir(parents=True, exist_ok=True)

    _restore_tree(repo, repo.get_tree(commit.tree), repo.work_tree)

    index = Index.from_tree(repo, commit.tree)
    index.write(str(repo.index_file))

    if detach:
        repo.refs.set_head(commit_hash, symbolic=False)

    logger.debug("Checked out %s into %s", commit_hash[:7], repo.work_tree)


def _restore_tree(repo, tree: Tree, path) -> None:
    """Recursively restore tree to working directory."""
    for entry in tree.entries:
        entry_path = path / entry.name

        if entry.is_submodule:
            entry_path.mkdir(exist_ok=True)
        elif entry.type == 'tree':
            entry_path.mkdir(exist_ok=True)
            _restore_tree(repo, repo.get_tree(entry.hash), entry_path)
        else:
            entry_path.write_bytes(repo.read_object(entry.hash).data)
            if entry.mode == MODE_EXECUTABLE:
                os.chmod(entry_path, 0o755)
