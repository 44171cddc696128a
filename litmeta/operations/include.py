"""Adding an existing repository to a meta repository as a submodule."""

import logging
import posixpath
import shutil
from pathlib import Path

from litmeta.core.errors import UserError
from litmeta.core.repository import Repository
from litmeta.core.submodule_config import (MODULES_FILENAME, SubmoduleRecord,
                                           read_modules_from_workdir,
                                           write_modules_to_workdir)
from litmeta.operations.open import Opener, SubOpenOption

logger = logging.getLogger(__name__)


def include(repo: Repository, url: str, path: str) -> Repository:
    """
    Include the local repository at ``url`` as a submodule at ``path``.

    The repository's objects and refs are copied into
    ``.lit/modules/<path>``, the pointer and the ``.litmodules`` record are
    staged in the meta index, and the submodule is opened at the source's
    HEAD commit.

    Args:
        repo: Meta repository with a working tree
        url: Path of the repository to include, absolute or relative to the
            meta repository root
        path: Where to put the submodule, relative to the meta repository root

    Returns:
        Handle for the opened submodule

    Raises:
        UserError: If the source is not a repository with commits or the
            destination is taken
    """
    if repo.work_tree is None:
        raise UserError("include must be run in a work tree")

    path = posixpath.normpath(path.strip('/'))
    if path in ('', '.') or path.startswith('..'):
        raise UserError(f"Invalid submodule path '{path}'")

    source_dir = Path(url)
    if not source_dir.is_absolute():
        source_dir = repo.work_tree / source_dir
    if not (source_dir / '.lit').exists():
        raise UserError(f"Not a lit repository: {url}")
    source = Repository.open(str(source_dir))

    head = source.head_commit()
    if head is None:
        raise UserError(f"Repository {url} has no commits")

    records = read_modules_from_workdir(repo)
    store = repo.modules_dir / path
    if path in records or (repo.work_tree / path).exists() or store.exists():
        raise UserError(f"'{path}' already exists")

    logger.info("Including %s at %s", url, path)
    _seed_store(source, store)

    records[path] = SubmoduleRecord(path, path, url)
    write_modules_to_workdir(repo, records)

    index = repo.index()
    index.add_submodule(path, head)
    index.add_file(repo, MODULES_FILENAME)

    sub_repo = Opener(repo).get_subrepo(path, SubOpenOption.FORCE_OPEN)
    branch = source.refs.get_current_branch()
    if branch is not None:
        sub_repo.refs.set_head(branch)
    return sub_repo


def _seed_store(source: Repository, store: Path) -> None:
    """Copy the objects and refs of ``source`` into a new store."""
    Repository.open_bare(store).init()
    for name in ('objects', 'refs'):
        source_dir = source.lit_dir / name
        if source_dir.exists():
            shutil.copytree(source_dir, store / name, dirs_exist_ok=True)
