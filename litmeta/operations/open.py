"""Opening submodules.

A submodule's object store lives in the meta repository at
``.lit/modules/<name>``.  The submodule is *open* when a working tree for it
exists at ``<meta work tree>/<path>`` (its ``.lit`` is then a link file
pointing at the store) and *bare* otherwise.  ``Opener`` hands out
repository handles for submodules and is the only code that materializes
working trees.
"""

import logging
import threading
from enum import Enum
from typing import Dict, List, Optional

from litmeta.core.errors import ConsistencyError, NotFoundError, UserError
from litmeta.core.repository import Repository
from litmeta.core.submodule_config import (SubmoduleRecord, find_record,
                                           read_modules_from_tree,
                                           read_modules_from_workdir,
                                           submodule_pointers)
from litmeta.operations.checkout import checkout_commit

logger = logging.getLogger(__name__)


class SubOpenOption(Enum):
    """How ``Opener.get_subrepo`` may satisfy a request."""
    FORCE_OPEN = 'force_open'
    FORCE_BARE = 'force_bare'
    PREFER_CACHED = 'prefer_cached'


class Opener:
    """
    Hands out handles for the submodules of a meta repository.

    Submodule records and pointers come from ``commit_hash`` (HEAD by
    default).  When the meta repository has a working tree, records in the
    working tree ``.litmodules`` and pointers staged in the index are also
    known, so freshly included submodules can be opened.

    Handles are cached per submodule name for the lifetime of the Opener;
    ``get_subrepo`` is safe to call from several threads.
    """

    def __init__(self, repo: Repository, commit_hash: Optional[str] = None):
        self.repo = repo
        if commit_hash is None:
            commit_hash = repo.head_commit()
        self.commit_hash = commit_hash

        tree_hash = repo.get_commit(commit_hash).tree if commit_hash else None
        self._records: Dict[str, SubmoduleRecord] = read_modules_from_tree(repo, tree_hash)
        self._pointers: Dict[str, str] = submodule_pointers(repo, tree_hash)

        if repo.work_tree is not None:
            for name, record in read_modules_from_workdir(repo).items():
                self._records.setdefault(name, record)
            for path, entry in repo.index().entries.items():
                if entry.is_submodule:
                    self._pointers.setdefault(path, entry.sha1)

        self._cache: Dict[str, Repository] = {}
        self._lock = threading.Lock()

    @property
    def submodule_names(self) -> List[str]:
        return sorted(self._records)

    def record(self, name: str) -> SubmoduleRecord:
        """
        Look up a submodule by name or path.

        Raises:
            NotFoundError: If there is no such submodule
        """
        record = find_record(self._records, name)
        if record is None:
            raise NotFoundError(f"No submodule named '{name}'")
        return record

    def pointer(self, name: str) -> Optional[str]:
        """Commit recorded for the submodule, or None."""
        return self._pointers.get(self.record(name).path)

    def store_dir(self, record: SubmoduleRecord):
        return self.repo.modules_dir / record.name

    def is_open(self, name: str) -> bool:
        """Whether the submodule has a working tree on disk."""
        if self.repo.work_tree is None:
            return False
        return (self.repo.work_tree / self.record(name).path / '.lit').exists()

    def cached(self, name: str) -> Optional[Repository]:
        with self._lock:
            return self._cache.get(self.record(name).name)

    def get_subrepo(self, name: str,
                    open_option: SubOpenOption = SubOpenOption.FORCE_OPEN) -> Repository:
        """
        Get a handle for submodule ``name``.

        Args:
            name: Submodule name or path
            open_option: FORCE_OPEN to guarantee a working tree (materializing
                one from the recorded pointer if needed), FORCE_BARE for an
                object-store handle, PREFER_CACHED for whatever is available
                without materializing

        Returns:
            Repository handle for the submodule

        Raises:
            NotFoundError: If there is no such submodule
            ConsistencyError: If its store or pointer is missing
            UserError: If FORCE_OPEN is requested in a bare meta repository
        """
        record = self.record(name)

        with self._lock:
            cached = self._cache.get(record.name)

            if open_option == SubOpenOption.FORCE_OPEN:
                if cached is not None and not cached.is_bare:
                    return cached
                handle = self._open(record)
            elif cached is not None:
                return cached
            elif open_option == SubOpenOption.PREFER_CACHED and self._is_open_on_disk(record):
                handle = self._open_existing(record)
            else:
                handle = self._open_bare(record)

            self._cache[record.name] = handle
            return handle

    def _is_open_on_disk(self, record: SubmoduleRecord) -> bool:
        return (self.repo.work_tree is not None
                and (self.repo.work_tree / record.path / '.lit').exists())

    def _open_existing(self, record: SubmoduleRecord) -> Repository:
        return Repository.open(str(self.repo.work_tree / record.path))

    def _open_bare(self, record: SubmoduleRecord) -> Repository:
        store = self.store_dir(record)
        if not store.is_dir():
            if self._is_open_on_disk(record):
                return self._open_existing(record)
            raise ConsistencyError(f"Object store for submodule '{record.name}' is missing: {store}")
        return Repository.open_bare(store)

    def _open(self, record: SubmoduleRecord) -> Repository:
        if self.repo.work_tree is None:
            raise UserError(f"Cannot open submodule '{record.name}' in a bare repository")
        if self._is_open_on_disk(record):
            return self._open_existing(record)
        return self._materialize(record)

    def _materialize(self, record: SubmoduleRecord) -> Repository:
        commit_hash = self._pointers.get(record.path)
        if commit_hash is None:
            raise ConsistencyError(f"No pointer recorded for submodule '{record.name}'")

        store = self.store_dir(record)
        if not store.is_dir():
            raise ConsistencyError(f"Object store for submodule '{record.name}' is missing: {store}")

        sub_repo = Repository(str(self.repo.work_tree / record.path), str(store))
        if not sub_repo.object_exists(commit_hash):
            raise ConsistencyError(
                f"Submodule '{record.name}' has no commit {commit_hash} in {store}"
            )

        logger.info("Opening submodule %s at %s", record.name, commit_hash[:7])
        # The link file marks the submodule open, so it is written last.
        checkout_commit(sub_repo, commit_hash)
        sub_repo.write_link_file()
        return sub_repo
