"""Core storage layer for litmeta.

This module contains the core data structures:
- Lit objects (Blob, Tree, Commit)
- Repository management (object store, optional working tree)
- Index/staging area
- Reference management
- Configuration and ``.litmodules`` submodule configuration
- Error types

For status, diff, merge and submodule opening, see litmeta.operations
"""

from litmeta.core.errors import (LitMetaError, UserError, NotFoundError,
                                 ConsistencyError, ObjectNotFoundError)
from litmeta.core.objects import LitObject, Blob, Tree, TreeEntry, Commit
from litmeta.core.repository import Repository, FileEntry
from litmeta.core.index import Index, IndexEntry
from litmeta.core.refs import RefManager
from litmeta.core.config import Config, get_config
from litmeta.core.hash import hash_object, hash_blob_data

__all__ = [
    'LitMetaError',
    'UserError',
    'NotFoundError',
    'ConsistencyError',
    'ObjectNotFoundError',
    'LitObject',
    'Blob',
    'Tree',
    'TreeEntry',
    'Commit',
    'Repository',
    'FileEntry',
    'Index',
    'IndexEntry',
    'RefManager',
    'Config',
    'get_config',
    'hash_object',
    'hash_blob_data',
]
