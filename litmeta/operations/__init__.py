"""High-level operations for litmeta.

This module contains the operations built on the core storage layer:
- Diff engine (tree, index and working tree comparisons)
- Status of one repository and of a meta repository
- Opening submodules
- Diff across a meta repository and its submodules
- Recursive merge
"""

from litmeta.operations.diff import DiffEngine, Diff, DiffDelta, DiffFile, DeltaStatus
from litmeta.operations.status import FileStatus, RepoStatus, get_repo_status, get_meta_status
from litmeta.operations.open import Opener, SubOpenOption
from litmeta.operations.meta_diff import (DiffTargets, SubmoduleChange, resolve_diff_targets,
                                          get_diff, get_submodule_changes_from_diff,
                                          print_diff, run_meta_diff)
from litmeta.operations.merge import MergeEngine, MergeMode, MergeResult, merge_bare

__all__ = [
    'DiffEngine',
    'Diff',
    'DiffDelta',
    'DiffFile',
    'DeltaStatus',
    'FileStatus',
    'RepoStatus',
    'get_repo_status',
    'get_meta_status',
    'Opener',
    'SubOpenOption',
    'DiffTargets',
    'SubmoduleChange',
    'resolve_diff_targets',
    'get_diff',
    'get_submodule_changes_from_diff',
    'print_diff',
    'run_meta_diff',
    'MergeEngine',
    'MergeMode',
    'MergeResult',
    'merge_bare',
]
