"""litmeta - status, diff and merge for Lit meta repositories and their submodules."""

__version__ = '0.1.0'

from litmeta.core.repository import Repository
from litmeta.core.objects import LitObject, Blob, Tree, Commit

__all__ = [
    'Repository',
    'LitObject',
    'Blob',
    'Tree',
    'Commit',
]
