"""Helpers shared by the core and operations layers.

This module contains:
- Ignore file handling (.litignore)
"""

from litmeta.utils.ignore import IgnoreMatcher, IgnorePattern, load_ignore_matcher

__all__ = [
    'IgnoreMatcher', 'IgnorePattern', 'load_ignore_matcher',
]
