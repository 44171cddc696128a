"""Pattern matching for ``.litignore`` files.

Only the ``.litignore`` at the root of a working tree is read.  A submodule's
working tree is scanned by its own repository, so it honours its own
``.litignore`` rather than the meta repository's.
"""

import re
from pathlib import Path
from typing import Dict, List, Tuple

IGNORE_FILE = '.litignore'


def _translate(pattern: str) -> str:
    """Translate the glob part of a pattern to a regular expression."""
    parts = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if pattern.startswith('**/', i):
            parts.append('(?:.*/)?')
            i += 3
        elif pattern.startswith('**', i):
            parts.append('.*')
            i += 2
        elif c == '*':
            parts.append('[^/]*')
            i += 1
        elif c == '?':
            parts.append('[^/]')
            i += 1
        elif c == '[':
            end = pattern.find(']', i + 2 if pattern.startswith('[!', i) else i + 1)
            if end == -1:
                parts.append(re.escape(c))
                i += 1
                continue
            body = pattern[i + 1:end]
            if body.startswith('!'):
                body = '^' + body[1:]
            parts.append(f'[{body}]')
            i = end + 1
        else:
            parts.append(re.escape(c))
            i += 1
    return ''.join(parts)


class IgnorePattern:
    """One line of an ignore file."""

    def __init__(self, pattern: str, negation: bool = False, directory_only: bool = False):
        self.original = pattern
        self.negation = negation
        self.directory_only = directory_only

        # A slash anywhere but the end ties the pattern to the root.
        body = pattern.lstrip('/')
        if '/' in pattern:
            regex = '^' + _translate(body)
            if not regex.endswith('.*'):
                regex += '(?:/.*)?$'
        else:
            regex = '(?:^|/)' + _translate(body) + '(?:/|$)'
        self._regex = re.compile(regex)

    def matches(self, path: str, is_dir: bool = False) -> bool:
        """
        Whether ``path`` (relative to the working tree root) matches.

        A directory-only pattern matches the directory itself when
        ``is_dir`` is set, and any path inside a matching directory.
        """
        if not self.directory_only:
            return bool(self._regex.search(path))
        if is_dir and self._regex.search(path):
            return True
        parts = path.split('/')
        return any(self._regex.search('/'.join(parts[:i])) for i in range(1, len(parts)))

    def __repr__(self) -> str:
        return f"IgnorePattern({self.original!r})"


class IgnoreMatcher:
    """An ordered list of patterns; the last matching pattern wins."""

    def __init__(self):
        self.patterns: List[IgnorePattern] = []
        self._cache: Dict[Tuple[str, bool], bool] = {}

    def add_pattern(self, line: str) -> None:
        """Add one ignore file line.  Blank lines and ``#`` comments are skipped."""
        line = line.strip()
        if not line or line.startswith('#'):
            return

        negation = line.startswith('!')
        if negation:
            line = line[1:]
        directory_only = line.endswith('/')
        if directory_only:
            line = line.rstrip('/')
        if not line:
            return

        self.patterns.append(IgnorePattern(line, negation, directory_only))
        self._cache.clear()

    def load_file(self, path: Path) -> bool:
        """
        Add every pattern in ``path``.

        Returns:
            False if the file does not exist
        """
        if not path.is_file():
            return False
        for line in path.read_text().splitlines():
            self.add_pattern(line)
        return True

    def is_ignored(self, path: str, is_dir: bool = False) -> bool:
        key = (path, is_dir)
        if key not in self._cache:
            ignored = False
            for pattern in self.patterns:
                if pattern.matches(path, is_dir):
                    ignored = not pattern.negation
            self._cache[key] = ignored
        return self._cache[key]


def load_ignore_matcher(work_tree: Path) -> IgnoreMatcher:
    """Matcher for a working tree: ``.lit`` plus the root ``.litignore``."""
    matcher = IgnoreMatcher()
    matcher.add_pattern('.lit')
    matcher.load_file(Path(work_tree) / IGNORE_FILE)
    return matcher
