"""Reference management for litmeta."""

import re
from typing import Optional

from .objects import Commit

_ANCESTRY_RE = re.compile(r'^(?P<base>.+?)(?P<suffix>(?:[~^]\d*)*)$')
_HEX_RE = re.compile(r'^[0-9a-fA-F]{4,40}$')


class RefManager:
    """
    Manages references (branches, tags, HEAD).

    Handles:
    - Symbolic references (HEAD pointing to branch)
    - Direct references (detached HEAD)
    - Branch references (refs/heads/*)
    - Tag references (refs/tags/*)
    - Reference resolution, including ``~N`` and ``^N`` ancestry suffixes
    """

    def __init__(self, repo):
        self.repo = repo
        self.lit_dir = repo.lit_dir
        self.heads_dir = repo.heads_dir
        self.tags_dir = repo.tags_dir
        self.head_file = repo.head_file

    def read_ref(self, ref_name: str) -> Optional[str]:
        """
        Read a reference and return its commit hash.

        Args:
            ref_name: Reference name (e.g., 'refs/heads/main', 'HEAD', 'main')

        Returns:
            Commit hash or None if reference doesn't exist
        """
        if ref_name == 'HEAD':
            return self.resolve_head()

        for ref_path in (self.lit_dir / ref_name,
                         self.heads_dir / ref_name,
                         self.tags_dir / ref_name):
            if ref_path.is_file():
                content = ref_path.read_text().strip()
                if content.startswith('ref: '):
                    return self.read_ref(content[5:])
                return content

        return None

    def write_ref(self, ref_name: str, commit_hash: str) -> None:
        """
        Write a reference to point to a commit.

        Args:
            ref_name: Reference name (e.g., 'refs/heads/main')
            commit_hash: Commit hash to point to

        Raises:
            NotFoundError: If ``commit_hash`` is not a commit in this repository
        """
        self.repo.get_commit(commit_hash)
        ref_path = self.lit_dir / ref_name
        ref_path.parent.mkdir(parents=True, exist_ok=True)
        ref_path.write_text(commit_hash + '\n')

    def resolve_head(self) -> Optional[str]:
        """
        Resolve HEAD to a commit hash.

        Returns:
            Commit hash or None if HEAD doesn't exist or the branch is unborn
        """
        if not self.head_file.exists():
            return None

        content = self.head_file.read_text().strip()

        if content.startswith('ref: '):
            ref_path = self.lit_dir / content[5:]
            if ref_path.is_file():
                return ref_path.read_text().strip()
            return None

        return content or None

    def get_current_branch(self) -> Optional[str]:
        """
        Get the current branch name.

        Returns:
            Branch name or None if in detached HEAD state
        """
        if not self.head_file.exists():
            return None

        content = self.head_file.read_text().strip()
        if content.startswith('ref: refs/heads/'):
            return content[16:]
        return None

    def set_head(self, target: str, symbolic: bool = True) -> None:
        """
        Set HEAD to point to a branch or commit.

        Args:
            target: Branch name (if symbolic) or commit hash (if direct)
            symbolic: If True, create symbolic reference; if False, detach
        """
        if symbolic:
            if not target.startswith('refs/heads/'):
                target = f'refs/heads/{target}'
            self.head_file.write_text(f'ref: {target}\n')
        else:
            self.repo.get_commit(target)
            self.head_file.write_text(target + '\n')

    def update_head(self, commit_hash: str) -> None:
        """Move the current branch (or the detached HEAD) to ``commit_hash``."""
        branch = self.get_current_branch()
        if branch:
            self.write_ref(f'refs/heads/{branch}', commit_hash)
        else:
            self.set_head(commit_hash, symbolic=False)

    def resolve_reference(self, ref: str) -> Optional[str]:
        """
        Resolve any reference (branch, tag, HEAD, hash) to a commit hash.

        Supports abbreviated ids and ``~N`` / ``^N`` suffixes
        (``HEAD~2``, ``main^2``).

        Args:
            ref: Reference string (e.g., 'HEAD', 'main', 'v1.0', commit hash)

        Returns:
            Commit hash or None if reference can't be resolved
        """
        if not ref:
            return None

        match = _ANCESTRY_RE.match(ref)
        base, suffix = match.group('base'), match.group('suffix')

        commit_hash = self._resolve_base(base)
        if commit_hash is None or not suffix:
            return commit_hash

        for op, count in re.findall(r'([~^])(\d*)', suffix):
            n = int(count) if count else 1
            commit_hash = self._walk(commit_hash, op, n)
            if commit_hash is None:
                return None
        return commit_hash

    def _resolve_base(self, ref: str) -> Optional[str]:
        if _HEX_RE.match(ref):
            if len(ref) == 40:
                if self._is_commit(ref.lower()):
                    return ref.lower()
            else:
                matches = [h for h in self.repo.find_objects_by_prefix(ref) if self._is_commit(h)]
                if len(matches) == 1:
                    return matches[0]

        commit_hash = self.read_ref(ref)
        if commit_hash is not None and self._is_commit(commit_hash):
            return commit_hash
        return None

    def _walk(self, commit_hash: str, op: str, n: int) -> Optional[str]:
        if op == '^':
            if n == 0:
                return commit_hash
            parents = self.repo.get_commit(commit_hash).parents
            return parents[n - 1] if len(parents) >= n else None

        for _ in range(n):
            parents = self.repo.get_commit(commit_hash).parents
            if not parents:
                return None
            commit_hash = parents[0]
        return commit_hash

    def _is_commit(self, obj_hash: str) -> bool:
        if not self.repo.object_exists(obj_hash):
            return False
        return isinstance(self.repo.read_object(obj_hash), Commit)
