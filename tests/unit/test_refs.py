"""Unit tests for reference management."""

import pytest
from litmeta.core.errors import NotFoundError
from tests.conftest import commit_files


@pytest.fixture
def history(repo):
    """Three commits on main: c0 <- c1 <- c2."""
    c0 = commit_files(repo, {'f': '0\n'}, 'c0')
    c1 = commit_files(repo, {'f': '1\n'}, 'c1', parents=[c0])
    c2 = commit_files(repo, {'f': '2\n'}, 'c2', parents=[c1])
    repo.refs.update_head(c2)
    return c0, c1, c2


def test_update_head_moves_current_branch(repo, history):
    c0, c1, c2 = history
    assert repo.refs.get_current_branch() == 'main'
    assert repo.refs.read_ref('refs/heads/main') == c2
    assert repo.head_commit() == c2


def test_resolve_ancestry_suffixes(repo, history):
    """~N walks first parents, ^N picks the Nth parent."""
    c0, c1, c2 = history
    assert repo.resolve_commitish('HEAD~1') == c1
    assert repo.resolve_commitish('main~2') == c0
    assert repo.resolve_commitish('HEAD^') == c1
    assert repo.resolve_commitish('HEAD^0') == c2
    assert repo.resolve_commitish('HEAD~3') is None


def test_resolve_abbreviated_id(repo, history):
    c0, c1, c2 = history
    assert repo.resolve_commitish(c1[:8]) == c1
    assert repo.resolve_commitish(c1.upper()) == c1


def test_resolve_unknown_name(repo, history):
    assert repo.resolve_commitish('nosuch') is None
    assert repo.resolve_commitish('') is None


def test_branch_and_tag_names(repo, history):
    c0, c1, c2 = history
    repo.refs.write_ref('refs/heads/feature', c1)
    repo.refs.write_ref('refs/tags/v1', c0)
    assert repo.resolve_commitish('feature') == c1
    assert repo.resolve_commitish('v1') == c0
    assert repo.resolve_commitish('refs/tags/v1') == c0


def test_detached_head(repo, history):
    c0, c1, c2 = history
    repo.refs.set_head(c0, symbolic=False)
    assert repo.refs.get_current_branch() is None
    assert repo.head_commit() == c0

    repo.refs.update_head(c1)
    assert repo.head_commit() == c1
    assert repo.refs.read_ref('refs/heads/main') == c2


def test_write_ref_requires_commit(repo):
    with pytest.raises(NotFoundError):
        repo.refs.write_ref('refs/heads/main', '0' * 40)


def test_unborn_branch(repo):
    assert repo.head_commit() is None
    assert repo.head_tree() is None
