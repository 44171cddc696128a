"""Unit tests for including a repository as a submodule."""

import pytest
from litmeta.core.errors import UserError
from litmeta.core.repository import Repository
from litmeta.core.submodule_config import MODULES_FILENAME, read_modules_from_workdir
from litmeta.operations.include import include
from litmeta.operations.status import FileStatus, get_meta_status
from tests.conftest import commit_files


@pytest.fixture
def source(temp_dir):
    """A standalone repository with one commit on main."""
    repo = Repository(str(temp_dir / 'lib'))
    repo.init()
    head = commit_files(repo, {'lib.txt': 'lib\n'}, 'lib initial')
    repo.refs.update_head(head)
    return repo


def test_include(repo, source):
    sub = include(repo, '../lib', 'libs/lib')

    assert sub.work_tree == repo.work_tree / 'libs' / 'lib'
    assert sub.lit_dir == repo.modules_dir / 'libs' / 'lib'
    assert (sub.work_tree / 'lib.txt').read_text() == 'lib\n'
    assert sub.head_commit() == source.head_commit()
    assert sub.refs.get_current_branch() == 'main'

    records = read_modules_from_workdir(repo)
    assert records['libs/lib'].path == 'libs/lib'
    assert records['libs/lib'].url == '../lib'

    index = repo.index()
    assert index.get_entry('libs/lib').is_submodule
    assert index.get_entry('libs/lib').sha1 == source.head_commit()
    assert index.get_entry(MODULES_FILENAME) is not None


def test_included_submodule_status(repo, source):
    include(repo, str(source.work_tree), 'lib')

    status = get_meta_status(repo)
    assert status.repo_status.is_clean
    sub = status.submodules['lib']
    assert sub.is_open
    assert sub.staged_change == FileStatus.ADDED
    assert sub.repo_status.is_clean


def test_include_twice(repo, source):
    include(repo, '../lib', 'lib')
    with pytest.raises(UserError, match='already exists'):
        include(repo, '../lib', 'lib')


def test_include_not_a_repository(repo, temp_dir):
    (temp_dir / 'plain').mkdir()
    with pytest.raises(UserError, match='Not a lit repository'):
        include(repo, '../plain', 'plain')


def test_include_empty_repository(repo, temp_dir):
    Repository(str(temp_dir / 'empty')).init()
    with pytest.raises(UserError, match='no commits'):
        include(repo, '../empty', 'empty')


def test_include_bad_path(repo, source):
    with pytest.raises(UserError):
        include(repo, '../lib', '../outside')
