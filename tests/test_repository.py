"""Repository tests."""

import pytest
import tempfile
from litmeta.core.errors import ConsistencyError, NotFoundError, ObjectNotFoundError
from litmeta.core.repository import Repository, FileEntry
from litmeta.core.objects import Blob, MODE_EXECUTABLE, MODE_FILE, MODE_SUBMODULE
from tests.conftest import commit_files


def test_repository_init(repo):
    """Test repository initialization creates structure."""
    assert repo.lit_dir.exists()
    assert repo.objects_dir.exists()
    assert repo.heads_dir.exists()
    assert repo.head_file.read_text() == 'ref: refs/heads/main\n'
    assert 'repositoryformatversion' in repo.config_file.read_text()
    assert not repo.is_bare


def test_repository_already_exists(repo):
    """Test duplicate init raises error."""
    with pytest.raises(FileExistsError, match="already exists"):
        repo.init()


def test_write_and_read_blob(repo):
    """Test blob storage and retrieval."""
    hash_value = repo.write_object(Blob(b'test data'))

    read_blob = repo.read_object(hash_value)
    assert isinstance(read_blob, Blob)
    assert read_blob.data == b'test data'
    assert repo.object_path(hash_value).parent.name == hash_value[:2]


def test_read_missing_object(repo):
    """Missing objects raise ObjectNotFoundError."""
    with pytest.raises(ObjectNotFoundError):
        repo.read_object('0' * 40)


def test_get_commit_rejects_other_objects(repo):
    """A blob id is not a commit."""
    blob_hash = repo.write_object(Blob(b'data'))
    with pytest.raises(NotFoundError):
        repo.get_commit(blob_hash)


def test_find_repository_in_subdirectory(repo):
    """Test finding repo from nested directory."""
    subdir = repo.work_tree / 'subdir' / 'nested'
    subdir.mkdir(parents=True)

    found_repo = Repository.find_repository(str(subdir))
    assert found_repo is not None
    assert found_repo.work_tree == repo.work_tree


def test_find_repository_none():
    """Test no repo found returns None."""
    with tempfile.TemporaryDirectory() as temp_dir:
        assert Repository.find_repository(temp_dir) is None


def test_open_follows_link_file(repo):
    """A .lit link file binds a working tree to a separate store."""
    store = Repository.open_bare(repo.modules_dir / 'x').init()
    linked = Repository(str(repo.work_tree / 'x'), str(store.lit_dir))
    linked.write_link_file()

    opened = Repository.open(str(repo.work_tree / 'x'))
    assert opened.lit_dir == store.lit_dir
    assert opened.work_tree == repo.work_tree / 'x'


def test_open_rejects_bad_link_file(repo):
    sub_dir = repo.work_tree / 'x'
    sub_dir.mkdir()
    (sub_dir / '.lit').write_text('garbage\n')
    with pytest.raises(ConsistencyError, match='Invalid lit link file'):
        Repository.open(str(sub_dir))

    (sub_dir / '.lit').write_text(f'litdir: {repo.modules_dir / "gone"}\n')
    with pytest.raises(ConsistencyError, match='missing directory'):
        Repository.open(str(sub_dir))


def test_discover_bare_store(bare_meta):
    """Discovering from inside a lit directory opens it bare."""
    found = Repository.discover(str(bare_meta.lit_dir))
    assert found.is_bare
    assert found.lit_dir == bare_meta.lit_dir


def test_bare_repository_needs_lit_dir():
    with pytest.raises(ValueError):
        Repository(None)


def test_build_and_flatten_tree(repo):
    """build_tree and flatten_tree are inverses, pointers included."""
    blob_hash = repo.write_object(Blob(b'x'))
    files = {
        'README': FileEntry(MODE_FILE, blob_hash),
        'bin/run': FileEntry(MODE_EXECUTABLE, blob_hash),
        'libs/x': FileEntry(MODE_SUBMODULE, 'c' * 40),
    }
    tree_hash = repo.build_tree(files)
    assert repo.flatten_tree(tree_hash) == files
    assert repo.flatten_tree(None) == {}


def test_build_tree_rejects_file_and_directory(repo):
    """A path cannot be both an entry and the parent of another entry."""
    blob_hash = repo.write_object(Blob(b'x'))
    files = {
        'a': FileEntry(MODE_FILE, blob_hash),
        'a/b': FileEntry(MODE_FILE, blob_hash),
    }
    with pytest.raises(ValueError, match="'a'"):
        repo.build_tree(files)


def test_resolve_treeish(repo):
    """Commits resolve to their trees; tree ids resolve to themselves."""
    commit_hash = commit_files(repo, {'a': 'a\n'})
    repo.refs.update_head(commit_hash)
    tree_hash = repo.get_commit(commit_hash).tree

    assert repo.resolve_treeish('HEAD') == tree_hash
    assert repo.resolve_treeish('main') == tree_hash
    assert repo.resolve_treeish(tree_hash) == tree_hash
    assert repo.resolve_treeish('nosuch') is None
    assert repo.head_tree() == tree_hash
