"""Unit tests for status computation."""

from litmeta.core.index import Index
from litmeta.core.submodule_config import MODULES_FILENAME
from litmeta.operations.diff import DeltaStatus
from litmeta.operations.status import (FileStatus, SubmoduleStatus, convert_delta_status,
                                       get_meta_status, get_repo_status)
from tests.conftest import commit_files, sub_store


def test_self_status_is_empty(meta_with_submodules):
    """A fresh checkout has no staged or unstaged changes."""
    meta = meta_with_submodules
    status = get_repo_status(meta, meta.head_tree())
    assert status.is_clean

    status = get_repo_status(meta, meta.head_tree(), ignore_index=True)
    assert status.is_clean


def test_modules_file_and_pointers_excluded(meta_with_submodules):
    """.litmodules and submodule pointers never appear in a RepoStatus."""
    meta = meta_with_submodules
    (meta.work_tree / MODULES_FILENAME).write_text('')
    (meta.work_tree / 'y' / 'bar').write_text('changed\n')
    index = meta.index()
    index.add_submodule('x', 'a' * 40)
    index.write(str(meta.index_file))

    status = get_repo_status(meta, meta.head_tree())
    assert status.is_clean


def test_modified_and_removed(meta_with_submodules):
    meta = meta_with_submodules
    (meta.work_tree / 'README').write_text('changed\n')
    (meta.work_tree / 'notes').write_text('new\n')

    status = get_repo_status(meta, meta.head_tree())
    assert status.workdir == {'README': FileStatus.MODIFIED, 'notes': FileStatus.ADDED}
    assert status.staged == {}

    (meta.work_tree / 'README').unlink()
    status = get_repo_status(meta, meta.head_tree(), paths=['README'])
    assert status.workdir == {'README': FileStatus.REMOVED}


def test_staged_and_ignore_index(meta_with_submodules):
    """ignore_index folds staged changes into the workdir side."""
    meta = meta_with_submodules
    (meta.work_tree / 'README').write_text('staged\n')
    meta.index().add_file(meta, 'README')

    status = get_repo_status(meta, meta.head_tree())
    assert status.staged == {'README': FileStatus.MODIFIED}
    assert status.workdir == {}

    status = get_repo_status(meta, meta.head_tree(), ignore_index=True)
    assert status.staged == {}
    assert status.workdir == {'README': FileStatus.MODIFIED}


def test_untracked_directories(repo):
    commit_hash = commit_files(repo, {'a': 'a\n'})
    repo.refs.update_head(commit_hash)
    Index.from_tree(repo, repo.head_tree()).write(str(repo.index_file))
    (repo.work_tree / 'a').write_text('a\n')
    (repo.work_tree / 'build' / 'out').mkdir(parents=True)
    (repo.work_tree / 'build' / 'out' / 'x.o').write_text('o\n')
    (repo.work_tree / 'build' / 'log').write_text('log\n')

    status = get_repo_status(repo, repo.head_tree())
    assert status.workdir == {'build/': FileStatus.ADDED}

    status = get_repo_status(repo, repo.head_tree(), all_untracked=True)
    assert status.workdir == {'build/log': FileStatus.ADDED, 'build/out/x.o': FileStatus.ADDED}


def test_conflicted_paths_dropped(meta_with_submodules):
    meta = meta_with_submodules
    index = meta.index()
    entry = index.get_entry('README')
    index.add_entry('README', entry.sha1, entry.mode, entry.size, stage=1)
    index.write(str(meta.index_file))

    assert get_repo_status(meta, meta.head_tree()).is_clean


def test_convert_delta_status():
    assert convert_delta_status(DeltaStatus.UNTRACKED) == FileStatus.ADDED
    assert convert_delta_status(DeltaStatus.DELETED) == FileStatus.REMOVED
    assert convert_delta_status(DeltaStatus.TYPECHANGED) == FileStatus.TYPECHANGED


class TestMetaStatus:
    """Tests for the status of a meta repository and its submodules."""

    def test_clean(self, meta_with_submodules):
        meta = get_meta_status(meta_with_submodules)
        assert meta.repo_status.is_clean
        assert list(meta.submodules) == ['x', 'y']
        for sub in meta.submodules.values():
            assert sub.is_open
            assert sub.staged_change is None
            assert not sub.workdir_changed
            assert sub.repo_status.is_clean

    def test_dirty_submodule(self, meta_with_submodules):
        (meta_with_submodules.work_tree / 'y' / 'bar').write_text('changed\n')

        meta = get_meta_status(meta_with_submodules)
        assert meta.repo_status.is_clean
        assert meta.submodules['y'].repo_status.workdir == {'bar': FileStatus.MODIFIED}
        assert meta.submodules['x'].repo_status.is_clean

    def test_bare_submodule(self, meta_with_submodules):
        """A submodule with only a pointer is reported without a status."""
        meta = meta_with_submodules
        z = sub_store(meta, 'z')
        z0 = commit_files(z, {'baz': 'baz\n'})
        index = meta.index()
        index.add_submodule('z', z0)
        index.write(str(meta.index_file))

        status = get_meta_status(meta)
        sub = status.submodules['z']
        assert not sub.is_open
        assert sub.repo_status is None
        assert sub.staged_change == FileStatus.ADDED

    def test_litignore_per_repository(self, meta_with_submodules):
        """Each repository honours its own .litignore."""
        work = meta_with_submodules.work_tree
        (work / '.litignore').write_text('*.tmp\n')
        (work / 'notes.tmp').write_text('n\n')
        (work / 'y' / '.litignore').write_text('scratch/\n')
        (work / 'y' / 'scratch').mkdir()
        (work / 'y' / 'scratch' / 'a').write_text('a\n')
        (work / 'y' / 'keep.tmp').write_text('k\n')

        meta = get_meta_status(meta_with_submodules)
        assert meta.repo_status.workdir == {'.litignore': FileStatus.ADDED}
        assert meta.submodules['y'].repo_status.workdir == {
            '.litignore': FileStatus.ADDED,
            'keep.tmp': FileStatus.ADDED,
        }
        assert meta.submodules['x'].repo_status.is_clean


def test_submodule_status_properties():
    moved = SubmoduleStatus('x', 'x', commit_sha='a' * 40, index_sha='a' * 40,
                            workdir_sha='b' * 40)
    assert moved.is_open
    assert moved.staged_change is None
    assert moved.workdir_changed

    removed = SubmoduleStatus('x', 'x', commit_sha='a' * 40)
    assert removed.staged_change == FileStatus.REMOVED
    assert not removed.workdir_changed


def test_broken_submodule_is_reported(meta_with_submodules):
    """A submodule that cannot be read carries an error; the rest is computed."""
    meta = meta_with_submodules
    (meta.work_tree / 'x' / '.lit').write_text('garbage\n')
    (meta.work_tree / 'y' / 'bar').write_text('changed\n')

    status = get_meta_status(meta)
    assert 'Invalid lit link file' in status.submodules['x'].error
    assert status.submodules['x'].repo_status is None
    assert status.submodules['y'].error is None
    assert status.submodules['y'].repo_status.workdir == {'bar': FileStatus.MODIFIED}


def test_meta_status_path_filter(meta_with_submodules):
    meta = meta_with_submodules
    assert list(get_meta_status(meta, ['x']).submodules) == ['x']
    assert list(get_meta_status(meta, ['y/bar']).submodules) == ['y']
    assert list(get_meta_status(meta, ['README']).submodules) == []
    assert list(get_meta_status(meta, []).submodules) == ['x', 'y']
