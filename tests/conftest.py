"""Shared pytest fixtures for litmeta tests."""

import pytest
import tempfile
import shutil
from pathlib import Path
from litmeta.core.config import Config
from litmeta.core.repository import Repository, FileEntry
from litmeta.core.objects import Blob, Commit, MODE_FILE, MODE_SUBMODULE
from litmeta.core.submodule_config import SubmoduleRecord, format_modules
from litmeta.operations.checkout import checkout_commit
from litmeta.operations.open import Opener, SubOpenOption

AUTHOR = "Test User <test@example.com>"
TIMESTAMP = 1700000000


def commit_files(repo, files, message='commit', parents=(), timestamp=TIMESTAMP):
    """
    Write a commit whose tree holds ``files``.

    Values may be str or bytes (a regular file) or a FileEntry (used as is,
    e.g. a submodule pointer from ``pointer()``).
    """
    entries = {}
    for path, content in files.items():
        if isinstance(content, FileEntry):
            entries[path] = content
            continue
        if isinstance(content, str):
            content = content.encode()
        entries[path] = FileEntry(MODE_FILE, repo.write_object(Blob(content)))
    tree_hash = repo.build_tree(entries)
    commit = Commit.create(tree_hash, list(parents), AUTHOR, AUTHOR, message, timestamp=timestamp)
    return repo.write_object(commit)


def pointer(commit_hash):
    """Tree entry pointing at a submodule commit."""
    return FileEntry(MODE_SUBMODULE, commit_hash)


def modules_text(*paths):
    """``.litmodules`` content for submodules named after their paths."""
    return format_modules({p: SubmoduleRecord(p, p, f'../{p}') for p in paths})


def sub_store(meta, name):
    """Create the object store of submodule ``name`` inside ``meta``."""
    return Repository.open_bare(meta.modules_dir / name).init()


def count_objects(repo):
    return sum(1 for p in repo.objects_dir.rglob('*') if p.is_file())


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, temp_dir):
    """Keep the user's ~/.litconfig and LIT_* variables out of tests."""
    monkeypatch.setattr(Config, 'GLOBAL_CONFIG_PATH', temp_dir / '.litconfig')
    for var in ('LIT_AUTHOR_NAME', 'LIT_AUTHOR_EMAIL', 'LIT_USER_NAME',
                'LIT_USER_EMAIL', 'LIT_DIFF_JOBS'):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def repo(temp_dir):
    """Create an initialized (meta) repository with a working tree."""
    repo = Repository(str(temp_dir / 'meta'))
    repo.init()
    return repo


@pytest.fixture
def repo_with_config(repo):
    """Create a repository with config set."""
    repo.config_file.write_text("""[user]
\tname = Test User
\temail = test@example.com
""")
    return repo


@pytest.fixture
def bare_meta(temp_dir):
    """A bare meta repository (object store only)."""
    repo = Repository.open_bare(temp_dir / 'meta.lit').init()
    repo.config_file.write_text("[user]\n\tname = Test User\n\temail = test@example.com\n")
    return repo


@pytest.fixture
def meta_with_submodules(repo_with_config):
    """
    Meta repository checked out on ``main`` with two open submodules:
    ``x`` holding ``foo`` and ``y`` holding ``bar``.

    The commit ids are available as ``repo.commits``.
    """
    meta = repo_with_config

    x = sub_store(meta, 'x')
    x0 = commit_files(x, {'foo': 'foo\n'}, 'x initial')
    x.refs.update_head(x0)

    y = sub_store(meta, 'y')
    y0 = commit_files(y, {'bar': 'bar\n'}, 'y initial')
    y.refs.update_head(y0)

    m0 = commit_files(meta, {
        'README': 'meta\n',
        '.litmodules': modules_text('x', 'y'),
        'x': pointer(x0),
        'y': pointer(y0),
    }, 'meta initial')
    meta.refs.update_head(m0)
    checkout_commit(meta, m0, detach=False)

    opener = Opener(meta)
    opener.get_subrepo('x', SubOpenOption.FORCE_OPEN)
    opener.get_subrepo('y', SubOpenOption.FORCE_OPEN)

    meta.commits = {'x0': x0, 'y0': y0, 'm0': m0}
    return meta


@pytest.fixture
def meta_history(repo_with_config):
    """
    Meta repository with a submodule ``x`` and two diverging commits.

    ``m1`` advances ``x`` by appending "foofoo" to ``foo``; ``m2`` leaves
    ``x`` alone and changes ``README``.  Nothing is checked out.
    """
    meta = repo_with_config

    x = sub_store(meta, 'x')
    x0 = commit_files(x, {'foo': 'foo\n'}, 'x initial')
    x1 = commit_files(x, {'foo': 'foo\nfoofoo\n'}, 'x foofoo', parents=[x0])
    x.refs.update_head(x0)

    m0 = commit_files(meta, {
        'README': 'base\n',
        '.litmodules': modules_text('x'),
        'x': pointer(x0),
    }, 'meta initial')
    m1 = commit_files(meta, {
        'README': 'base\n',
        '.litmodules': modules_text('x'),
        'x': pointer(x1),
    }, 'advance x', parents=[m0])
    m2 = commit_files(meta, {
        'README': 'theirs\n',
        '.litmodules': modules_text('x'),
        'x': pointer(x0),
    }, 'change README', parents=[m0])
    meta.refs.update_head(m0)

    meta.sub = x
    meta.commits = {'x0': x0, 'x1': x1, 'm0': m0, 'm1': m1, 'm2': m2}
    return meta
