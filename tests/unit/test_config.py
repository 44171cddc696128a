"""Unit tests for configuration and hooks."""

import os

import pytest
from litmeta.core.config import get_config
from litmeta.core.errors import UserError
from litmeta.core.hooks import exec_hook


def test_repo_config_value(repo_with_config):
    config = get_config(repo_with_config)
    assert config.get('user', 'name') == 'Test User'
    assert config.get('user', 'missing', fallback='x') == 'x'


def test_environment_overrides_repo_config(repo_with_config, monkeypatch):
    monkeypatch.setenv('LIT_USER_NAME', 'Env User')
    assert get_config(repo_with_config).get('user', 'name') == 'Env User'


def test_global_config_fallback(repo, temp_dir):
    (temp_dir / '.litconfig').write_text('[diff]\njobs = 3\n')
    assert get_config(repo).get_int('diff', 'jobs', 1) == 3


def test_get_int(repo):
    config = get_config(repo)
    assert config.get_int('diff', 'jobs', 1) == 1
    repo.config_file.write_text('[diff]\n\tjobs = many\n')
    with pytest.raises(UserError, match='diff.jobs'):
        get_config(repo).get_int('diff', 'jobs', 1)


def test_get_author(repo_with_config):
    assert get_config(repo_with_config).get_author() == 'Test User <test@example.com>'


def test_author_environment_override(repo_with_config, monkeypatch):
    monkeypatch.setenv('LIT_AUTHOR_NAME', 'Robot')
    monkeypatch.setenv('LIT_AUTHOR_EMAIL', 'robot@example.com')
    assert get_config(repo_with_config).get_author() == 'Robot <robot@example.com>'


def test_missing_author(repo):
    with pytest.raises(UserError, match='author'):
        get_config(repo).get_author()


def _write_hook(repo, name, body):
    repo.hooks_dir.mkdir(parents=True, exist_ok=True)
    hook = repo.hooks_dir / name
    hook.write_text('#!/bin/sh\n' + body)
    os.chmod(hook, 0o755)
    return hook


def test_missing_hook_succeeds(repo):
    assert exec_hook(repo, 'post-merge', ['0'])


def test_hook_receives_arguments(repo, temp_dir):
    out = temp_dir / 'hook.out'
    _write_hook(repo, 'post-merge', f'echo "$@" > {out}\n')

    assert exec_hook(repo, 'post-merge', ['0'])
    assert out.read_text().strip() == '0'


def test_failing_hook_is_reported(repo):
    _write_hook(repo, 'post-merge', 'exit 3\n')
    assert not exec_hook(repo, 'post-merge', ['0'])


def test_non_executable_hook_is_skipped(repo, temp_dir):
    out = temp_dir / 'hook.out'
    hook = _write_hook(repo, 'post-merge', f'touch {out}\n')
    os.chmod(hook, 0o644)

    assert exec_hook(repo, 'post-merge', ['0'])
    assert not out.exists()
