"""Integration tests for the merge-bare command."""

import re

from click.testing import CliRunner
from litmeta.cli.main import cli
from tests.conftest import commit_files, modules_text, pointer


class TestMergeBareCommand:
    """Tests for lit-meta merge-bare."""

    def test_merge_prints_commit(self, meta_history, monkeypatch):
        """A successful merge prints the new commit and moves no branch."""
        runner = CliRunner()
        meta = meta_history
        c = meta.commits
        monkeypatch.chdir(meta.work_tree)

        result = runner.invoke(cli, ['merge-bare', '-m', 'Merge', c['m1'], c['m2']])
        assert result.exit_code == 0
        commit = result.output.strip()
        assert re.fullmatch(r'[0-9a-f]{40}', commit)
        assert meta.get_commit(commit).parents == [c['m1'], c['m2']]
        assert meta.head_commit() == c['m0']

    def test_merge_fast_forward(self, meta_history, monkeypatch):
        runner = CliRunner()
        c = meta_history.commits
        monkeypatch.chdir(meta_history.work_tree)

        result = runner.invoke(cli, ['merge-bare', '-m', 'Merge', c['m0'], c['m1']])
        assert result.exit_code == 0
        assert result.output.strip() == c['m1']

        result = runner.invoke(cli, ['merge-bare', '--no-ff', '-m', 'Merge', c['m0'], c['m1']])
        assert result.exit_code == 0
        assert result.output.strip() != c['m1']

    def test_merge_up_to_date(self, meta_history, monkeypatch):
        """Nothing is printed when ours already contains theirs."""
        runner = CliRunner()
        c = meta_history.commits
        monkeypatch.chdir(meta_history.work_tree)

        result = runner.invoke(cli, ['merge-bare', '-m', 'Merge', c['m1'], c['m0']])
        assert result.exit_code == 0
        assert result.output == ''

    def test_merge_submodule_conflict(self, meta_history, monkeypatch):
        runner = CliRunner()
        meta = meta_history
        c = meta.commits
        x2 = commit_files(meta.sub, {'foo': 'bar\n'}, 'x rewrite', parents=[c['x0']])
        m3 = commit_files(meta, {
            'README': 'base\n', '.litmodules': modules_text('x'), 'x': pointer(x2),
        }, 'rewrite x', parents=[c['m0']])
        monkeypatch.chdir(meta.work_tree)

        result = runner.invoke(cli, ['merge-bare', '-m', 'Merge', c['m1'], m3])
        assert result.exit_code != 0
        assert 'submodule x' in result.output

    def test_merge_unknown_commit(self, meta_history, monkeypatch):
        runner = CliRunner()
        monkeypatch.chdir(meta_history.work_tree)

        result = runner.invoke(cli, ['merge-bare', '-m', 'Merge', 'HEAD', 'nosuch'])
        assert result.exit_code != 0
        assert 'nosuch' in result.output

    def test_merge_requires_message(self, meta_history, monkeypatch):
        runner = CliRunner()
        c = meta_history.commits
        monkeypatch.chdir(meta_history.work_tree)

        result = runner.invoke(cli, ['merge-bare', c['m1'], c['m2']])
        assert result.exit_code == 2

    def test_merge_inside_lit_directory(self, meta_history, monkeypatch):
        """Run from the lit directory, the repository is opened bare."""
        runner = CliRunner()
        c = meta_history.commits
        monkeypatch.chdir(meta_history.lit_dir)

        result = runner.invoke(cli, ['merge-bare', '-m', 'Merge', c['m1'], c['m2']])
        assert result.exit_code == 0
        assert re.fullmatch(r'[0-9a-f]{40}', result.output.strip())
