"""Diff command - show changes across the meta repository and its submodules."""

import io

import click

from litmeta.core.config import get_config
from litmeta.core.errors import LitMetaError
from litmeta.core.repository import Repository
from litmeta.cli.output import error, warning
from litmeta.operations.diff import DiffEngine, diff_filesystem_paths
from litmeta.operations.meta_diff import resolve_diff_targets, run_meta_diff

PATHS_AFTER_SEPARATOR = 'litmeta.diff.paths'


class PathspecCommand(click.Command):
    """Command that keeps the arguments after ``--`` apart as path filters."""

    def parse_args(self, ctx, args):
        if '--' in args:
            i = args.index('--')
            ctx.meta[PATHS_AFTER_SEPARATOR] = list(args[i + 1:])
            args = args[:i]
        return super().parse_args(ctx, args)


@click.command('diff', cls=PathspecCommand)
@click.option('--cached', '--staged', 'cached', is_flag=True, help='View staged changes')
@click.option('--no-index', is_flag=True, help='Compare two paths on the filesystem')
@click.option('--name-only', is_flag=True, help='Show only names of changed files')
@click.option('--name-status', is_flag=True, help='Show only names and status of changed files')
@click.option('--raw', is_flag=True, help='Show the raw diff summary')
@click.option('--no-color', is_flag=True, help='Disable colored output')
@click.option('-j', '--jobs', type=click.IntRange(min=1), default=None,
              help='Number of submodules to diff in parallel (default: diff.jobs or 1)')
@click.argument('commits', nargs=-1)
@click.pass_context
def diff_cmd(ctx, cached, no_index, name_only, name_status, raw, no_color, jobs, commits):
    """
    Show changes between commits, the index and the working tree,
    including the changes inside every affected submodule.

    With no commits, shows unstaged changes (index vs working tree).
    With one commit, shows changes between that commit and the working tree.
    With two commits (or A..B), shows changes between those commits.
    Paths may follow the commits, or come after '--'.

    Examples:
        lit-meta diff                      # Unstaged changes
        lit-meta diff --cached             # Staged changes
        lit-meta diff HEAD~1 HEAD          # Changes between two commits
        lit-meta diff HEAD -- libs/x       # Changes under libs/x since HEAD
        lit-meta diff --no-index a.txt b.txt
    """
    separator_paths = ctx.meta.get(PATHS_AFTER_SEPARATOR)

    if no_index:
        operands = list(commits) + list(separator_paths or [])
        if len(operands) != 2:
            click.echo(error("--no-index takes exactly two paths"), err=True)
            raise click.Abort()
        try:
            diffs = diff_filesystem_paths(operands[0], operands[1])
        except LitMetaError as e:
            click.echo(error(str(e)), err=True)
            raise click.Abort()
        output = DiffEngine(None).format_diff(diffs, color=not no_color)
        if output:
            click.echo(output)
        ctx.exit(1 if diffs else 0)

    repo = Repository.discover()
    if not repo:
        click.echo(error("Not a lit repository"), err=True)
        raise click.Abort()

    try:
        if jobs is None:
            jobs = get_config(repo).get_int('diff', 'jobs', 1)
        targets = resolve_diff_targets(
            repo, list(commits), separator_paths,
            cached=cached, name_only=name_only, name_status=name_status,
            raw=raw, color=not no_color
        )
        buffer = io.StringIO()
        failures = run_meta_diff(repo, targets, buffer, jobs=jobs)
    except LitMetaError as e:
        click.echo(error(str(e)), err=True)
        raise click.Abort()

    output = buffer.getvalue()
    if output:
        click.echo(output, nl=False)

    for name, message in failures:
        click.echo(warning(f"Could not diff submodule {name}: {message}"), err=True)
    if failures:
        ctx.exit(1)
