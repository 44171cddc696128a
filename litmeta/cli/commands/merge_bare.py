"""merge-bare command - merge two meta commits without a working tree."""

import click

from litmeta.core.errors import LitMetaError
from litmeta.core.repository import Repository
from litmeta.cli.output import error
from litmeta.operations.merge import MergeMode, merge_bare


@click.command('merge-bare')
@click.option('-m', '--message', required=True, help='Message for the merge commit')
@click.option('--no-ff', is_flag=True, help='Create a merge commit even if fast-forward is possible')
@click.argument('our_commit')
@click.argument('their_commit')
def merge_bare_cmd(message, no_ff, our_commit, their_commit):
    """
    Merge THEIR_COMMIT into OUR_COMMIT without touching any working tree.

    Submodules that both sides changed are merged in their own stores.
    Prints the resulting commit id; nothing is printed when OUR_COMMIT
    already contains THEIR_COMMIT.  No branch is moved.

    Examples:
        lit-meta merge-bare -m "Merge feature" main feature
        lit-meta merge-bare -m "Merge feature" --no-ff main feature
    """
    repo = Repository.discover()
    if not repo:
        click.echo(error("Not a lit repository"), err=True)
        raise click.Abort()

    mode = MergeMode.FORCE_COMMIT if no_ff else MergeMode.NORMAL

    try:
        result = merge_bare(repo, our_commit, their_commit, message, mode)
    except LitMetaError as e:
        click.echo(error(str(e)), err=True)
        raise click.Abort()

    if not result.success:
        click.echo(error(result.error_message), err=True)
        raise click.Abort()

    if result.commit is not None:
        click.echo(result.commit)
