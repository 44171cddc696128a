"""Include command - add a repository as a submodule."""

import click

from litmeta.core.errors import LitMetaError
from litmeta.core.repository import Repository
from litmeta.cli.output import error, info, success
from litmeta.operations.include import include


@click.command('include')
@click.argument('url')
@click.argument('path')
def include_cmd(url, path):
    """
    Include the local repository at URL as a submodule at PATH.

    The submodule is opened and its pointer and .litmodules record are
    staged; commit them with lit to record the submodule.

    Examples:
        lit-meta include ../x libs/x
    """
    repo = Repository.find_repository()
    if not repo:
        click.echo(error("Not a lit repository"), err=True)
        raise click.Abort()

    try:
        sub_repo = include(repo, url, path)
    except LitMetaError as e:
        click.echo(error(str(e)), err=True)
        raise click.Abort()

    click.echo(success(f"Included {url} at {path}"))
    click.echo(info(f"Submodule HEAD: {sub_repo.head_commit()[:7]}"))
