"""Open command - materialize submodule working trees."""

import click

from litmeta.core.errors import LitMetaError
from litmeta.core.repository import Repository
from litmeta.cli.output import error, info, success
from litmeta.operations.open import Opener, SubOpenOption


@click.command('open')
@click.argument('paths', nargs=-1, required=True)
def open_cmd(paths):
    """
    Open the submodules at PATHS.

    Each bare submodule gets a working tree checked out at the commit the
    meta repository records for it.  Already open submodules are left alone.

    Examples:
        lit-meta open libs/x
        lit-meta open libs/x libs/y
    """
    repo = Repository.find_repository()
    if not repo:
        click.echo(error("Not a lit repository"), err=True)
        raise click.Abort()

    try:
        opener = Opener(repo)
        for path in paths:
            path = path.rstrip('/')
            if opener.is_open(path):
                click.echo(info(f"{path} is already open"))
                continue
            sub_repo = opener.get_subrepo(path, SubOpenOption.FORCE_OPEN)
            click.echo(success(f"Opened {path} at {sub_repo.head_commit()[:7]}"))
    except LitMetaError as e:
        click.echo(error(str(e)), err=True)
        raise click.Abort()
