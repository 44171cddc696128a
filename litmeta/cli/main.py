"""Main CLI entry point for litmeta."""

import logging

import click
from colorama import init

from litmeta import __version__
from litmeta.cli.commands import (diff_cmd, merge_bare_cmd, status_cmd,
                                  open_cmd, include_cmd)

# Initialize colorama for cross-platform colored output
init(autoreset=True)


class LitMetaGroup(click.Group):
    """Group that lists commands in the order they were added."""

    def list_commands(self, ctx):
        return list(self.commands)


@click.group(cls=LitMetaGroup)
@click.version_option(version=__version__)
@click.option('-v', '--verbose', is_flag=True, help='Log debug output to stderr')
def cli(verbose):
    """Work with a meta repository and its submodules as one tree."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(levelname)s %(name)s: %(message)s'
        )


# Register commands
cli.add_command(status_cmd)
cli.add_command(diff_cmd)
cli.add_command(merge_bare_cmd)
cli.add_command(open_cmd)
cli.add_command(include_cmd)


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
