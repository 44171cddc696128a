"""CLI commands for litmeta."""

from litmeta.cli.commands.diff import diff_cmd
from litmeta.cli.commands.merge_bare import merge_bare_cmd
from litmeta.cli.commands.status import status_cmd
from litmeta.cli.commands.open import open_cmd
from litmeta.cli.commands.include import include_cmd

__all__ = ['diff_cmd', 'merge_bare_cmd', 'status_cmd', 'open_cmd', 'include_cmd']
