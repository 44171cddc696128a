"""Status command - show the meta repository and submodule status."""

import click
from colorama import Fore, Style

from litmeta.core.errors import LitMetaError
from litmeta.core.repository import Repository
from litmeta.cli.output import error, info, status_color
from litmeta.operations.status import FileStatus, RepoStatus, get_meta_status

_LABELS = {
    FileStatus.ADDED: 'new file:   ',
    FileStatus.MODIFIED: 'modified:   ',
    FileStatus.REMOVED: 'deleted:    ',
    FileStatus.RENAMED: 'renamed:    ',
    FileStatus.TYPECHANGED: 'typechange: ',
}


def _echo_changes(changes, indent: str = '  ') -> None:
    for path in sorted(changes):
        status = changes[path]
        color = status_color(status.value)
        click.echo(f"{indent}{color}{_LABELS[status]}{path}{Style.RESET_ALL}")


def _echo_repo_status(repo_status: RepoStatus, indent: str = '') -> None:
    untracked = {p: s for p, s in repo_status.workdir.items() if s == FileStatus.ADDED}
    unstaged = {p: s for p, s in repo_status.workdir.items() if s != FileStatus.ADDED}

    if repo_status.staged:
        click.echo(f"{indent}{Fore.GREEN}Changes to be committed:{Style.RESET_ALL}")
        _echo_changes(repo_status.staged, indent + '  ')
    if unstaged:
        click.echo(f"{indent}{Fore.YELLOW}Changes not staged for commit:{Style.RESET_ALL}")
        _echo_changes(unstaged, indent + '  ')
    if untracked:
        click.echo(f"{indent}{Fore.RED}Untracked files:{Style.RESET_ALL}")
        for path in sorted(untracked):
            click.echo(f"{indent}  {Fore.RED}{path}{Style.RESET_ALL}")


@click.command('status')
@click.option('-u', '--untracked-files', 'all_untracked', is_flag=True,
              help='Show individual files in untracked directories')
@click.argument('paths', nargs=-1)
def status_cmd(all_untracked, paths):
    """
    Show the status of the meta repository and its submodules.

    For each submodule, shows whether it is open, whether its pointer is
    staged or has new commits, and the open submodule's own changes.

    Examples:
        lit-meta status
        lit-meta status -u
        lit-meta status libs
    """
    repo = Repository.find_repository()
    if not repo:
        click.echo(error("Not a lit repository"), err=True)
        raise click.Abort()

    try:
        meta = get_meta_status(repo, list(paths), all_untracked)
    except LitMetaError as e:
        click.echo(error(str(e)), err=True)
        raise click.Abort()

    branch = repo.refs.get_current_branch()
    if branch:
        click.echo(f"On branch {Fore.CYAN}{branch}{Style.RESET_ALL}")
    else:
        head = repo.head_commit()
        click.echo(f"{Fore.YELLOW}HEAD detached at {head[:7] if head else '(none)'}{Style.RESET_ALL}")

    _echo_repo_status(meta.repo_status)

    for path, sub in meta.submodules.items():
        state = 'open' if sub.is_open else 'bare'
        pointer = (sub.index_sha or sub.commit_sha or '')[:7]
        line = f"{Fore.CYAN}{path}{Style.RESET_ALL} {pointer} ({state})"
        if sub.staged_change is not None:
            line += f" {Fore.GREEN}[{sub.staged_change.value}]{Style.RESET_ALL}"
        if sub.workdir_changed:
            line += f" {Fore.YELLOW}[new commits]{Style.RESET_ALL}"
        click.echo(line)
        if sub.error:
            click.echo(error(f"  {sub.error}"), err=True)
        elif sub.repo_status is not None:
            _echo_repo_status(sub.repo_status, indent='  ')

    if meta.repo_status.is_clean and all(
        sub.staged_change is None and not sub.workdir_changed
        and (sub.repo_status is None or sub.repo_status.is_clean)
        for sub in meta.submodules.values()
    ):
        click.echo(info("nothing to commit, working tree clean"))
