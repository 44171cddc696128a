"""Hook invocation."""

import logging
import os
import subprocess
from typing import List

logger = logging.getLogger(__name__)


def exec_hook(repo, hook_name: str, args: List[str]) -> bool:
    """
    Run ``.lit/hooks/<hook_name>`` if it exists and is executable.

    Hooks are notifications: a failing hook is logged and reported through
    the return value, and nothing it follows is rolled back.

    Returns:
        True if the hook ran and exited zero, or there was no hook
    """
    hook_path = repo.hooks_dir / hook_name
    if not hook_path.is_file() or not os.access(hook_path, os.X_OK):
        return True

    cwd = repo.work_tree if repo.work_tree is not None else repo.lit_dir
    logger.debug("Running hook %s %s", hook_path, args)
    try:
        result = subprocess.run([str(hook_path)] + list(args), cwd=str(cwd))
    except OSError as e:
        logger.warning("Could not run hook %s: %s", hook_name, e)
        return False

    if result.returncode != 0:
        logger.warning("Hook %s exited with status %d", hook_name, result.returncode)
        return False
    return True
