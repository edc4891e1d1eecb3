import logging
import os
import subprocess
from typing import Dict, List, Optional

from .strings import to_str

LOG = logging.getLogger(__name__)


def start_process(
    cmd: List[str],
    env_vars: Optional[Dict[str, str]] = None,
    inherit_env: bool = True,
    cwd: str = None,
    stdin=subprocess.DEVNULL,
    stdout=subprocess.PIPE,
    stderr=subprocess.PIPE,
    new_session: bool = True,
) -> subprocess.Popen:
    """
    Start the given command as a child process and return immediately.

    :param cmd: the command and its arguments (never run through a shell)
    :param env_vars: environment variables for the child, applied on top of the parent environment if
                     ``inherit_env`` is set
    :param inherit_env: whether the child inherits the environment of the current process
    :param cwd: working directory of the child
    :param new_session: start the child in its own session (and thereby process group), so that signals sent
                        to the process group of the parent (e.g., Ctrl-C in a terminal) do not reach it
    :return: the Popen handle
    :raises OSError: if the executable cannot be started
    """
    LOG.debug("Executing command: %s", cmd)
    env_dict = os.environ.copy() if inherit_env else {}
    if env_vars:
        env_dict.update(env_vars)
    env_dict = {k: to_str(str(v)) for k, v in env_dict.items()}

    kwargs = {}
    if new_session and os.name == "posix":
        kwargs["start_new_session"] = True
    return subprocess.Popen(
        cmd,
        shell=False,
        stdin=stdin,
        stdout=stdout,
        stderr=stderr,
        env=env_dict,
        cwd=cwd,
        **kwargs,
    )


def kill_process_tree(parent_pid):
    # Note: Do NOT import "psutil" at the root scope
    import psutil

    parent_pid = getattr(parent_pid, "pid", None) or parent_pid
    parent = psutil.Process(parent_pid)
    for child in parent.children(recursive=True):
        try:
            child.kill()
        except psutil.NoSuchProcess:
            pass
    parent.kill()
