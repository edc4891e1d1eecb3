import logging
import os
import subprocess
from typing import Dict, List, Optional

from funcrun import constants
from funcrun.utils.run import kill_process_tree, start_process
from funcrun.utils.threads import FuncThread, start_worker_thread

from .exceptions import FunctionSpawnError
from .logs import LogListener, log_to_output_logger, start_drains
from .models import ProcessStatus

LOG = logging.getLogger(__name__)

# the engine is only allowed to access the network and read environment variables
ENGINE_PERMISSION_FLAGS = ["--allow-net", "--allow-env"]


def build_engine_command(engine_path: str, function_dir: str, port: int) -> List[str]:
    """Return the command line that serves the function in ``function_dir`` on the given port."""
    server_file = os.path.join(function_dir, constants.FUNCTION_SERVER_FILE)
    return [engine_path, "run", *ENGINE_PERMISSION_FLAGS, server_file, str(port)]


class ProcessSupervisor:
    """
    Runs a single function process and keeps track of its exit.

    The process is started in its own session, its stdout/stderr are forwarded line by line to a log listener,
    and a waiter thread records its exit in ``status``. The process is only ever stopped via ``kill()``.
    """

    cmd: List[str]
    process: Optional[subprocess.Popen]
    status: ProcessStatus

    def __init__(
        self,
        cmd: List[str],
        env_vars: Dict[str, str] = None,
        inherit_env: bool = False,
        log_listener: LogListener = None,
        cwd: str = None,
    ):
        self.cmd = cmd
        self.env_vars = env_vars or {}
        self.inherit_env = inherit_env
        self.log_listener = log_listener or log_to_output_logger
        self.cwd = cwd
        self.process = None
        self.status = ProcessStatus()
        self._drain_threads: List[FuncThread] = []
        self._waiter: Optional[FuncThread] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    def spawn(self) -> ProcessStatus:
        """
        Start the process, its log drains, and its exit waiter.

        :return: the status of the process
        :raises FunctionSpawnError: if the process cannot be started
        """
        if self.process is not None:
            raise FunctionSpawnError("spawn", RuntimeError(f"process already started: {self.cmd}"))
        try:
            self.process = start_process(
                self.cmd,
                env_vars=self.env_vars,
                inherit_env=self.inherit_env,
                cwd=self.cwd,
            )
        except (OSError, ValueError) as e:
            raise FunctionSpawnError("start function process", e) from e

        LOG.debug("Started function process %s: %s", self.process.pid, self.cmd)
        self._drain_threads = start_drains(
            [self.process.stdout, self.process.stderr], self.log_listener
        )
        self._waiter = start_worker_thread(self._wait_for_exit, name="process-waiter")
        return self.status

    def _wait_for_exit(self, *args):
        returncode = self.process.wait()
        self.status.set_exited(returncode)
        LOG.debug("Function process %s exited with code %s", self.process.pid, returncode)
        return returncode

    def kill(self, timeout: float = None):
        """
        Kill the process (including any child processes it started) and wait for its exit to be recorded.

        :param timeout: the maximum time to wait for the exit (and for the log drains to finish)
        """
        if self.process is None or self.status.exited:
            self.join_drains(timeout)
            return
        try:
            kill_process_tree(self.process.pid)
        except Exception as e:
            # the process may have exited in the meantime, fall back to a plain kill
            LOG.debug("Unable to kill process tree of %s: %s", self.process.pid, e)
            try:
                self.process.kill()
            except OSError:
                pass
        if not self.status.wait(timeout):
            LOG.warning("Function process %s did not exit within %s seconds", self.process.pid, timeout)
        self.join_drains(timeout)

    def join_drains(self, timeout: float = None):
        for thread in self._drain_threads:
            thread.join(timeout)
            if thread.is_alive():
                LOG.debug("Log drain %s still running after %s seconds", thread.name, timeout)
