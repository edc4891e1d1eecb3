import logging
import threading
from typing import Any, Optional

from funcrun import constants
from funcrun.utils.files import rm_rf
from funcrun.utils.net import PortAllocator, PortNotAvailableException, get_default_port_allocator

from .exceptions import FunctionSetupError
from .invocation import InvocationChannel
from .logs import LogListener
from .materializer import materialize
from .models import (
    FunctionHash,
    ProcessState,
    RunnerConfig,
    default_boot_timeout,
    new_function_hash,
)
from .readiness import wait_ready
from .supervisor import ProcessSupervisor, build_engine_command

LOG = logging.getLogger(__name__)


class FunctionInstance:
    """
    A running function: one engine process serving the function code, plus its folder and invocation channel.

    Instances are created with ``FunctionInstance.start(...)``, which only returns once the function process
    accepts connections. The process is never restarted; once it has exited (or ``close()`` was called), every
    invocation fails with ``ProcessExitedError``.

    Usage::

        with FunctionInstance.start(RunnerConfig.defaults(), code) as function:
            result = function.invoke({"name": "Pete"})
    """

    function_hash: FunctionHash
    function_dir: str
    port: int
    url: str

    def __init__(
        self,
        runner_config: RunnerConfig,
        function_hash: FunctionHash,
        function_dir: str,
        port: int,
        supervisor: ProcessSupervisor,
    ):
        self.runner_config = runner_config
        self.function_hash = function_hash
        self.function_dir = function_dir
        self.port = port
        self.url = f"http://{constants.LOCALHOST}:{port}"
        self.supervisor = supervisor
        self.channel = InvocationChannel(
            self.url, supervisor.status, timeout=runner_config.invoke_timeout
        )
        self._close_lock = threading.Lock()
        self._closed = False

    @classmethod
    def start(
        cls,
        runner_config: RunnerConfig,
        code: str,
        init_data: Any = None,
        log_listener: LogListener = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        port_allocator: PortAllocator = None,
    ) -> "FunctionInstance":
        """
        Materialize the given function code, start the engine process for it, and wait until it is ready.

        If anything fails after the process has been started, the process is killed and the function folder is
        removed before the error is raised.

        :param runner_config: folders, engine, and timeouts to use
        :param code: the function source code, defining ``handle(event)`` and optionally ``init(data)``
        :param init_data: JSON-serializable value passed to ``init``
        :param log_listener: callable receiving every output line of the process
        :param timeout: maximum boot time in seconds (defaults to ``runner_config.boot_timeout``, and to the
            configured BOOT_TIMEOUT if neither a timeout nor ``readiness_max_attempts`` is set)
        :param cancel_event: event that aborts the boot when set
        :param port_allocator: allocator for the port of the process (defaults to the shared allocator)
        :return: the ready instance
        :raises FunctionSetupError: if the function could not be materialized or the process not be started
        :raises FunctionBootError: if the process did not become ready
        """
        function_hash = new_function_hash(code)
        function_dir = runner_config.function_dir(function_hash)

        supervisor = None
        try:
            materialize(runner_config, function_hash, code, init_data)

            port_allocator = port_allocator or get_default_port_allocator()
            try:
                port = port_allocator.allocate()
            except PortNotAvailableException as e:
                raise FunctionSetupError("allocate port", e) from e

            supervisor = ProcessSupervisor(
                build_engine_command(runner_config.engine_path, function_dir, port),
                env_vars=runner_config.engine_env(),
                inherit_env=runner_config.inherit_env,
                log_listener=log_listener,
            )
            status = supervisor.spawn()

            wait_ready(
                port,
                status,
                timeout=_boot_timeout(runner_config, timeout),
                cancel_event=cancel_event,
                interval=runner_config.readiness_poll_interval,
                max_attempts=runner_config.readiness_max_attempts,
            )
        except BaseException:
            # also roll back on KeyboardInterrupt, the process does not receive it
            LOG.debug("Function %s failed to boot, cleaning up", function_hash)
            if supervisor is not None:
                try:
                    supervisor.kill(timeout=runner_config.drain_join_timeout)
                except Exception as e:
                    # the boot error is the one to report
                    LOG.warning("Could not kill function process %s: %s", supervisor.pid, e)
            _remove_function_dir(function_dir)
            raise

        LOG.info("Function %s ready on port %s (pid %s)", function_hash, port, supervisor.pid)
        return cls(runner_config, function_hash, function_dir, port, supervisor)

    @property
    def last_invoked(self) -> float:
        return self.channel.last_invoked

    @property
    def state(self) -> ProcessState:
        return self.supervisor.status.state

    @property
    def pid(self) -> Optional[int]:
        return self.supervisor.pid

    def invoke(
        self,
        event: Any,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """Invoke the function with the given event, see ``InvocationChannel.invoke``."""
        return self.channel.invoke(event, timeout=timeout, cancel_event=cancel_event)

    def close(self):
        """Kill the function process and remove the function folder. Cleanup errors are only logged."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        self.channel.close()
        try:
            self.supervisor.kill(timeout=self.runner_config.drain_join_timeout)
        except Exception as e:
            LOG.warning("Could not kill function process %s: %s", self.pid, e)
        _remove_function_dir(self.function_dir)
        LOG.debug("Closed function %s", self.function_hash)

    def __enter__(self) -> "FunctionInstance":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return f"FunctionInstance({self.function_hash}, url={self.url}, state={self.state.value})"


def _boot_timeout(runner_config: RunnerConfig, timeout: Optional[float]) -> Optional[float]:
    if timeout is None:
        timeout = runner_config.boot_timeout
    if not timeout and not runner_config.readiness_max_attempts:
        # the readiness wait needs at least one bound
        timeout = default_boot_timeout()
    return timeout or None


def _remove_function_dir(function_dir: str):
    try:
        rm_rf(function_dir)
    except OSError as e:
        LOG.warning("Could not delete directory %s: %s", function_dir, e)
