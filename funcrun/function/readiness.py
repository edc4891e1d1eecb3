import logging
import threading
import time
from typing import Optional

from funcrun import constants
from funcrun.utils.net import is_port_open

from .exceptions import BootCancelledError, BootTimeoutError, ProcessExitedOnBootError
from .models import ProcessStatus

LOG = logging.getLogger(__name__)


def wait_ready(
    port: int,
    status: ProcessStatus,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    interval: float = 0.1,
    max_attempts: Optional[int] = None,
    host: str = constants.LOCALHOST,
):
    """
    Wait until the function process accepts TCP connections on the given port.

    Each round first checks for cancellation and the deadline, then whether the process has already exited,
    and only then probes the port. Without ``timeout``, ``cancel_event`` and ``max_attempts`` the loop only ends
    once the port is open or the process exits, so callers should always bound it.

    :param port: the port the function process listens on
    :param status: the status of the function process
    :param timeout: maximum time in seconds to wait
    :param cancel_event: event that aborts the wait when set
    :param interval: sleep time in seconds between two probes
    :param max_attempts: optional maximum number of probes
    :raises BootCancelledError: if ``cancel_event`` was set
    :raises BootTimeoutError: if the timeout or the maximum number of attempts was reached
    :raises ProcessExitedOnBootError: if the process exited before it became ready
    """
    deadline = time.monotonic() + timeout if timeout is not None else None
    attempts = 0
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise BootCancelledError(f"cancelled while waiting for port {port}")
        if deadline is not None and time.monotonic() >= deadline:
            raise BootTimeoutError(f"port {port} not ready after {timeout} seconds")
        if status.exited:
            raise ProcessExitedOnBootError(status.returncode)

        if is_port_open(port, host=host, timeout=interval):
            LOG.debug("Port %s ready after %s attempts", port, attempts + 1)
            return

        attempts += 1
        if max_attempts is not None and attempts >= max_attempts:
            raise BootTimeoutError(f"port {port} not ready after {attempts} attempts")

        # sleep, but wake up early on cancellation
        if cancel_event is not None:
            cancel_event.wait(interval)
        else:
            time.sleep(interval)
