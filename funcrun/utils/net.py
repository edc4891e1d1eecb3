import logging
import random
import socket
import threading
from contextlib import closing
from typing import Optional, Set

from funcrun import config, constants

LOG = logging.getLogger(__name__)


class PortNotAvailableException(Exception):
    """Exception which indicates that the PortAllocator could not hand out a port."""

    pass


def port_can_be_bound(port: int, address: str = "") -> bool:
    """
    Return whether a local TCP port can be bound to. Note that this is a stricter check
    than is_port_open(...) below, as is_port_open() may return False if the port is
    not accessible (i.e., does not respond), yet cannot be bound to.
    """
    try:
        with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
            sock.bind((address, port))
        return True
    except (OSError, OverflowError):
        # either the port is used or we don't have permission to bind it
        return False


def is_port_open(port: int, host: str = constants.LOCALHOST, timeout: float = 1) -> bool:
    """Return whether a TCP connection to the given host/port can be established."""
    try:
        with closing(socket.create_connection((host, port), timeout=timeout)):
            return True
    except OSError:
        return False


class PortAllocator:
    """
    Hands out local TCP ports for function processes.

    Ports are picked at random from the window ``[base, base + window)``. A port is only handed out if it can
    currently be bound on all interfaces, and each port is handed out at most once per allocator. The check is
    advisory: another process may still grab the port before the function process binds it.
    """

    def __init__(
        self,
        base: int = constants.DEFAULT_PORT_RANGE_START,
        window: int = constants.DEFAULT_PORT_RANGE_SIZE,
        max_attempts: int = constants.DEFAULT_PORT_MAX_ATTEMPTS,
    ):
        """
        :param base: the first port of the allocation window
        :param window: the number of ports in the allocation window
        :param max_attempts: the number of random probes before giving up
        """
        if window < 1:
            raise ValueError(f"invalid port window size {window}")
        self.base = base
        self.window = window
        self.max_attempts = max_attempts
        self._handed_out: Set[int] = set()
        self._lock = threading.RLock()

    def allocate(self) -> int:
        """
        Find a free port and mark it as handed out.

        :return: the port number
        :raises PortNotAvailableException: if no free port was found within ``max_attempts`` probes
        """
        with self._lock:
            for _ in range(self.max_attempts):
                port = self.base + random.randrange(self.window)
                if port in self._handed_out:
                    continue
                if not self._port_can_be_bound(port):
                    continue
                self._handed_out.add(port)
                LOG.debug("Handing out port %s", port)
                return port
        raise PortNotAvailableException(
            f"Unable to find a free port in {self!r} after {self.max_attempts} attempts"
        )

    def is_handed_out(self, port: int) -> bool:
        with self._lock:
            return port in self._handed_out

    def _port_can_be_bound(self, port: int) -> bool:
        """
        Internal check whether the port can be bound. Can be overwritten by subclasses to provide a custom
        implementation.
        """
        return port_can_be_bound(port, address=constants.BIND_HOST_ALL)

    def __repr__(self):
        return f"PortAllocator({self.base}:{self.base + self.window - 1})"


default_port_allocator: Optional[PortAllocator] = None
_default_port_allocator_lock = threading.Lock()


def get_default_port_allocator() -> PortAllocator:
    """Return the process-wide allocator configured via PORT_RANGE_START/PORT_RANGE_SIZE/PORT_MAX_ATTEMPTS."""
    global default_port_allocator
    with _default_port_allocator_lock:
        if default_port_allocator is None:
            default_port_allocator = PortAllocator(
                base=config.PORT_RANGE_START,
                window=config.PORT_RANGE_SIZE,
                max_attempts=config.PORT_MAX_ATTEMPTS,
            )
        return default_port_allocator
