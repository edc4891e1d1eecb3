import enum
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, NewType, Optional

from funcrun import config, constants
from funcrun.utils.strings import sha1_hex

FunctionHash = NewType("FunctionHash", str)


def new_function_hash(code: str) -> FunctionHash:
    """Generates a content-based hash to be used as unique identifier for the given function code."""
    return FunctionHash(sha1_hex(code))


def default_boot_timeout() -> float:
    """Returns the configured BOOT_TIMEOUT, falling back to the built-in default if it is not set (or 0)."""
    return config.BOOT_TIMEOUT or constants.DEFAULT_BOOT_TIMEOUT


@dataclass
class RunnerConfig:
    """Settings used to materialize and launch function instances."""

    work_dir: str
    engine_path: str = constants.DEFAULT_ENGINE_PATH
    inherit_env: bool = False
    boot_timeout: Optional[float] = field(default_factory=default_boot_timeout)
    readiness_poll_interval: float = 0.1
    readiness_max_attempts: Optional[int] = None
    invoke_timeout: Optional[float] = None
    drain_join_timeout: float = 2
    env_vars: Dict[str, str] = field(default_factory=dict)

    @staticmethod
    def defaults() -> "RunnerConfig":
        """Returns a RunnerConfig populated from the funcrun configuration (environment variables)."""
        return RunnerConfig(
            work_dir=config.WORK_DIR,
            engine_path=config.DENO_PATH,
            inherit_env=config.INHERIT_ENV,
            boot_timeout=default_boot_timeout(),
            readiness_poll_interval=config.READINESS_POLL_INTERVAL,
            readiness_max_attempts=config.READINESS_MAX_ATTEMPTS or None,
            invoke_timeout=config.INVOKE_TIMEOUT or None,
            drain_join_timeout=config.DRAIN_JOIN_TIMEOUT,
        )

    @property
    def cache_dir(self) -> str:
        return os.path.join(self.work_dir, constants.CACHE_FOLDER)

    def function_dir(self, function_hash: FunctionHash) -> str:
        return os.path.join(self.cache_dir, f"{constants.FUNCTION_FOLDER_PREFIX}{function_hash}")

    def engine_env(self) -> Dict[str, str]:
        """Environment variables passed to the engine process."""
        env = dict(self.env_vars)
        env["NO_COLOR"] = "1"
        env["DENO_DIR"] = os.path.join(self.cache_dir, constants.ENGINE_CACHE_FOLDER)
        return env


class ProcessState(enum.Enum):
    RUNNING = "running"
    EXITED_OK = "exited-ok"
    EXITED_ERROR = "exited-error"


class ProcessStatus:
    """
    Thread-safe holder for the state of a function process.

    The state starts as RUNNING and is moved to one of the exited states exactly once (by the exit waiter of
    the process supervisor). Readers can poll ``state`` or block on ``wait()``.
    """

    def __init__(self):
        self._state = ProcessState.RUNNING
        self._returncode: Optional[int] = None
        self._lock = threading.Lock()
        self._exited = threading.Event()

    @property
    def state(self) -> ProcessState:
        with self._lock:
            return self._state

    @property
    def returncode(self) -> Optional[int]:
        with self._lock:
            return self._returncode

    @property
    def exited(self) -> bool:
        return self._exited.is_set()

    def set_exited(self, returncode: int) -> bool:
        """
        Record the exit of the process.

        :param returncode: the exit code of the process (negative if it was killed by a signal)
        :return: True if the status was updated, False if the exit had already been recorded
        """
        with self._lock:
            if self._state is not ProcessState.RUNNING:
                return False
            self._returncode = returncode
            self._state = ProcessState.EXITED_OK if returncode == 0 else ProcessState.EXITED_ERROR
            self._exited.set()
            return True

    def wait(self, timeout: float = None) -> bool:
        """Block until the process has exited, return whether it did within the timeout."""
        return self._exited.wait(timeout)

    def __repr__(self):
        return f"ProcessStatus({self.state.value}, returncode={self.returncode})"
