import logging
import os
from typing import Any, List, Tuple, Union

from funcrun.constants import (
    DEFAULT_BOOT_TIMEOUT,
    DEFAULT_ENGINE_PATH,
    DEFAULT_PORT_MAX_ATTEMPTS,
    DEFAULT_PORT_RANGE_SIZE,
    DEFAULT_PORT_RANGE_START,
    LOG_LEVELS,
    TRACE_LOG_LEVELS,
    TRUE_STRINGS,
)


def eval_log_type(env_var_name: str) -> Union[str, bool]:
    """Get the log type from environment variable"""
    log_type = os.environ.get(env_var_name, "").lower().strip()
    return log_type if log_type in LOG_LEVELS else False


def is_env_true(env_var_name: str) -> bool:
    """Whether the given environment variable has a truthy value."""
    return os.environ.get(env_var_name, "").lower().strip() in TRUE_STRINGS


def _float_env(env_var_name: str, default: float) -> float:
    return float(os.environ.get(env_var_name, "").strip() or default)


def _int_env(env_var_name: str, default: int) -> int:
    return int(os.environ.get(env_var_name, "").strip() or default)


# root folder below which the per-function folders and the engine cache are created
WORK_DIR = os.environ.get("FUNCRUN_WORK_DIR", "").strip() or os.getcwd()

# path to the execution engine binary (looked up on the PATH if not absolute)
DENO_PATH = os.environ.get("DENO_PATH", "").strip() or DEFAULT_ENGINE_PATH

# whether the function process inherits the environment of the parent process
INHERIT_ENV = is_env_true("FUNCRUN_INHERIT_ENV")

# maximum time (in seconds) to wait for a function process to accept connections (0 means the default)
BOOT_TIMEOUT = _float_env("BOOT_TIMEOUT", DEFAULT_BOOT_TIMEOUT)

# interval (in seconds) between two readiness probes
READINESS_POLL_INTERVAL = _float_env("READINESS_POLL_INTERVAL", 0.1)

# hard cap on the number of readiness probes (0 means only BOOT_TIMEOUT bounds the wait)
READINESS_MAX_ATTEMPTS = _int_env("READINESS_MAX_ATTEMPTS", 0)

# timeout (in seconds) for a single invocation request (0 means no timeout)
INVOKE_TIMEOUT = _float_env("INVOKE_TIMEOUT", 0)

# window of local ports handed out to function processes
PORT_RANGE_START = _int_env("PORT_RANGE_START", DEFAULT_PORT_RANGE_START)
PORT_RANGE_SIZE = _int_env("PORT_RANGE_SIZE", DEFAULT_PORT_RANGE_SIZE)
PORT_MAX_ATTEMPTS = _int_env("PORT_MAX_ATTEMPTS", DEFAULT_PORT_MAX_ATTEMPTS)

# maximum time (in seconds) to wait for the log drain threads when closing a function
DRAIN_JOIN_TIMEOUT = _float_env("DRAIN_JOIN_TIMEOUT", 2)

# whether to enable verbose debug logging
FUNCRUN_LOG = eval_log_type("FUNCRUN_LOG")
DEBUG = is_env_true("DEBUG") or FUNCRUN_LOG in TRACE_LOG_LEVELS

# list of config keys printed by `funcrun config show`
CONFIG_ENV_VARS = [
    "BOOT_TIMEOUT",
    "DEBUG",
    "DENO_PATH",
    "DRAIN_JOIN_TIMEOUT",
    "FUNCRUN_LOG",
    "INHERIT_ENV",
    "INVOKE_TIMEOUT",
    "PORT_MAX_ATTEMPTS",
    "PORT_RANGE_SIZE",
    "PORT_RANGE_START",
    "READINESS_MAX_ATTEMPTS",
    "READINESS_POLL_INTERVAL",
    "WORK_DIR",
]


def is_trace_logging_enabled():
    if FUNCRUN_LOG:
        log_level = str(FUNCRUN_LOG).upper()
        return log_level.lower() in TRACE_LOG_LEVELS
    return False


def collect_config_items() -> List[Tuple[str, Any]]:
    """Returns a list of key-value tuples of funcrun configuration values."""
    none = object()  # sentinel object

    values = globals()

    result = []
    for k in sorted(CONFIG_ENV_VARS):
        v = values.get(k, none)
        if v is none:
            continue
        result.append((k, v))
    return result


# set log levels immediately, but will be overwritten later by setup_logging
if DEBUG:
    logging.getLogger("").setLevel(logging.DEBUG)
    logging.getLogger("funcrun").setLevel(logging.DEBUG)
