"""
Errors raised while starting, invoking, and stopping function instances.

All errors derive from ``FunctionError``. Errors raised while setting up or booting an instance are fatal to
the instance creation; errors raised by an invocation leave the instance usable for further invocations
(except ``ProcessExitedError``, which signals that the function process is gone).
"""
from typing import Optional


class FunctionError(Exception):
    """Base class for all errors related to function instances."""


class FunctionSetupError(FunctionError):
    """Preparing the function (folder, files, wrapper, process) failed."""

    def __init__(self, operation: str, cause: Exception = None):
        message = operation if cause is None else f"{operation}: {cause}"
        super().__init__(message)
        self.operation = operation
        self.cause = cause


class FunctionSpawnError(FunctionSetupError):
    """The function process could not be started."""


class FunctionBootError(FunctionError):
    """The function process was started, but did not become ready."""


class ProcessExitedOnBootError(FunctionBootError):
    def __init__(self, returncode: Optional[int] = None):
        super().__init__(f"function process exited on boot (exit code {returncode})")
        self.returncode = returncode


class BootTimeoutError(FunctionBootError):
    pass


class BootCancelledError(FunctionBootError):
    pass


class InvocationError(FunctionError):
    """Base class for errors of a single invocation."""


class ProcessExitedError(InvocationError):
    def __init__(self, returncode: Optional[int] = None):
        super().__init__("process exited")
        self.returncode = returncode


class InvocationCancelledError(InvocationError):
    pass


class InvocationTransportError(InvocationError):
    """The request could not be sent, or the response could not be read."""

    def __init__(self, operation: str, cause: Exception = None):
        message = operation if cause is None else f"{operation}: {cause}"
        super().__init__(message)
        self.operation = operation
        self.cause = cause


class RemoteHttpError(InvocationError):
    """The function endpoint responded with a non-2xx status code."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"HTTP Error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class RuntimeInvocationError(InvocationError):
    """The function handler raised an error, which was reported back by the runtime."""

    def __init__(self, message: str, stack: str = None, raw: str = None):
        if stack:
            text = f"Runtime error: {message}\n{stack}"
        else:
            text = f"Runtime error: {message}"
        super().__init__(text)
        self.message = message
        self.stack = stack
        self.raw = raw
