import concurrent.futures
import itertools
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

LOG = logging.getLogger(__name__)

_thread_counter = itertools.count(1)


class FuncThread(threading.Thread):
    """Helper class to run a Python function in a background thread.

    The outcome of the function (return value or raised exception) is made available via ``result_future``.
    """

    def __init__(
        self,
        func: Callable[[Any], Any],
        params: Any = None,
        quiet: bool = False,
        name: Optional[str] = None,
        daemon: bool = True,
    ):
        if name:
            name = f"{name}-functhread{next(_thread_counter)}"
        threading.Thread.__init__(self, name=name, daemon=daemon)
        self.params = params
        self.func = func
        self.quiet = quiet
        self.result_future = Future()

    def run(self):
        try:
            result = self.func(self.params)
        except Exception as e:
            if not self.quiet:
                LOG.info("Thread run method %s(%s) failed: %s", self.func, self.params, e, exc_info=e)
            self._set_outcome(exception=e)
        else:
            self._set_outcome(result=result)

    def _set_outcome(self, result: Any = None, exception: Exception = None):
        try:
            if exception is not None:
                self.result_future.set_exception(exception)
            else:
                self.result_future.set_result(result)
        except concurrent.futures.InvalidStateError as e:
            # this can happen on shutdown if the future has already been canceled
            LOG.debug(e)


def start_worker_thread(method: Callable[[Any], Any], *args, **kwargs) -> FuncThread:
    """Start the given method in a background (daemon) thread and return the thread."""
    thread = FuncThread(method, *args, **kwargs)
    thread.start()
    return thread
