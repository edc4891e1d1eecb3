import concurrent.futures
import json
import logging
import threading
import time
from typing import Any, Optional

import requests

from funcrun.constants import APPLICATION_JSON
from funcrun.utils.json import to_json_str
from funcrun.utils.strings import truncate
from funcrun.utils.threads import start_worker_thread

from .exceptions import (
    InvocationCancelledError,
    InvocationTransportError,
    ProcessExitedError,
    RemoteHttpError,
    RuntimeInvocationError,
)
from .models import ProcessStatus

LOG = logging.getLogger(__name__)

# interval (in seconds) in which an in-flight request checks for cancellation
CANCEL_POLL_INTERVAL = 0.05


def parse_remote_error(error: Any) -> RuntimeInvocationError:
    """
    Convert the ``error`` value reported by the function runtime into an exception.

    A JSON object with string ``message`` and ``stack`` fields (either may be missing) is turned into a
    structured error, as is ``null`` (an error without message and stack). Any other value is passed on as
    its JSON text.
    """
    raw = json.dumps(error)
    if error is None:
        return RuntimeInvocationError("", "", raw=raw)
    if isinstance(error, dict):
        message = error.get("message")
        stack = error.get("stack")
        message = "" if message is None else message
        stack = "" if stack is None else stack
        if isinstance(message, str) and isinstance(stack, str):
            return RuntimeInvocationError(message, stack, raw=raw)
    return RuntimeInvocationError(raw, raw=raw)


class InvocationChannel:
    """
    Sends events to the HTTP endpoint of a single function process, one at a time.

    The channel lock is held for the complete invocation (serializing the event, the request, and decoding the
    response), so invocations on the same channel never overlap. There is no fairness between waiting callers.
    """

    url: str
    status: ProcessStatus

    def __init__(
        self,
        url: str,
        status: ProcessStatus,
        timeout: Optional[float] = None,
        session: requests.Session = None,
    ):
        self.url = url
        self.status = status
        self.timeout = timeout
        self.session = session or requests.Session()
        self._lock = threading.Lock()
        self._last_invoked = 0.0
        self._closed = False

    @property
    def last_invoked(self) -> float:
        """Time (seconds since the epoch) at which the last invocation attempt started, 0 if none."""
        return self._last_invoked

    def close(self):
        """Mark the channel as closed, subsequent invocations fail with ``ProcessExitedError``."""
        self._closed = True
        self.session.close()

    def invoke(
        self,
        event: Any,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """
        Invoke the function with the given event and return the decoded result.

        :param event: the event, any JSON-serializable value
        :param timeout: timeout in seconds for the request (defaults to the channel timeout)
        :param cancel_event: event that aborts the request when set, the process is not affected
        :return: the value returned by the function handler
        :raises ProcessExitedError: if the function process has exited (or the channel was closed)
        :raises InvocationCancelledError: if ``cancel_event`` was set while the request was in flight
        :raises InvocationTransportError: if the request could not be sent or its response not be read
        :raises RemoteHttpError: if the endpoint responded with a non-2xx status code
        :raises RuntimeInvocationError: if the function handler failed
        """
        with self._lock:
            self._last_invoked = max(self._last_invoked, time.time())

            if self._closed or self.status.exited:
                raise ProcessExitedError(self.status.returncode)

            try:
                body = to_json_str(event)
            except (TypeError, ValueError) as e:
                raise InvocationTransportError("serialize event", e) from e

            response = self._send(body, timeout or self.timeout, cancel_event)
            try:
                return self._parse_response(response)
            finally:
                response.close()

    def _send(
        self, body: str, timeout: Optional[float], cancel_event: Optional[threading.Event]
    ) -> requests.Response:
        def _post(session: requests.Session):
            return session.post(
                self.url,
                data=body.encode("utf-8"),
                headers={"Content-Type": APPLICATION_JSON},
                timeout=timeout,
            )

        if cancel_event is None:
            try:
                return _post(self.session)
            except requests.RequestException as e:
                raise InvocationTransportError("function http request", e) from e

        if cancel_event.is_set():
            raise InvocationCancelledError("invocation cancelled before the request was sent")

        def _post_abandonable(*_):
            with requests.Session() as session:
                return _post(session)

        # run the request in the background, so that a cancellation can abandon it. It uses its own session,
        # an abandoned request never shares the connection pool with later invocations.
        future = start_worker_thread(_post_abandonable, quiet=True, name="invoke").result_future
        while True:
            done, _ = concurrent.futures.wait([future], timeout=CANCEL_POLL_INTERVAL)
            if done:
                break
            if cancel_event.is_set():
                future.add_done_callback(_close_abandoned_response)
                raise InvocationCancelledError("invocation cancelled while waiting for the response")

        try:
            return future.result()
        except requests.RequestException as e:
            raise InvocationTransportError("function http request", e) from e

    def _parse_response(self, response: requests.Response) -> Any:
        if not 200 <= response.status_code < 300:
            raise RemoteHttpError(response.status_code, response.text)

        try:
            result = response.json()
        except ValueError as e:
            raise InvocationTransportError("decode response", e) from e

        if isinstance(result, dict) and "error" in result:
            error = parse_remote_error(result["error"])
            LOG.debug("Function at %s failed: %s", self.url, truncate(error.message, 200))
            raise error

        return result


def _close_abandoned_response(future: concurrent.futures.Future):
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()
