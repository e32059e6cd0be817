"""sonar_gate/poller.py

Wait for the server-side Compute Engine task behind a job handle.

State machine
-------------
    WAITING --SUCCESS--------------> SUCCEEDED
    WAITING --FAILED / CANCELED----> FAILED     (PollTerminalFailureError)
    WAITING --deadline reached-----> TIMED_OUT  (PollTimeoutError)
    WAITING --cancel event set-----> CANCELLED  (RunCancelledError)
    WAITING --anything else--------> WAITING

A tick fires every ``interval`` seconds and races one global deadline: the
wait before each tick is ``min(interval, remaining)``, and when the deadline is
reached first the poller times out without issuing another request. The number
of requests is therefore bounded by ``timeout / interval``.

Transport and JSON errors are fatal on the tick that sees them; there is no
retry.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

import requests

from sonar_gate import api
from sonar_gate.errors import (
    PollParseError,
    PollTerminalFailureError,
    PollTimeoutError,
    PollTransportError,
    RunCancelledError,
)
from sonar_gate.types import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    JobStatus,
    PollState,
)

logger = logging.getLogger(__name__)

Fetcher = Callable[..., Dict[str, Any]]


def parse_task_status(payload: Any) -> str:
    """Pull ``task.status`` out of an /api/ce/task response body."""
    task = payload.get("task") if isinstance(payload, dict) else None
    if not isinstance(task, dict):
        raise PollParseError("Job status response has no 'task' object")
    status = task.get("status")
    if not isinstance(status, str) or not status:
        raise PollParseError("Job status response has no 'task.status' value")
    return status


class JobPoller:
    """One poll of one job handle. Not reusable across handles."""

    def __init__(
        self,
        handle: str,
        *,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        interval: float = DEFAULT_POLL_INTERVAL,
        token: str = "",
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        cancel: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        wait: Optional[Callable[[float], bool]] = None,
        fetch: Optional[Fetcher] = None,
    ) -> None:
        if timeout <= 0 or interval <= 0:
            raise ValueError("timeout and interval must be positive")
        self.handle = handle
        self.timeout = timeout
        self.interval = interval
        self.request_timeout = request_timeout
        self._token = token
        self._cancel = cancel or threading.Event()
        self._clock = clock
        # wait(seconds) -> True when cancelled; the cancel event is checked after any wait
        self._wait = wait or self._cancel.wait
        self._fetch = fetch

        self.state = PollState.WAITING
        self.ticks = 0
        self.last_status: Optional[str] = None

    def transition(self, raw_status: str) -> PollState:
        """Apply one observed server status to the state machine."""
        self.last_status = raw_status
        status = JobStatus.parse(raw_status)
        if status is JobStatus.SUCCESS:
            self.state = PollState.SUCCEEDED
        elif status in (JobStatus.FAILED, JobStatus.CANCELED):
            self.state = PollState.FAILED
        elif status is None:
            logger.warning("Unknown job status %r, still waiting", raw_status)
        return self.state

    def tick(self, request_timeout: Optional[float] = None) -> PollState:
        """Issue one status request and transition on its result."""
        self.ticks += 1
        try:
            payload = (self._fetch or api.get_task)(
                self.handle,
                token=self._token,
                timeout=request_timeout or self.request_timeout,
            )
        except requests.exceptions.JSONDecodeError as e:
            raise PollParseError(f"Job status response is not valid JSON: {e}") from e
        except requests.RequestException as e:
            raise PollTransportError(f"Failed to get job status from {self.handle}: {e}") from e

        status = parse_task_status(payload)
        logger.info("Sonar job status: %s (tick %d)", status, self.ticks)

        if self.transition(status) is PollState.FAILED:
            raise PollTerminalFailureError(
                f"Analysis task ended with status {status}", status=status
            )
        return self.state

    def _time_out(self) -> None:
        self.state = PollState.TIMED_OUT
        raise PollTimeoutError(
            f"Timed out after {self.timeout:g}s waiting for analysis task "
            f"(last status: {self.last_status or 'none'}, ticks: {self.ticks})",
            ticks=self.ticks,
        )

    def run(self) -> int:
        """Poll until a terminal state; return the number of ticks used."""
        deadline = self._clock() + self.timeout

        while self.state is PollState.WAITING:
            remaining = deadline - self._clock()
            if remaining <= 0:
                self._time_out()

            cancelled = self._wait(min(self.interval, remaining))
            if cancelled or self._cancel.is_set():
                self.state = PollState.CANCELLED
                raise RunCancelledError("Run cancelled while waiting for the analysis task")

            # Deadline wins a tie with the tick.
            remaining = deadline - self._clock()
            if remaining <= 0:
                self._time_out()

            self.tick(min(self.request_timeout, remaining))

        return self.ticks


def await_completion(
    handle: str,
    *,
    timeout: float = DEFAULT_POLL_TIMEOUT,
    interval: float = DEFAULT_POLL_INTERVAL,
    token: str = "",
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    cancel: Optional[threading.Event] = None,
) -> int:
    """Block until the task behind ``handle`` succeeds; raise otherwise."""
    poller = JobPoller(
        handle,
        timeout=timeout,
        interval=interval,
        token=token,
        request_timeout=request_timeout,
        cancel=cancel,
    )
    ticks = poller.run()
    logger.info("Analysis task succeeded after %d tick(s)", ticks)
    return ticks
