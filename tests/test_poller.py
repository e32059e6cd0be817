from __future__ import annotations

import threading
from typing import Any, Dict, List
from unittest.mock import MagicMock, patch

import pytest
import requests

from sonar_gate.errors import (
    PollParseError,
    PollTerminalFailureError,
    PollTimeoutError,
    PollTransportError,
    RunCancelledError,
)
from sonar_gate.poller import JobPoller, await_completion, parse_task_status
from sonar_gate.types import PollState

HANDLE = "http://sonar.local/api/ce/task?id=AXyZ"


class FakeClock:
    """Monotonic clock that only moves when the poller waits."""

    def __init__(self) -> None:
        self.now = 0.0
        self.waits: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        self.now += seconds
        return False


class FakeServer:
    """Returns the given statuses in order, repeating the last one forever."""

    def __init__(self, *statuses: str) -> None:
        self.statuses = list(statuses)
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, url: str, *, token: str = "", timeout: float) -> Dict[str, Any]:
        self.calls.append({"url": url, "token": token, "timeout": timeout})
        idx = min(len(self.calls), len(self.statuses)) - 1
        return {"task": {"id": "AXyZ", "status": self.statuses[idx]}}


def _poller(server, clock: FakeClock, **kw) -> JobPoller:
    kw.setdefault("timeout", 5.0)
    kw.setdefault("interval", 0.5)
    return JobPoller(HANDLE, clock=clock.monotonic, wait=clock.wait, fetch=server, **kw)


def test_success_on_first_tick_uses_one_request() -> None:
    clock = FakeClock()
    server = FakeServer("SUCCESS")
    poller = _poller(server, clock)

    assert poller.run() == 1
    assert poller.state is PollState.SUCCEEDED
    assert len(server.calls) == 1
    assert server.calls[0]["url"] == HANDLE
    # first tick happens after one interval, not immediately
    assert clock.waits == [0.5]


def test_waits_through_non_terminal_states() -> None:
    clock = FakeClock()
    server = FakeServer("PENDING", "IN_PROGRESS", "SUCCESS")
    poller = _poller(server, clock)

    assert poller.run() == 3
    assert poller.state is PollState.SUCCEEDED


def test_never_terminal_times_out_within_tick_bound() -> None:
    clock = FakeClock()
    server = FakeServer("IN_PROGRESS")
    poller = _poller(server, clock, timeout=5.0, interval=0.5)

    with pytest.raises(PollTimeoutError) as exc:
        poller.run()

    assert poller.state is PollState.TIMED_OUT
    # ticks at 0.5 .. 4.5; the deadline wins the tie at 5.0
    assert len(server.calls) == 9
    assert len(server.calls) <= 5.0 / 0.5
    assert exc.value.ticks == 9
    assert clock.now == pytest.approx(5.0)


@pytest.mark.parametrize("terminal", ["FAILED", "CANCELED"])
def test_terminal_failure_is_fatal_immediately(terminal: str) -> None:
    clock = FakeClock()
    server = FakeServer("PENDING", terminal, "SUCCESS")
    poller = _poller(server, clock)

    with pytest.raises(PollTerminalFailureError) as exc:
        poller.run()

    assert exc.value.status == terminal
    assert poller.state is PollState.FAILED
    assert len(server.calls) == 2


def test_repeated_unchanged_ticks_stay_waiting() -> None:
    clock = FakeClock()
    poller = _poller(FakeServer("PENDING"), clock)
    for _ in range(4):
        assert poller.tick() is PollState.WAITING
    assert poller.ticks == 4
    assert poller.last_status == "PENDING"


def test_unknown_status_keeps_waiting() -> None:
    poller = _poller(FakeServer("SOMETHING_ELSE"), FakeClock())
    assert poller.tick() is PollState.WAITING


def test_transport_error_is_fatal_without_retry() -> None:
    clock = FakeClock()
    fetch = MagicMock(side_effect=requests.ConnectionError("refused"))
    poller = _poller(fetch, clock)

    with pytest.raises(PollTransportError):
        poller.run()
    assert fetch.call_count == 1


def test_invalid_json_is_parse_error() -> None:
    fetch = MagicMock(side_effect=requests.exceptions.JSONDecodeError("Expecting value", "", 0))
    with pytest.raises(PollParseError):
        _poller(fetch, FakeClock()).run()


@pytest.mark.parametrize(
    "error",
    [
        requests.exceptions.InvalidURL("bad url"),
        requests.exceptions.MissingSchema("no scheme"),
        requests.exceptions.InvalidHeader("bad header"),
    ],
)
def test_invalid_request_errors_are_transport_errors(error: Exception) -> None:
    fetch = MagicMock(side_effect=error)
    with pytest.raises(PollTransportError):
        _poller(fetch, FakeClock()).tick()


def test_job_url_without_scheme_is_transport_error() -> None:
    poller = JobPoller("sonar.local/api/ce/task?id=AXyZ", wait=FakeClock().wait)
    with pytest.raises(PollTransportError):
        poller.tick()


def test_missing_task_status_is_parse_error() -> None:
    with pytest.raises(PollParseError):
        parse_task_status({"errors": [{"msg": "Unknown task"}]})
    with pytest.raises(PollParseError):
        parse_task_status({"task": {"id": "x"}})
    with pytest.raises(PollParseError):
        parse_task_status(["not", "an", "object"])
    assert parse_task_status({"task": {"status": "SUCCESS"}}) == "SUCCESS"


def test_request_timeout_is_clamped_to_deadline() -> None:
    clock = FakeClock()
    server = FakeServer("PENDING", "SUCCESS")
    poller = _poller(server, clock, timeout=1.2, interval=0.5, request_timeout=3.0)

    assert poller.run() == 2
    assert server.calls[0]["timeout"] == pytest.approx(0.7)
    assert server.calls[1]["timeout"] == pytest.approx(0.2)


def test_cancel_during_wait_stops_ticks() -> None:
    server = FakeServer("PENDING")
    poller = JobPoller(HANDLE, wait=lambda _s: True, fetch=server)

    with pytest.raises(RunCancelledError):
        poller.run()
    assert poller.state is PollState.CANCELLED
    assert server.calls == []


def test_cancel_event_is_checked_with_injected_wait() -> None:
    cancel = threading.Event()
    cancel.set()
    clock = FakeClock()
    server = FakeServer("PENDING")
    poller = _poller(server, clock, cancel=cancel)

    with pytest.raises(RunCancelledError):
        poller.run()
    assert server.calls == []


def test_default_fetch_is_resolved_at_call_time() -> None:
    with patch("sonar_gate.poller.api.get_task", return_value={"task": {"status": "PENDING"}}) as get_task:
        assert JobPoller(HANDLE).tick() is PollState.WAITING
    get_task.assert_called_once()


def test_await_completion_honours_preset_cancel_event() -> None:
    cancel = threading.Event()
    cancel.set()
    with patch("sonar_gate.poller.api.get_task") as get_task:
        with pytest.raises(RunCancelledError):
            await_completion(HANDLE, timeout=5.0, interval=0.5, cancel=cancel)
    get_task.assert_not_called()


def test_await_completion_real_clock_success() -> None:
    with patch(
        "sonar_gate.poller.api.get_task",
        return_value={"task": {"status": "SUCCESS"}},
    ) as get_task:
        ticks = await_completion(HANDLE, timeout=2.0, interval=0.01, token="t0k")

    assert ticks == 1
    get_task.assert_called_once()
    assert get_task.call_args.kwargs["token"] == "t0k"


def test_rejects_non_positive_durations() -> None:
    with pytest.raises(ValueError):
        JobPoller(HANDLE, timeout=0)
    with pytest.raises(ValueError):
        JobPoller(HANDLE, interval=-1)
