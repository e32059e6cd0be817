"""sonar_gate/orchestrator.py

One quality-gate run, start to finish:

  render properties -> sonar-scanner -> wait for CE task -> fetch gate -> decide

Every stage raises its own :class:`~sonar_gate.errors.SonarGateError`; this
module never retries a stage and never exits the process. The CLI decides the
exit code.

Cancellation is a ``threading.Event``: it is checked between stages and after
the gate fetch, the scanner subprocess is terminated when it is set, and the
poller waits on it between ticks.
"""

from __future__ import annotations

import threading
from typing import Optional

from sonar_gate.errors import RunCancelledError
from sonar_gate.gate import evaluate_gate, fetch_gate_status
from sonar_gate.poller import await_completion
from sonar_gate.properties import render_properties
from sonar_gate.scanner import launch_scan
from sonar_gate.types import QualityGateResult, RunConfig


def _check_cancel(cancel: threading.Event, before: str) -> None:
    if cancel.is_set():
        raise RunCancelledError(f"Run cancelled before {before}")


def run(config: RunConfig, *, cancel: Optional[threading.Event] = None) -> QualityGateResult:
    """Execute one run and return the passing gate result.

    The gate passes only when its status equals ``config.quality`` (default
    "OK").
    """
    cancel = cancel or threading.Event()

    print(f"Using Sonar host: {config.api_host}")
    print(f"Sonar project key: {config.gate_key}")

    _check_cancel(cancel, "rendering scanner properties")
    render_properties(config)

    _check_cancel(cancel, "launching the scan")
    handle = launch_scan(config, cancel=cancel)
    print(f"Job url: {handle}")

    _check_cancel(cancel, "polling the analysis task")
    await_completion(
        handle,
        timeout=config.poll_timeout,
        interval=config.poll_interval,
        token=config.token,
        request_timeout=config.request_timeout,
        cancel=cancel,
    )

    _check_cancel(cancel, "fetching the quality gate")
    result = fetch_gate_status(
        config.api_host,
        config.gate_key,
        token=config.token,
        request_timeout=config.request_timeout,
    )
    _check_cancel(cancel, "evaluating the quality gate")

    evaluate_gate(result, config.quality)
    print(f"✅ QualityGate status {result.status} for {config.gate_key}")
    return result
