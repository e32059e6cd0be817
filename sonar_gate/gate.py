"""sonar_gate/gate.py

Quality gate evaluator: fetch the project's gate status, parse it, and decide.

Only ``projectStatus.status`` drives the decision; conditions and periods are
kept for the log so a failing gate explains itself.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from sonar_gate import api
from sonar_gate.errors import GateFetchError, GateParseError, QualityGateFailedError
from sonar_gate.types import (
    DEFAULT_QUALITY,
    DEFAULT_REQUEST_TIMEOUT,
    GateCondition,
    GatePeriod,
    QualityGateResult,
)

logger = logging.getLogger(__name__)


def parse_gate_status(payload: Any) -> QualityGateResult:
    """Build a QualityGateResult from a project_status response body."""
    ps = payload.get("projectStatus") if isinstance(payload, dict) else None
    if not isinstance(ps, dict):
        raise GateParseError("Quality gate response has no 'projectStatus' object")

    status = ps.get("status")
    if not isinstance(status, str) or not status:
        raise GateParseError("Quality gate response has no 'projectStatus.status' value")

    try:
        conditions = tuple(GateCondition.from_json(c) for c in ps.get("conditions") or [])
        periods = tuple(GatePeriod.from_json(p) for p in ps.get("periods") or [])
    except (AttributeError, TypeError, ValueError) as e:
        raise GateParseError(f"Malformed quality gate conditions/periods: {e}") from e

    return QualityGateResult(
        status=status,
        conditions=conditions,
        periods=periods,
        ignored_conditions=bool(ps.get("ignoredConditions", False)),
    )


def fetch_gate_status(
    host: str,
    project_key: str,
    *,
    token: str = "",
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> QualityGateResult:
    try:
        payload = api.post_project_status(host, project_key, token=token, timeout=request_timeout)
    except requests.exceptions.JSONDecodeError as e:
        raise GateParseError(f"Quality gate response is not valid JSON: {e}") from e
    except requests.RequestException as e:
        raise GateFetchError(f"Failed to get quality gate status for '{project_key}': {e}") from e

    result = parse_gate_status(payload)
    logger.info(
        "QualityGate status for %s: %s (%d conditions)",
        project_key,
        result.status,
        len(result.conditions),
    )
    for c in result.failed_conditions():
        logger.info(
            "  condition %s: %s %s %s (actual %s)",
            c.status,
            c.metric_key,
            c.comparator,
            c.error_threshold,
            c.actual_value,
        )
    return result


def evaluate_gate(result: QualityGateResult, expected: str = DEFAULT_QUALITY) -> None:
    """Raise QualityGateFailedError unless the gate status equals ``expected``."""
    expected = expected or DEFAULT_QUALITY
    if result.status != expected:
        failed = ", ".join(c.metric_key for c in result.failed_conditions())
        msg = f"QualityGate status is {result.status}, expected {expected}"
        if failed:
            msg += f" (failing conditions: {failed})"
        raise QualityGateFailedError(msg, status=result.status, expected=expected)
