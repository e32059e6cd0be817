"""sonar_gate/types.py

Small shared data structures for one quality-gate run.

Nothing in here does I/O. ``RunConfig`` is built once by
:mod:`sonar_gate.config` and handed explicitly to every stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


DEFAULT_SCANNER_BIN = "sonar-scanner"
DEFAULT_PROPERTIES_PATH = "/opt/sonar-scanner/conf/sonar-scanner.properties"
DEFAULT_QUALITY = "OK"
DEFAULT_ENCODING = "UTF-8"
DEFAULT_POLL_TIMEOUT = 5.0
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_REQUEST_TIMEOUT = 3.0

# Sonar namespaces project keys with ':'; CI systems hand us "org/repo".
KEY_SEPARATOR = ":"


def normalize_project_key(key: str) -> str:
    """Replace path separators with Sonar's namespace separator.

    "org/repo" -> "org:repo". Keys without '/' come back unchanged.
    """
    return (key or "").replace("/", KEY_SEPARATOR)


def qualified_project_key(key: str, branch: Optional[str]) -> str:
    """Project key as the server stores it for a branch analysis.

    "org/repo", "main" -> "org:repo:main"
    """
    normalized = normalize_project_key(key)
    if branch:
        return f"{normalized}{KEY_SEPARATOR}{branch}"
    return normalized


@dataclass(frozen=True)
class RunConfig:
    """Everything one run needs. Never mutated after construction."""

    host: str
    key: str
    token: str = ""
    name: str = ""
    version: str = ""
    sources: str = ""
    inclusions: str = ""
    exclusions: str = ""
    language: str = ""
    profile: str = ""
    encoding: str = DEFAULT_ENCODING
    remote: str = ""
    branch: str = ""
    quality: str = DEFAULT_QUALITY

    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    scanner_bin: str = DEFAULT_SCANNER_BIN
    template_path: Optional[str] = None
    properties_path: str = DEFAULT_PROPERTIES_PATH

    @property
    def scanner_key(self) -> str:
        """Key written into the scanner properties (branch goes in sonar.branch)."""
        return normalize_project_key(self.key)

    @property
    def gate_key(self) -> str:
        """Key used when asking the server for the quality gate."""
        return qualified_project_key(self.key, self.branch)

    @property
    def api_host(self) -> str:
        return self.host.rstrip("/")


class JobStatus(str, Enum):
    """Compute Engine task states reported by the server."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELED = "CANCELED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILED, JobStatus.CANCELED)

    @classmethod
    def parse(cls, raw: str) -> Optional["JobStatus"]:
        """Map a server string to a known state; ``None`` for anything else."""
        try:
            return cls(raw)
        except ValueError:
            return None


class PollState(str, Enum):
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class GateCondition:
    status: str
    metric_key: str
    comparator: str = ""
    period_index: Optional[int] = None
    error_threshold: str = ""
    actual_value: str = ""

    @property
    def passed(self) -> bool:
        return self.status == "OK"

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "GateCondition":
        return cls(
            status=str(raw.get("status") or ""),
            metric_key=str(raw.get("metricKey") or ""),
            comparator=str(raw.get("comparator") or ""),
            period_index=raw.get("periodIndex"),
            error_threshold=str(raw.get("errorThreshold") or ""),
            actual_value=str(raw.get("actualValue") or ""),
        )


@dataclass(frozen=True)
class GatePeriod:
    index: int
    mode: str = ""
    date: str = ""
    parameter: str = ""

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> "GatePeriod":
        return cls(
            index=int(raw.get("index") or 0),
            mode=str(raw.get("mode") or ""),
            date=str(raw.get("date") or ""),
            parameter=str(raw.get("parameter") or ""),
        )


@dataclass(frozen=True)
class QualityGateResult:
    """Parsed ``projectStatus`` block of /api/qualitygates/project_status."""

    status: str
    conditions: Tuple[GateCondition, ...] = field(default_factory=tuple)
    periods: Tuple[GatePeriod, ...] = field(default_factory=tuple)
    ignored_conditions: bool = False

    def failed_conditions(self) -> List[GateCondition]:
        return [c for c in self.conditions if not c.passed]
