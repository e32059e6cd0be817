"""sonar_gate/errors.py

Typed failures for every stage of a run.

Stages raise; only :mod:`sonar_gate.cli` turns an error into a process exit
code. ``stage`` names where the run stopped so the operator message can say so.
"""

from __future__ import annotations

from typing import Optional


class SonarGateError(Exception):
    stage = "run"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"


class ConfigError(SonarGateError):
    stage = "config"


class ConfigRenderError(SonarGateError):
    stage = "render"


class ScanExecutionError(SonarGateError):
    stage = "scan"

    def __init__(self, message: str, exit_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class JobHandleNotFoundError(SonarGateError):
    stage = "scan"


class PollError(SonarGateError):
    stage = "poll"


class PollTransportError(PollError):
    pass


class PollParseError(PollError):
    pass


class PollTimeoutError(PollError):
    def __init__(self, message: str, ticks: int = 0) -> None:
        super().__init__(message)
        self.ticks = ticks


class PollTerminalFailureError(PollError):
    def __init__(self, message: str, status: str = "") -> None:
        super().__init__(message)
        self.status = status


class GateError(SonarGateError):
    stage = "gate"


class GateFetchError(GateError):
    pass


class GateParseError(GateError):
    pass


class QualityGateFailedError(GateError):
    def __init__(self, message: str, status: str = "", expected: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.expected = expected


class RunCancelledError(SonarGateError):
    stage = "cancelled"
