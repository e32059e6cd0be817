"""sonar_gate/scanner.py

Scan launcher: run sonar-scanner once and pull the Compute Engine task URL
out of its output.

The scanner takes no arguments; everything it needs is in the properties file
rendered beforehand by :mod:`sonar_gate.properties`.

Known limitation: if the output mentions more than one analysis, the first
task URL wins.
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Optional

from sonar_gate.cmd import SCANNER_FALLBACKS, run_cmd, which_or_raise
from sonar_gate.errors import JobHandleNotFoundError, RunCancelledError, ScanExecutionError
from sonar_gate.types import RunConfig

logger = logging.getLogger(__name__)

# e.g. "INFO: More about the report processing at
#       https://sonar.example.com/api/ce/task?id=AYx1-abc_Z"
JOB_URL_RE = re.compile(r"https?://[^\s/]+(?:/\S*?)?/api/ce/task\?id=[^\s&#\"'<>]+")

_STDERR_TAIL_CHARS = 2000


def parse_job_handle(text: str) -> Optional[str]:
    """Return the first task URL in ``text`` exactly as written, or None."""
    m = JOB_URL_RE.search(text or "")
    return m.group(0) if m else None


def launch_scan(config: RunConfig, *, cancel: Optional[threading.Event] = None) -> str:
    """Run the scanner synchronously and return the job handle URL.

    Setting ``cancel`` while the scanner runs terminates it.
    """
    try:
        scanner = which_or_raise(config.scanner_bin, fallbacks=SCANNER_FALLBACKS)
    except FileNotFoundError as e:
        raise ScanExecutionError(f"Cannot start scanner: {e}") from e

    cwd = Path(config.sources) if config.sources else None
    print(f"Running {scanner} (cwd={cwd or '.'})")
    try:
        res = run_cmd([scanner], cwd=cwd, cancel=cancel)
    except OSError as e:
        raise ScanExecutionError(f"Cannot start scanner '{scanner}': {e}") from e

    if res.cancelled:
        raise RunCancelledError(f"Run cancelled while {res.command_str} was running")

    if res.exit_code != 0:
        tail = res.stderr[-_STDERR_TAIL_CHARS:].strip()
        msg = f"{res.command_str} exited with code {res.exit_code}"
        if tail:
            msg += f": {tail}"
        raise ScanExecutionError(msg, exit_code=res.exit_code)

    logger.info("sonar-scanner finished in %.2fs", res.elapsed_seconds)

    handle = parse_job_handle(res.combined_output)
    if handle is None:
        raise JobHandleNotFoundError(
            "No '/api/ce/task?id=' URL found in sonar-scanner output; "
            "was the report uploaded to the server?"
        )

    logger.info("Job url: %s", handle)
    return handle
