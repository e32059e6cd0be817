"""sonar_gate/cmd.py

Subprocess helpers used by the scan launcher.

* :func:`which_or_raise` - resolve the scanner executable across environments.
* :func:`run_cmd` - run a subprocess (no ``shell=True``) and capture output.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple


# How often a running command checks its cancel event.
CANCEL_POLL_SECONDS = 0.2

# Common install locations for sonar-scanner outside PATH (docker image, brew).
SCANNER_FALLBACKS = [
    "/opt/sonar-scanner/bin/sonar-scanner",
    "/usr/local/bin/sonar-scanner",
    "/opt/homebrew/bin/sonar-scanner",
]


@dataclass(frozen=True)
class CmdResult:
    exit_code: int
    elapsed_seconds: float
    command_str: str
    stdout: str
    stderr: str
    cancelled: bool = False

    @property
    def combined_output(self) -> str:
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


def which_or_raise(bin_name: str, fallbacks: Optional[List[str]] = None) -> str:
    """Locate an executable and return its absolute path.

    Raises FileNotFoundError when neither PATH nor the fallbacks have it.
    """
    found = shutil.which(bin_name)
    if found:
        return found

    for candidate in fallbacks or []:
        p = Path(candidate)
        if p.exists() and os.access(str(p), os.X_OK):
            return str(p)

    raise FileNotFoundError(
        f"Executable '{bin_name}' not found on PATH. "
        f"Tried fallbacks: {fallbacks or []}"
    )


def _communicate(
    proc: subprocess.Popen, cancel: Optional[threading.Event]
) -> Tuple[str, str, bool]:
    if cancel is None:
        stdout, stderr = proc.communicate()
        return stdout, stderr, False

    while True:
        try:
            stdout, stderr = proc.communicate(timeout=CANCEL_POLL_SECONDS)
            return stdout, stderr, False
        except subprocess.TimeoutExpired:
            if cancel.is_set():
                break

    proc.terminate()
    try:
        stdout, stderr = proc.communicate(timeout=10)
    except subprocess.TimeoutExpired:
        proc.kill()
        stdout, stderr = proc.communicate()
    return stdout, stderr, True


def run_cmd(
    cmd: List[str],
    *,
    cwd: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
    print_stdout: bool = True,
    print_stderr: bool = True,
    cancel: Optional[threading.Event] = None,
) -> CmdResult:
    """Run a subprocess and capture stdout/stderr separately.

    Never raises on non-zero exit codes; only raises on execution errors
    (e.g. binary not found, permission denied). When ``cancel`` is set while
    the command runs, the child is terminated and the result is marked
    ``cancelled``.
    """
    t0 = time.time()

    env2 = None
    if env is not None:
        env2 = os.environ.copy()
        env2.update(env)

    proc = subprocess.Popen(
        cmd,
        cwd=str(cwd) if cwd else None,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env2,
    )
    stdout, stderr, cancelled = _communicate(proc, cancel)
    elapsed = time.time() - t0

    if print_stdout and stdout:
        print(f"out:\n{stdout}")
    # The scanner writes warnings to stderr even on success.
    if print_stderr and stderr:
        print(stderr, file=sys.stderr)

    return CmdResult(
        exit_code=proc.returncode,
        elapsed_seconds=elapsed,
        command_str=" ".join(cmd),
        stdout=stdout or "",
        stderr=stderr or "",
        cancelled=cancelled,
    )
