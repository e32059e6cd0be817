"""sonar_gate/cli.py

Thin entrypoint: parse flags/env, wire logging and signals, run once, and turn
the outcome into an exit code (0 pass, 1 any failure).
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import List, Optional

from sonar_gate import orchestrator
from sonar_gate.config import build_parser, config_from_args, load_env_file
from sonar_gate.errors import SonarGateError

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # urllib3 is chatty at DEBUG and would print request URLs for every tick.
    logging.getLogger("urllib3").setLevel(logging.INFO if debug else logging.WARNING)


def install_cancel_handlers(cancel: threading.Event) -> None:
    """Turn SIGINT/SIGTERM (pipeline cancellation) into a cancel request."""

    def _handler(signum, _frame) -> None:
        logger.warning("Received signal %s, cancelling run", signum)
        cancel.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _handler)


def main(argv: Optional[List[str]] = None) -> int:
    load_env_file()
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)

    cancel = threading.Event()
    if threading.current_thread() is threading.main_thread():
        install_cancel_handlers(cancel)

    try:
        config = config_from_args(args)
        orchestrator.run(config, cancel=cancel)
    except SonarGateError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
