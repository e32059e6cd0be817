"""sonar_gate/config.py

Build a RunConfig from CLI flags and the CI environment.

Every flag falls back to environment variables (first one set wins), so the
same image works as a Drone plugin (``PLUGIN_*`` / ``DRONE_*``) or from a
shell with ``SONAR_*`` exported. A ``.env`` file in the working directory is
loaded first; it never overrides variables that are already set.
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from dotenv import load_dotenv

from sonar_gate.errors import ConfigError
from sonar_gate.types import (
    DEFAULT_ENCODING,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_TIMEOUT,
    DEFAULT_PROPERTIES_PATH,
    DEFAULT_QUALITY,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SCANNER_BIN,
    RunConfig,
)


# flag dest -> env vars checked in order
ENV_FALLBACKS: Dict[str, List[str]] = {
    "name": ["PLUGIN_NAME", "DRONE_REPO"],
    "branch": ["PLUGIN_BRANCH", "DRONE_REPO_BRANCH"],
    "remote": ["PLUGIN_REMOTE", "DRONE_REMOTE_URL"],
    "path": ["PLUGIN_PATH", "DRONE_WORKSPACE"],
    "host": ["SONAR_HOST", "PLUGIN_HOST"],
    "token": ["SONAR_TOKEN", "PLUGIN_TOKEN"],
    "key": ["PLUGIN_KEY", "DRONE_REPO"],
    "buildnum": ["PLUGIN_BUILD_NUMBER", "DRONE_BUILD_NUMBER"],
    "inclusions": ["PLUGIN_INCLUSIONS"],
    "exclusions": ["PLUGIN_EXCLUSIONS"],
    "language": ["PLUGIN_LANGUAGE"],
    "profile": ["PLUGIN_PROFILE"],
    "encoding": ["PLUGIN_ENCODING"],
    "quality": ["SONAR_QUALITYGATE", "PLUGIN_QUALITYGATE"],
    "timeout": ["PLUGIN_TIMEOUT"],
    "interval": ["PLUGIN_INTERVAL"],
    "request_timeout": ["PLUGIN_REQUEST_TIMEOUT"],
    "scanner": ["PLUGIN_SCANNER"],
    "template": ["PLUGIN_TEMPLATE"],
    "properties": ["PLUGIN_PROPERTIES"],
    "debug": ["PLUGIN_DEBUG"],
}

DEFAULTS: Dict[str, str] = {
    "encoding": DEFAULT_ENCODING,
    "quality": DEFAULT_QUALITY,
    "timeout": str(DEFAULT_POLL_TIMEOUT),
    "interval": str(DEFAULT_POLL_INTERVAL),
    "request_timeout": str(DEFAULT_REQUEST_TIMEOUT),
    "scanner": DEFAULT_SCANNER_BIN,
    "properties": DEFAULT_PROPERTIES_PATH,
}

_TRUTHY = {"1", "true", "yes", "on"}


def env_default(dest: str, environ: Mapping[str, str]) -> Optional[str]:
    for var in ENV_FALLBACKS.get(dest, []):
        val = environ.get(var)
        if val:
            return val
    return DEFAULTS.get(dest)


def build_parser(environ: Optional[Mapping[str, str]] = None) -> argparse.ArgumentParser:
    env = os.environ if environ is None else environ

    def d(dest: str) -> Optional[str]:
        return env_default(dest, env)

    p = argparse.ArgumentParser(
        prog="sonar-gate",
        description="Run sonar-scanner, wait for the analysis and fail the build on a red quality gate.",
    )
    p.add_argument("--name", default=d("name"), help="repository full name")
    p.add_argument("--branch", default=d("branch"), help="repository branch")
    p.add_argument("--remote", default=d("remote"), help="git remote url")
    p.add_argument("--path", default=d("path"), help="git clone path (scanner working directory)")
    p.add_argument("--host", default=d("host"), help="Sonar host URL")
    p.add_argument("--token", default=d("token"), help="Sonar token")
    p.add_argument("--key", default=d("key"), help="project key ('org/repo' is accepted)")
    p.add_argument("--buildnum", default=d("buildnum"), help="project version")
    p.add_argument("--inclusions", default=d("inclusions"), help="project sources inclusions")
    p.add_argument("--exclusions", default=d("exclusions"), help="project sources exclusions")
    p.add_argument("--language", default=d("language"), help="project language")
    p.add_argument("--profile", default=d("profile"), help="project quality profile")
    p.add_argument("--encoding", default=d("encoding"), help="project source encoding")
    p.add_argument("--quality", default=d("quality"), help="expected quality gate status")
    p.add_argument("--timeout", default=d("timeout"), help="seconds to wait for the analysis task")
    p.add_argument("--interval", default=d("interval"), help="seconds between task status requests")
    p.add_argument("--request-timeout", default=d("request_timeout"), help="per-request HTTP timeout (seconds)")
    p.add_argument("--scanner", default=d("scanner"), help="scanner executable")
    p.add_argument("--template", default=d("template"), help="properties template path")
    p.add_argument("--properties", default=d("properties"), help="rendered properties output path")
    p.add_argument(
        "--debug",
        action="store_true",
        default=(d("debug") or "").strip().lower() in _TRUTHY,
        help="verbose logging",
    )
    return p


def _positive_seconds(raw: Optional[str], flag: str) -> float:
    try:
        val = float(raw) if raw is not None else 0.0
    except ValueError:
        raise ConfigError(f"{flag} must be a number of seconds, got {raw!r}") from None
    if val <= 0:
        raise ConfigError(f"{flag} must be positive, got {raw!r}")
    return val


def config_from_args(args: argparse.Namespace) -> RunConfig:
    if not args.host:
        raise ConfigError("Sonar host is not set (SONAR_HOST / PLUGIN_HOST or --host).")
    if not args.key:
        raise ConfigError("Project key is not set (PLUGIN_KEY / DRONE_REPO or --key).")

    return RunConfig(
        host=args.host,
        token=args.token or "",
        key=args.key,
        name=args.name or args.key,
        version=args.buildnum or "",
        sources=args.path or "",
        inclusions=args.inclusions or "",
        exclusions=args.exclusions or "",
        language=args.language or "",
        profile=args.profile or "",
        encoding=args.encoding or DEFAULT_ENCODING,
        remote=args.remote or "",
        branch=args.branch or "",
        quality=args.quality or DEFAULT_QUALITY,
        poll_timeout=_positive_seconds(args.timeout, "--timeout"),
        poll_interval=_positive_seconds(args.interval, "--interval"),
        request_timeout=_positive_seconds(args.request_timeout, "--request-timeout"),
        scanner_bin=args.scanner or DEFAULT_SCANNER_BIN,
        template_path=args.template or None,
        properties_path=args.properties or DEFAULT_PROPERTIES_PATH,
    )


def load_env_file(dotenv_path: Optional[Path] = None) -> None:
    load_dotenv(dotenv_path or Path.cwd() / ".env")


def load_config(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Path] = None,
) -> RunConfig:
    """Parse ``argv`` against the environment and return the run config.

    ``.env`` is only read when running against the real process environment.
    """
    if environ is None:
        load_env_file(dotenv_path)
    args = build_parser(environ).parse_args(argv)
    return config_from_args(args)
