"""sonar_gate/api.py

All SonarQube HTTP calls live here.

Design goals:
  - Keep network I/O separated from parsing and decisions.
  - Always pass a per-request timeout; callers clamp it to their own deadline.
  - Let ``requests`` exceptions propagate; the poller and gate evaluator map
    them to their own error types.
"""

from __future__ import annotations

from typing import Any, Dict
from urllib.parse import urlencode

import requests


QUALITY_GATE_PATH = "/api/qualitygates/project_status"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _headers(token: str) -> Dict[str, str]:
    headers = {"Cache-Control": "no-cache"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def encode_gate_body(project_key: str) -> str:
    return urlencode({"projectKey": project_key}, safe=":/")


def get_task(job_url: str, *, token: str = "", timeout: float) -> Dict[str, Any]:
    """GET the Compute Engine task behind a job handle URL.

    Expected body: ``{"task": {"status": "...", ...}}``.
    Raises requests.RequestException on transport/HTTP errors;
    requests.exceptions.JSONDecodeError (a subclass) on a body that is not JSON.
    """
    resp = requests.get(job_url, headers=_headers(token), timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def post_project_status(host: str, project_key: str, *, token: str = "", timeout: float) -> Dict[str, Any]:
    """POST /api/qualitygates/project_status with ``projectKey=<key>``.

    The key is form-encoded but keeps ':' literal (``projectKey=org:repo:main``).
    """
    url = f"{host.rstrip('/')}{QUALITY_GATE_PATH}"
    headers = _headers(token)
    headers["Content-Type"] = FORM_CONTENT_TYPE
    resp = requests.post(
        url,
        data=encode_gate_body(project_key),
        headers=headers,
        timeout=timeout,
    )
    resp.raise_for_status()
    return resp.json()
