"""sonar_gate/properties.py

Render sonar-scanner.properties from a template and the run config.

Templates use ``string.Template`` placeholders (``${host}``, ``${key}``, ...).
Property lines whose value renders empty are dropped so the scanner falls back
to its own defaults instead of receiving ``sonar.inclusions=``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from string import Template
from typing import Dict, Optional

from sonar_gate.errors import ConfigRenderError
from sonar_gate.types import RunConfig

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent / "templates" / "sonar-scanner.properties.tmpl"


def template_values(config: RunConfig) -> Dict[str, str]:
    return {
        "host": config.api_host,
        "token": config.token,
        "key": config.scanner_key,
        "name": config.name,
        "version": config.version,
        "sources": config.sources,
        "inclusions": config.inclusions,
        "exclusions": config.exclusions,
        "language": config.language,
        "profile": config.profile,
        "encoding": config.encoding,
        "branch": config.branch,
        "remote": config.remote,
    }


def _drop_empty_properties(text: str) -> str:
    kept = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith(("#", "!")) and "=" in stripped:
            _, value = stripped.split("=", 1)
            if not value.strip():
                continue
        kept.append(line)
    return "\n".join(kept) + "\n"


def render_text(template_text: str, config: RunConfig) -> str:
    try:
        rendered = Template(template_text).substitute(template_values(config))
    except KeyError as e:
        raise ConfigRenderError(f"Unknown placeholder in properties template: {e}") from e
    except ValueError as e:
        raise ConfigRenderError(f"Invalid properties template: {e}") from e
    return _drop_empty_properties(rendered)


def render_properties(
    config: RunConfig,
    template_path: Optional[Path] = None,
    output_path: Optional[Path] = None,
) -> Path:
    """Render the template to ``output_path`` and return that path."""
    src = Path(template_path or config.template_path or DEFAULT_TEMPLATE_PATH)
    dst = Path(output_path or config.properties_path)

    try:
        template_text = src.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigRenderError(f"Template parsing failed ({src}): {e}") from e

    rendered = render_text(template_text, config)

    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_text(rendered, encoding="utf-8")
    except OSError as e:
        raise ConfigRenderError(f"sonar-properties file creation failed ({dst}): {e}") from e

    logger.info("Wrote scanner properties to %s", dst)
    return dst
