from __future__ import annotations

from pathlib import Path

import pytest

from sonar_gate.errors import ConfigRenderError
from sonar_gate.properties import DEFAULT_TEMPLATE_PATH, render_properties, render_text
from sonar_gate.types import RunConfig


def _cfg(**kw) -> RunConfig:
    base = dict(
        host="http://sonar.local/",
        token="s3cret",
        key="org/repo",
        name="org/repo",
        version="42",
        sources="/drone/src",
        branch="main",
    )
    base.update(kw)
    return RunConfig(**base)


def _props(text: str) -> dict:
    out = {}
    for line in text.splitlines():
        if line and not line.startswith("#"):
            k, v = line.split("=", 1)
            out[k] = v
    return out


def test_default_template_ships_with_package() -> None:
    assert DEFAULT_TEMPLATE_PATH.is_file()


def test_render_default_template(tmp_path: Path) -> None:
    out = tmp_path / "conf" / "sonar-scanner.properties"
    written = render_properties(_cfg(inclusions="src/**"), output_path=out)

    assert written == out
    props = _props(out.read_text(encoding="utf-8"))
    assert props["sonar.host.url"] == "http://sonar.local"
    assert props["sonar.projectKey"] == "org:repo"
    assert props["sonar.branch"] == "main"
    assert props["sonar.projectVersion"] == "42"
    assert props["sonar.inclusions"] == "src/**"
    assert props["sonar.sourceEncoding"] == "UTF-8"


def test_empty_values_are_dropped(tmp_path: Path) -> None:
    out = tmp_path / "sonar-scanner.properties"
    render_properties(_cfg(exclusions="", language=""), output_path=out)
    props = _props(out.read_text(encoding="utf-8"))
    assert "sonar.exclusions" not in props
    assert "sonar.language" not in props
    assert props["sonar.sources"] == "."


def test_custom_template_from_config(tmp_path: Path) -> None:
    tmpl = tmp_path / "custom.tmpl"
    tmpl.write_text("sonar.projectKey=${key}\nsonar.java.binaries=target/classes\n", encoding="utf-8")
    out = tmp_path / "out.properties"

    render_properties(_cfg(template_path=str(tmpl), properties_path=str(out)))
    assert out.read_text(encoding="utf-8") == "sonar.projectKey=org:repo\nsonar.java.binaries=target/classes\n"


def test_unknown_placeholder_is_render_error() -> None:
    with pytest.raises(ConfigRenderError) as exc:
        render_text("sonar.foo=${nope}\n", _cfg())
    assert exc.value.stage == "render"


def test_missing_template_is_render_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigRenderError):
        render_properties(_cfg(), template_path=tmp_path / "missing.tmpl", output_path=tmp_path / "out")


def test_unwritable_output_is_render_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(ConfigRenderError):
        render_properties(_cfg(), output_path=blocker / "sub" / "sonar-scanner.properties")
