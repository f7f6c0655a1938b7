"""Tests covering the application bootstrap helpers."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any, List

import pytest

from percy_editor import app
from percy_editor.services.settings import Settings, SettingsStore
from tests.helpers import write_percyrc, write_text


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> List[Any]:
    calls: List[Any] = []
    monkeypatch.setattr(app, "configure_logging", lambda *args, **kwargs: calls.append((args, kwargs)))
    for name in ("PERCY_EDITOR_THEME", "PERCY_EDITOR_DEBUG_LOGGING", "PERCY_EDITOR_SETTINGS_PATH"):
        monkeypatch.delenv(name, raising=False)
    return calls


def test_coerce_cli_overrides_uses_field_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "theme=dark",
            "asset_port=8123",
            "debug_logging=on",
            "project_root=none",
            "recent_files=[\"/a.yaml\"]",
        ]
    )

    assert overrides == {
        "theme": "dark",
        "asset_port": 8123,
        "debug_logging": True,
        "project_root": None,
        "recent_files": ["/a.yaml"],
    }


@pytest.mark.parametrize(
    "entry",
    ["theme", "=dark", "colour=blue", "asset_port=eighty", "debug_logging=maybe", "recent_files={}"],
)
def test_coerce_cli_overrides_rejects_bad_entries(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_dump_settings_reports_metadata(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PERCY_EDITOR_THEME", "dark")
    store = SettingsStore(tmp_path / "settings.json")
    stream = io.StringIO()

    app._dump_settings(Settings(theme="dark"), store, overrides={"asset_port": 1}, stream=stream)

    output = json.loads(stream.getvalue())
    assert output["settings"]["theme"] == "dark"
    assert output["meta"]["path"] == str(tmp_path / "settings.json")
    assert output["meta"]["cli_overrides"] == ["asset_port"]
    assert "PERCY_EDITOR_THEME" in output["meta"]["environment_variables"]


def test_main_dump_settings_applies_overrides(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    settings_path = tmp_path / "settings.json"
    SettingsStore(settings_path).save(Settings(theme="light", asset_port=4000))

    app.main(
        [
            "--settings-path",
            str(settings_path),
            "--set",
            "theme=dark",
            "--project-root",
            str(tmp_path),
            "--dump-settings",
        ]
    )

    output = json.loads(capsys.readouterr().out)
    assert output["settings"]["theme"] == "dark"
    assert output["settings"]["asset_port"] == 4000
    assert output["settings"]["project_root"] == str(tmp_path)
    assert output["meta"]["cli_overrides"] == ["project_root", "theme"]


def test_main_rejects_invalid_override(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--settings-path", str(tmp_path / "s.json"), "--set", "asset_port=abc", "--dump-settings"])

    assert excinfo.value.code == 2
    assert "Invalid --set override" in capsys.readouterr().err


def test_main_requires_a_file(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--settings-path", str(tmp_path / "s.json")])

    assert excinfo.value.code == 2


def test_render_payload_prints_render_message(project: Path) -> None:
    write_percyrc(project.parent, {"variablePrefix": "${"})
    write_percyrc(project, {"variableSuffix": "}"})
    write_text(project / "shared" / "environments.yaml", "default: {}\n")
    target = write_text(project / "shared" / "app.yaml", "name: demo\n")
    stream = io.StringIO()

    payload = app.render_payload(target, Settings(project_root=str(project.parent)), stream=stream)

    assert json.loads(stream.getvalue()) == payload
    assert payload["type"] == "PercyEditorRender"
    assert payload["fileName"] == "app.yaml"
    assert payload["fileContent"] == "name: demo\n"
    assert payload["appName"] == str(project / "shared")
    assert payload["envFileMode"] is False
    assert payload["envFileContent"] == "default: {}\n"
    assert payload["appPercyConfig"] == {"variableSuffix": "}", "variablePrefix": "${"}


def test_main_render_payload(project: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = write_text(project / "environments.yaml", "default: {}\n")

    app.main(
        [
            str(target),
            "--render-payload",
            "--project-root",
            str(project),
            "--settings-path",
            str(tmp_path / "settings.json"),
        ]
    )

    payload = json.loads(capsys.readouterr().out)
    assert payload["envFileMode"] is True
    assert payload["envFileContent"] == "default: {}\n"
    assert payload["appPercyConfig"] == {}


def test_render_payload_rejects_unsupported_files(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = write_text(project / "notes.txt", "x")

    with pytest.raises(SystemExit) as excinfo:
        app.render_payload(target, Settings(project_root=str(project)))

    assert excinfo.value.code == 2
    assert "cannot be opened" in capsys.readouterr().err


def test_render_payload_reports_config_errors(project: Path, capsys: pytest.CaptureFixture[str]) -> None:
    write_text(project / ".percyrc", "{not json")
    target = write_text(project / "app.yaml", "a: 1\n")

    with pytest.raises(SystemExit) as excinfo:
        app.render_payload(target, Settings(project_root=str(project.parent)))

    assert excinfo.value.code == 1
    assert "Unable to render" in capsys.readouterr().err
