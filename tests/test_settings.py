"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from percy_editor.services.settings import MAX_RECENT_FILES, Settings, SettingsStore


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PERCY_EDITOR_ASSET_HOST",
        "PERCY_EDITOR_ASSET_PORT",
        "PERCY_EDITOR_THEME",
        "PERCY_EDITOR_PROJECT_ROOT",
        "PERCY_EDITOR_DEBUG_LOGGING",
        "PERCY_EDITOR_LOG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load() == Settings()


def test_defaults() -> None:
    settings = Settings()

    assert settings.asset_host == "127.0.0.1"
    assert settings.asset_port == 0
    assert settings.theme == "auto"
    assert settings.project_root is None
    assert settings.max_file_size == 20_000_000
    assert settings.recent_files == []


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    original = Settings(
        asset_port=8123,
        theme="dark",
        project_root="/work/app",
        debug_logging=True,
        window_geometry="01d9d0cb",
        recent_files=["/work/app/a.yaml"],
    )

    SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert not path.with_suffix(".tmp").exists()


def test_invalid_json_falls_back_to_defaults(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="percy_editor.services.settings"):
        settings = SettingsStore(path).load()

    assert settings == Settings()
    assert "not valid JSON" in caplog.text


def test_unknown_fields_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"theme": "light", "api_key": "legacy", "version": 1}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.theme == "light"


def test_cli_overrides_apply_over_file(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(theme="light", asset_port=1000))

    settings = SettingsStore(path).load(overrides={"theme": "dark", "unknown": 1, "asset_port": None})

    assert settings.theme == "dark"
    assert settings.asset_port == 1000


def test_env_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(theme="light", asset_host="0.0.0.0"))
    monkeypatch.setenv("PERCY_EDITOR_THEME", "dark")
    monkeypatch.setenv("PERCY_EDITOR_ASSET_PORT", "9000")
    monkeypatch.setenv("PERCY_EDITOR_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("PERCY_EDITOR_PROJECT_ROOT", "/env/root")

    settings = SettingsStore(path).load(overrides={"theme": "auto"})

    assert settings.theme == "dark"
    assert settings.asset_port == 9000
    assert settings.debug_logging is True
    assert settings.project_root == "/env/root"
    assert settings.asset_host == "0.0.0.0"


def test_invalid_integer_env_override_is_ignored(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("PERCY_EDITOR_ASSET_PORT", "eighty")

    with caplog.at_level(logging.WARNING, logger="percy_editor.services.settings"):
        settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.asset_port == 0
    assert "not a valid integer" in caplog.text


def test_with_recent_file_moves_entry_to_front_and_caps_history() -> None:
    settings = Settings(recent_files=[f"/f{index}.yaml" for index in range(MAX_RECENT_FILES)])

    updated = settings.with_recent_file("/f5.yaml").with_recent_file(Path("/new.yaml"))

    assert updated.recent_files[:2] == ["/new.yaml", "/f5.yaml"]
    assert len(updated.recent_files) == MAX_RECENT_FILES
    assert updated.recent_files.count("/f5.yaml") == 1
    assert settings.recent_files[0] == "/f0.yaml"
