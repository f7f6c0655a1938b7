"""Application bootstrap helpers for the Percy editor host."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .editor.document_store import FileDocumentStore
from .editor.provider import EDITOR_NAME, EditorRegistry, PercyEditorProvider
from .services.bridge_types import EditorInit
from .services.errors import BridgeError
from .services.settings import Settings, SettingsStore
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_ENV_PREFIX = "PERCY_EDITOR_"
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, log_dir: Path | str | None = None, force: bool = False) -> Path:
    """Configure structured logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    log_path = logging_utils.setup_logging(level, log_dir=log_dir, force=force)
    _LOGGER.debug("Logging configured (level=%s, path=%s)", logging.getLevelName(level), log_path)
    logging_utils.install_qt_message_handler()
    return log_path


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `percy-editor` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    debug = _env_flag(f"{_ENV_PREFIX}DEBUG_LOGGING", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get(f"{_ENV_PREFIX}SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc
    if args.project_root:
        cli_overrides["project_root"] = str(Path(args.project_root).expanduser())

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if settings.debug_logging != debug or settings.log_dir:
        configure_logging(settings.debug_logging, log_dir=settings.log_dir, force=True)

    if not args.file:
        parser.error("FILE is required unless --dump-settings is given")
    path = Path(args.file).expanduser().resolve()

    if args.render_payload:
        render_payload(path, settings)
        return

    _run_gui(path, settings, settings_store)


def render_payload(path: Path, settings: Settings, *, stream: TextIO | None = None) -> Dict[str, Any]:
    """Run one headless ``PercyEditorInit`` for ``path`` and print the render message."""

    destination = stream or sys.stdout
    provider = PercyEditorProvider(
        FileDocumentStore(),
        project_root=settings.project_root,
        max_file_size=settings.max_file_size,
    )
    if not provider.accept(path):
        print(f"{path} cannot be opened in {EDITOR_NAME}", file=sys.stderr)
        raise SystemExit(2)

    editor = provider.create_editor(path)
    delivered: list[str] = []
    editor.session.outbound.set_sink(delivered.append)
    try:
        editor.session.handle_message(EditorInit())
    except BridgeError as exc:
        print(f"Unable to render {path}: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    finally:
        editor.dispose()

    payload = json.loads(delivered[-1])
    json.dump(payload, destination, indent=2)
    destination.write("\n")
    return payload


def _run_gui(path: Path, settings: Settings, settings_store: SettingsStore) -> None:
    from .services.asset_server import StaticAssetServer
    from .theme.monitor import ThemeMonitor
    from .ui.editor_window import PercyEditorWindow
    from .ui.engine import init_engine, shutdown_engine
    from .ui.qt_channel import QtMainThreadExecutor

    store = FileDocumentStore()
    runtime = init_engine(settings)
    app = runtime.app
    loop = runtime.loop
    server = StaticAssetServer(host=settings.asset_host, port=settings.asset_port)
    theme = ThemeMonitor.from_setting(settings.theme, app=app)
    windows: list[PercyEditorWindow] = []

    def _show_error(error: BridgeError) -> None:
        for window in windows:
            window.show_error(error)

    def _remember_geometry(geometry: str) -> None:
        nonlocal settings
        settings = replace(settings, window_geometry=geometry)

    try:
        loop.run_until_complete(server.start())
        provider = PercyEditorProvider(
            store,
            project_root=settings.project_root,
            max_file_size=settings.max_file_size,
            executor=QtMainThreadExecutor(),
            theme=theme,
            page_url=server.base_url,
            stylesheet_url=server.stylesheet_url,
            error_listener=_show_error,
        )
        if not provider.accept(path):
            print(f"{path} cannot be opened in {EDITOR_NAME}", file=sys.stderr)
            raise SystemExit(2)
        registry = EditorRegistry(provider)
        _watch_application(app, registry, store, theme, follow_palette=settings.theme == "auto")

        window = PercyEditorWindow(
            registry,
            path,
            geometry=settings.window_geometry,
            on_geometry_saved=_remember_geometry,
        )
        windows.append(window)
        settings = settings.with_recent_file(path)
        window.show()

        try:
            loop.run_forever()
        except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
            _LOGGER.info("Shutdown requested by user.")
        registry.close_all()
    finally:
        if not loop.is_closed():
            loop.run_until_complete(server.stop())
        shutdown_engine()

    try:
        settings_store.save(settings)
    except OSError as exc:
        _LOGGER.warning("Unable to persist settings to %s: %s", settings_store.path, exc)


def _watch_application(
    app: Any,
    registry: EditorRegistry,
    store: FileDocumentStore,
    theme: Any,
    *,
    follow_palette: bool,
) -> None:
    """Reload externally modified files on activation and track the system theme."""

    from PySide6.QtCore import Qt

    def _on_state_changed(state: Any) -> None:
        if state != Qt.ApplicationState.ApplicationActive:
            return
        for editor in registry:
            try:
                store.reload_if_changed(editor.file.path)
            except BridgeError as exc:
                _LOGGER.warning("Unable to reload %s: %s", editor.file.path, exc)

    app.applicationStateChanged.connect(_on_state_changed)
    if follow_palette:
        app.styleHints().colorSchemeChanged.connect(lambda *_: theme.refresh_from_palette(app))


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="percy-editor",
        description="Open a Percy YAML configuration file in the visual editor.",
    )
    parser.add_argument("file", nargs="?", metavar="FILE", help="YAML file to edit.")
    parser.add_argument(
        "--project-root",
        metavar="DIR",
        help="Highest directory searched for .percyrc files (defaults to the filesystem root).",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.percy-editor/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--render-payload",
        action="store_true",
        help="Print the PercyEditorRender message for FILE without opening a window.",
    )
    return parser


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    normalized = raw_value.strip()
    if _is_optional(annotation) and normalized.lower() in {"none", "null"}:
        return None
    target = _resolve_annotation(annotation)

    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is list:
        try:
            value = json.loads(normalized or "[]")
        except json.JSONDecodeError as exc:
            raise ValueError("List overrides must be valid JSON arrays") from exc
        if not isinstance(value, list):
            raise ValueError("List overrides must be valid JSON arrays")
        return value
    return normalized


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin is list:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": asdict(settings), "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith(_ENV_PREFIX))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    main()
