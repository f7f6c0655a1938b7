"""UI package holding the Qt web engine runtime, content channel and window."""

from .editor_window import PercyEditorWindow
from .engine import EngineRuntime, engine_initialized, get_engine, init_engine, shutdown_engine
from .qt_channel import QtMainThreadExecutor, QtWebEngineChannel

__all__ = [
    "EngineRuntime",
    "PercyEditorWindow",
    "QtMainThreadExecutor",
    "QtWebEngineChannel",
    "engine_initialized",
    "get_engine",
    "init_engine",
    "shutdown_engine",
]
