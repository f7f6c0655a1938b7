"""Light/dark appearance tracking for the embedded content."""

from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Callable, List

from ..core.subscriptions import Subscription

__all__ = [
    "ThemeMonitor",
    "ThemeListener",
    "DARK_STYLESHEET",
    "LIGHT_STYLESHEET",
    "THEME_CHOICES",
    "stylesheet_for",
    "palette_is_dark",
]

_LOGGER = logging.getLogger(__name__)

DARK_STYLESHEET = "darcula.css"
LIGHT_STYLESHEET = "default.css"
THEME_CHOICES: tuple[str, ...] = ("auto", "dark", "light")

ThemeListener = Callable[[bool], None]


def stylesheet_for(dark: bool) -> str:
    return DARK_STYLESHEET if dark else LIGHT_STYLESHEET


def palette_is_dark(app: Any | None = None) -> bool:
    """Return ``True`` when the Qt application palette has a dark window colour."""

    try:  # pragma: no cover - Qt optional in CI
        from PySide6.QtGui import QPalette
        from PySide6.QtWidgets import QApplication
    except ImportError:  # pragma: no cover - headless fallback
        return False

    qt_app: Any = app if app is not None else QApplication.instance()
    if qt_app is None:
        return False
    window = qt_app.palette().color(QPalette.ColorRole.Window)
    return window.lightness() < 128


class ThemeMonitor:
    """Holds the "dark theme active?" flag and notifies subscribers on change."""

    def __init__(self, *, dark: bool = False) -> None:
        self._dark = bool(dark)
        self._listeners: List[ThemeListener] = []
        self._lock = RLock()

    @classmethod
    def from_setting(cls, theme: str, *, app: Any | None = None) -> "ThemeMonitor":
        normalized = (theme or "auto").strip().lower()
        if normalized not in THEME_CHOICES:
            _LOGGER.warning("Unknown theme '%s'; defaulting to auto.", theme)
            normalized = "auto"
        if normalized == "auto":
            return cls(dark=palette_is_dark(app))
        return cls(dark=normalized == "dark")

    @property
    def dark(self) -> bool:
        return self._dark

    @property
    def stylesheet(self) -> str:
        return stylesheet_for(self._dark)

    def set_dark(self, dark: bool) -> None:
        with self._lock:
            dark = bool(dark)
            if dark == self._dark:
                return
            self._dark = dark
            listeners = list(self._listeners)
        _LOGGER.debug("Theme changed (dark=%s); notifying %d listener(s)", dark, len(listeners))
        for listener in listeners:
            try:
                listener(dark)
            except Exception:
                _LOGGER.exception("Theme listener failed")

    def refresh_from_palette(self, app: Any | None = None) -> None:
        self.set_dark(palette_is_dark(app))

    def on_theme_change(self, listener: ThemeListener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)

        def _release() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return Subscription(_release, label="theme")

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
