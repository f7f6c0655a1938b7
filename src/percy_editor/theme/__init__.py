"""Theme tracking for the embedded editor content."""

from .monitor import (
    DARK_STYLESHEET,
    LIGHT_STYLESHEET,
    THEME_CHOICES,
    ThemeListener,
    ThemeMonitor,
    palette_is_dark,
    stylesheet_for,
)

__all__ = [
    "DARK_STYLESHEET",
    "LIGHT_STYLESHEET",
    "THEME_CHOICES",
    "ThemeListener",
    "ThemeMonitor",
    "palette_is_dark",
    "stylesheet_for",
]
