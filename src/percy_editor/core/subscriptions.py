"""Subscription handles returned by listener registrations."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable

__all__ = ["Subscription"]

_LOGGER = logging.getLogger(__name__)


class Subscription:
    """Handle that detaches a listener exactly once.

    Every ``on_*`` registration in the editor host returns one of these so the
    owner can release it explicitly during teardown.
    """

    __slots__ = ("_release", "_lock", "_active", "label")

    def __init__(self, release: Callable[[], None], *, label: str = "") -> None:
        self._release: Callable[[], None] | None = release
        self._lock = Lock()
        self._active = True
        self.label = label

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            release, self._release = self._release, None
        if release is not None:
            _LOGGER.debug("Releasing subscription %s", self.label or hex(id(self)))
            release()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        state = "active" if self._active else "released"
        return f"Subscription({self.label or '?'}, {state})"
