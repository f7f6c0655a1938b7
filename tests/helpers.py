"""Shared test helpers and stub classes.

This module contains reusable stubs for the collaborators the editor session
talks to. Import from here instead of duplicating them in individual tests:

    from tests.helpers import MemoryDocumentStore, RecordingChannel
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, TypeVar

from percy_editor.core.subscriptions import Subscription
from percy_editor.services.errors import DocumentIOError, WriteConflictError

T = TypeVar("T")


def write_text(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def write_percyrc(directory: Path, payload: Dict[str, Any]) -> Path:
    return write_text(directory / ".percyrc", json.dumps(payload))


class MemoryDocumentStore:
    """In-memory host document store keyed by resolved path."""

    def __init__(self, files: Dict[Path, str] | None = None) -> None:
        self.files: Dict[Path, bytes] = {
            Path(path).resolve(): text.encode("utf-8") for path, text in (files or {}).items()
        }
        self.listeners: Dict[Path, List[Callable[[str], None]]] = {}
        self.fail_reads: set[Path] = set()
        self.reject_writes = False
        self.scopes_entered = 0
        self._staged: Dict[Path, bytes] | None = None

    def read_all(self, path: Path) -> bytes:
        key = Path(path).resolve()
        if key in self.fail_reads or key not in self.files:
            raise DocumentIOError(f"cannot read {key}", path=key)
        return self.files[key]

    def write_all(self, path: Path, data: bytes) -> None:
        key = Path(path).resolve()
        if self._staged is None or self.reject_writes:
            raise WriteConflictError("write rejected", path=key)
        self._staged[key] = data

    def exists(self, path: Path) -> bool:
        return Path(path).resolve() in self.files

    def on_change(self, path: Path, listener: Callable[[str], None]) -> Subscription:
        key = Path(path).resolve()
        self.listeners.setdefault(key, []).append(listener)
        return Subscription(lambda: self.listeners[key].remove(listener), label="memory")

    def with_write_scope(self, fn: Callable[[], T]) -> T:
        self.scopes_entered += 1
        self._staged = {}
        try:
            result = fn()
            staged = self._staged
        finally:
            self._staged = None
        self.files.update(staged)
        for key, data in staged.items():
            self.emit(key, data.decode("utf-8"))
        return result

    def emit(self, path: Path, text: str) -> None:
        key = Path(path).resolve()
        self.files[key] = text.encode("utf-8")
        for listener in list(self.listeners.get(key, ())):
            listener(text)

    def listener_count(self, path: Path) -> int:
        return len(self.listeners.get(Path(path).resolve(), ()))


class RecordingChannel:
    """Content channel stub recording scripts and replaying page events."""

    def __init__(self) -> None:
        self.loaded: List[str] = []
        self.scripts: List[str] = []
        self.handlers: List[Callable[[str], None]] = []
        self.load_listeners: List[Callable[[bool], None]] = []
        self.dispose_calls = 0

    def load_url(self, url: str) -> None:
        self.loaded.append(url)

    def execute_script(self, script: str) -> None:
        self.scripts.append(script)

    def register_inbound_handler(self, handler: Callable[[str], None]) -> Subscription:
        self.handlers.append(handler)
        return Subscription(lambda: self.handlers.remove(handler), label="inbound")

    def on_load_finished(self, listener: Callable[[bool], None]) -> Subscription:
        self.load_listeners.append(listener)
        return Subscription(lambda: self.load_listeners.remove(listener), label="load")

    def dispose(self) -> None:
        self.dispose_calls += 1

    # Page-side helpers -------------------------------------------------
    def post(self, message: Dict[str, Any] | str) -> None:
        raw = message if isinstance(message, str) else json.dumps(message)
        for handler in list(self.handlers):
            handler(raw)

    def finish_loading(self, ok: bool = True) -> None:
        for listener in list(self.load_listeners):
            listener(ok)

    def sent_messages(self) -> List[Dict[str, Any]]:
        prefix = "window.sendMessage(JSON.stringify("
        suffix = "));"
        return [
            json.loads(script[len(prefix) : -len(suffix)])
            for script in self.scripts
            if script.startswith(prefix)
        ]
