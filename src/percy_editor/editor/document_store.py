"""Host document store: open buffers, transactional writes and change notifications."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Set, TypeVar

from ..core.subscriptions import Subscription
from ..services.errors import DocumentIOError, WriteConflictError
from ..utils.file_io import FileSignature, decode_document, file_has_changed, snapshot_file, write_bytes_atomic

__all__ = ["ChangeListener", "HostDocumentStore", "FileDocumentStore", "ChangeSource"]

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
ChangeListener = Callable[[str], None]


class ChangeSource:
    WRITE = "write"
    EXTERNAL_EDIT = "external_edit"
    DISK = "disk"


class HostDocumentStore(Protocol):
    """Minimal interface the editor session consumes from the host."""

    def read_all(self, path: Path) -> bytes:
        ...

    def write_all(self, path: Path, data: bytes) -> None:
        ...

    def exists(self, path: Path) -> bool:
        ...

    def on_change(self, path: Path, listener: ChangeListener) -> Subscription:
        ...

    def with_write_scope(self, fn: Callable[[], T]) -> T:
        ...


@dataclass(slots=True)
class _Buffer:
    data: bytes
    signature: Optional[FileSignature] = None
    read_only: bool = False


@dataclass(slots=True)
class _WriteScope:
    staged: Dict[Path, bytes] = field(default_factory=dict)


def _key(path: Path | str) -> Path:
    return Path(path).expanduser().resolve()


class FileDocumentStore:
    """Filesystem-backed document store with in-memory buffers.

    Buffers are loaded lazily on first read. Writes are only accepted inside
    :meth:`with_write_scope`; they are staged and committed to disk when the
    scope exits cleanly, so a failing scope leaves buffers and files untouched.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._buffers: Dict[Path, _Buffer] = {}
        self._listeners: Dict[Path, List[ChangeListener]] = {}
        self._read_only: Set[Path] = set()
        self._scope: _WriteScope | None = None

    # ------------------------------------------------------------------
    # HostDocumentStore protocol
    # ------------------------------------------------------------------
    def read_all(self, path: Path) -> bytes:
        key = _key(path)
        with self._lock:
            buffer = self._buffers.get(key)
            if buffer is None:
                buffer = self._load(key)
            return buffer.data

    def write_all(self, path: Path, data: bytes) -> None:
        key = _key(path)
        with self._lock:
            if self._scope is None:
                raise WriteConflictError("Writes must happen inside a write scope", path=key)
            if key in self._read_only:
                raise WriteConflictError(f"{key.name} is read-only", path=key)
            self._scope.staged[key] = bytes(data)

    def exists(self, path: Path) -> bool:
        key = _key(path)
        with self._lock:
            return key in self._buffers or key.is_file()

    def on_change(self, path: Path, listener: ChangeListener) -> Subscription:
        key = _key(path)
        with self._lock:
            self._listeners.setdefault(key, []).append(listener)

        def _release() -> None:
            with self._lock:
                listeners = self._listeners.get(key, [])
                if listener in listeners:
                    listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(key, None)

        return Subscription(_release, label=f"document:{key.name}")

    def with_write_scope(self, fn: Callable[[], T]) -> T:
        with self._lock:
            with self._write_scope() as scope:
                result = fn()
            committed = self._commit(scope)
        for key in committed:
            self._notify(key, ChangeSource.WRITE)
        return result

    # ------------------------------------------------------------------
    # Host-side operations
    # ------------------------------------------------------------------
    def set_read_only(self, path: Path | str, read_only: bool = True) -> None:
        key = _key(path)
        with self._lock:
            if read_only:
                self._read_only.add(key)
            else:
                self._read_only.discard(key)

    def apply_external_edit(self, path: Path | str, text: str) -> None:
        """Replace a buffer's content as if edited in another host editor."""

        key = _key(path)
        with self._lock:
            buffer = self._buffers.get(key) or self._load(key)
            buffer.data = text.encode("utf-8")
        self._notify(key, ChangeSource.EXTERNAL_EDIT)

    def reload_if_changed(self, path: Path | str) -> bool:
        """Re-read ``path`` from disk when it changed behind the store's back."""

        key = _key(path)
        with self._lock:
            buffer = self._buffers.get(key)
            if buffer is None or buffer.signature is None:
                return False
            if not file_has_changed(buffer.signature):
                return False
            self._buffers.pop(key, None)
            try:
                self._load(key)
            except DocumentIOError:
                _LOGGER.warning("Document %s vanished from disk", key)
                return False
        self._notify(key, ChangeSource.DISK)
        return True

    def text(self, path: Path | str) -> str:
        return decode_document(self.read_all(_key(path)))

    def close(self, path: Path | str) -> None:
        key = _key(path)
        with self._lock:
            self._buffers.pop(key, None)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _write_scope(self) -> Iterator[_WriteScope]:
        outer = self._scope
        scope = outer or _WriteScope()
        self._scope = scope
        try:
            yield scope
        except BaseException:
            if outer is None:
                scope.staged.clear()
            raise
        finally:
            self._scope = outer

    def _commit(self, scope: _WriteScope) -> list[Path]:
        if self._scope is not None:
            # Nested scope: the outermost one commits.
            return []
        committed: list[Path] = []
        try:
            for key, data in scope.staged.items():
                try:
                    write_bytes_atomic(key, data)
                except OSError as exc:
                    raise DocumentIOError(f"Unable to write {key}: {exc}", path=key) from exc
                buffer = self._buffers.get(key)
                if buffer is None:
                    buffer = self._buffers[key] = _Buffer(data=data)
                buffer.data = data
                buffer.signature = snapshot_file(key)
                committed.append(key)
        finally:
            scope.staged.clear()
        return committed

    def _load(self, key: Path) -> _Buffer:
        try:
            data = key.read_bytes()
            signature = snapshot_file(key)
        except OSError as exc:
            raise DocumentIOError(f"Unable to read {key}: {exc}", path=key) from exc
        buffer = _Buffer(data=data, signature=signature)
        self._buffers[key] = buffer
        return buffer

    def _notify(self, key: Path, source: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(key, ()))
            buffer = self._buffers.get(key)
        if buffer is None or not listeners:
            return
        try:
            text = decode_document(buffer.data)
        except UnicodeDecodeError as exc:
            _LOGGER.warning("Document %s is not valid UTF-8; listeners not notified: %s", key, exc)
            return
        _LOGGER.debug("Document %s changed (%s); notifying %d listener(s)", key.name, source, len(listeners))
        for listener in listeners:
            try:
                listener(text)
            except Exception:
                _LOGGER.exception("Document change listener failed for %s", key)
