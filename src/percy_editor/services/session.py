"""Per-tab editor session driving the host/content message protocol."""

from __future__ import annotations

import logging
import os
from contextlib import ExitStack
from enum import Enum
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Mapping, Optional

from ..core.subscriptions import Subscription
from ..editor.document_model import EditorFile
from ..editor.document_store import HostDocumentStore
from ..utils.file_io import decode_document
from . import codec
from .bridge_queue import OutboundQueue
from .bridge_types import (
    BridgeMessage,
    Direction,
    EditorClose,
    EditorFileChanged,
    EditorFileDirty,
    EditorInit,
    EditorRender,
    EditorSave,
    EditorSaved,
    InboundMessage,
)
from .config_resolver import ConfigResolver
from .errors import BridgeError, DecodeError, DocumentIOError, SessionStateError

__all__ = ["SessionState", "EditorSession", "CloseRequestListener"]

_LOGGER = logging.getLogger(__name__)

CloseRequestListener = Callable[["EditorSession"], None]


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RENDERED = "rendered"
    EDITING = "editing"
    SAVING = "saving"
    DISPOSED = "disposed"


# A reloaded page sends Init again, possibly while the previous page was dirty.
_INIT_STATES = frozenset({SessionState.UNINITIALIZED, SessionState.RENDERED, SessionState.EDITING})
_SAVE_STATES = frozenset({SessionState.RENDERED, SessionState.EDITING})
_LIVE_STATES = frozenset({SessionState.RENDERED, SessionState.EDITING, SessionState.SAVING})


class EditorSession:
    """State machine for one open editor tab.

    Inbound messages are processed one at a time under a per-session lock.
    Outbound messages are handed to an :class:`OutboundQueue`, which decides on
    which thread they reach the content.

    Resources registered through :meth:`own` or :meth:`add_cleanup` are
    released by :meth:`dispose` in reverse order, all of them even when one
    release raises.
    """

    def __init__(
        self,
        file: EditorFile,
        store: HostDocumentStore,
        *,
        project_root: Path | str | None,
        outbound: OutboundQueue | None = None,
        resolver: ConfigResolver | None = None,
        path_sep: str = os.sep,
    ) -> None:
        self.file = file
        self._store = store
        self._project_root = Path(project_root) if project_root is not None else None
        self._outbound = outbound or OutboundQueue()
        self._resolver = resolver or ConfigResolver()
        self._path_sep = path_sep
        self._lock = RLock()
        self._state = SessionState.UNINITIALIZED
        self._modified = False
        self._suppress_change_echo = False
        self._close_listeners: list[CloseRequestListener] = []
        self._resources = ExitStack()
        self._resources.callback(self._outbound.close)
        self.own(store.on_change(file.path, self._handle_document_changed))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def outbound(self) -> OutboundQueue:
        return self._outbound

    @property
    def disposed(self) -> bool:
        return self._state is SessionState.DISPOSED

    def is_modified(self) -> bool:
        return self._modified

    def get_content(self) -> str:
        """Current text of the document as held by the host store."""

        return self._read_text(self.file.path)

    # ------------------------------------------------------------------
    # Resource ownership
    # ------------------------------------------------------------------
    def own(self, subscription: Subscription) -> Subscription:
        """Release ``subscription`` when the session is disposed."""

        self._resources.callback(subscription.unsubscribe)
        return subscription

    def add_cleanup(self, callback: Callable[[], Any]) -> None:
        self._resources.callback(callback)

    def add_close_listener(self, listener: CloseRequestListener) -> None:
        self._close_listeners.append(listener)

    # ------------------------------------------------------------------
    # Inbound entry point
    # ------------------------------------------------------------------
    def handle_inbound_message(self, raw: Mapping[str, Any] | str | bytes) -> Optional[InboundMessage]:
        """Decode and process one inbound wire message.

        Undecodable messages, including host-bound message types sent by the
        content, are logged and dropped (``None`` is returned).
        Failures while processing a decoded message propagate to the caller
        with the session left in its prior state.
        """

        try:
            message = codec.decode(raw, direction=Direction.INBOUND)
        except DecodeError as exc:
            _LOGGER.warning("Dropping inbound message for %s: %s", self.file.name, exc)
            return None
        self.handle_message(message)
        return message

    def handle_message(self, message: BridgeMessage) -> None:
        with self._lock:
            if self.disposed:
                _LOGGER.debug("Ignoring %s after dispose", message.message_type.value)
                return
            _LOGGER.debug("Handling %s in state %s", message.message_type.value, self._state.value)
            if isinstance(message, EditorInit):
                self._handle_init()
            elif isinstance(message, EditorSave):
                self._handle_save(message.file_content)
            elif isinstance(message, EditorFileDirty):
                self._handle_file_dirty(message.dirty)
            elif isinstance(message, EditorClose):
                self._handle_close()
            else:
                raise SessionStateError(message.message_type.value, self._state.value)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def dispose(self) -> None:
        with self._lock:
            if self.disposed:
                return
            self._state = SessionState.DISPOSED
            resources, self._resources = self._resources, ExitStack()
            self._close_listeners.clear()
        _LOGGER.debug("Disposing session for %s", self.file.path)
        resources.close()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _handle_init(self) -> None:
        self._require(EditorInit.message_type.value, _INIT_STATES)
        file_content = self._read_text(self.file.path)
        env_content: str | None = None
        env_path = self.file.environments_path
        if self._store.exists(env_path):
            env_content = self._read_text(env_path)
        resolved = self._resolver.resolve(self.file, self._project_root)
        render = EditorRender(
            edit_mode=True,
            env_file_mode=self.file.is_environments_file,
            app_name=str(self.file.parent),
            file_name=self.file.name,
            path_sep=self._path_sep,
            file_content=file_content,
            env_file_content=env_content,
            percy_config=resolved.percy_config,
            app_percy_config=resolved.app_percy_config,
        )
        self._state = SessionState.RENDERED
        # The content now shows the host document, so nothing is unsaved.
        self._modified = False
        _LOGGER.info("Rendering %s (envFileMode=%s)", self.file.path, render.env_file_mode)
        self._outbound.post(render)

    def _handle_save(self, content: str) -> None:
        self._require(EditorSave.message_type.value, _SAVE_STATES)
        previous = self._state
        self._state = SessionState.SAVING
        _LOGGER.info("Saving %s", self.file.path)
        data = content.encode("utf-8")
        self._suppress_change_echo = True
        try:
            self._store.with_write_scope(lambda: self._store.write_all(self.file.path, data))
        except BridgeError:
            self._state = previous
            raise
        except OSError as exc:
            self._state = previous
            raise DocumentIOError(f"Unable to save {self.file.path}: {exc}", path=self.file.path) from exc
        finally:
            self._suppress_change_echo = False
        self._modified = False
        self._state = SessionState.RENDERED
        self._outbound.post(EditorSaved(file_content=content, new_file_name=self.file.name))

    def _handle_file_dirty(self, dirty: bool) -> None:
        self._require(EditorFileDirty.message_type.value, _LIVE_STATES)
        self._modified = bool(dirty)
        if self._state is not SessionState.SAVING:
            self._state = SessionState.EDITING if self._modified else SessionState.RENDERED
        _LOGGER.info("modified: %s", self._modified)

    def _handle_close(self) -> None:
        listeners = list(self._close_listeners)
        if not listeners:
            _LOGGER.debug("Close requested for %s but no host listener is attached", self.file.name)
        for listener in listeners:
            listener(self)

    def _handle_document_changed(self, text: str) -> None:
        with self._lock:
            if self._state in (SessionState.UNINITIALIZED, SessionState.DISPOSED):
                return
            if self._suppress_change_echo:
                return
            self._outbound.post(EditorFileChanged(file_content=text))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require(self, message_type: str, allowed: frozenset[SessionState]) -> None:
        if self._state not in allowed:
            raise SessionStateError(message_type, self._state.value)

    def _read_text(self, path: Path) -> str:
        try:
            return decode_document(self._store.read_all(path))
        except DocumentIOError:
            raise
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentIOError(f"Unable to read {path}: {exc}", path=path) from exc


