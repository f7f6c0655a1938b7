"""Editor provider deciding which files open in the Percy editor."""

from __future__ import annotations

import logging
from pathlib import Path
from threading import RLock
from typing import Callable, Dict, Iterator, List, Optional

from ..core.subscriptions import Subscription
from ..services.bridge_adapter import BridgeAdapter, ContentChannel, ErrorListener
from ..services.bridge_queue import OutboundQueue
from ..services.bridge_types import Executor
from ..services.config_resolver import ConfigResolver
from ..services.session import EditorSession
from ..theme.monitor import ThemeMonitor
from .document_model import EditorFile
from .document_store import HostDocumentStore

__all__ = [
    "EDITOR_NAME",
    "EDITOR_TYPE_ID",
    "SUPPORTED_EXTENSIONS",
    "PercyFileEditor",
    "PercyEditorProvider",
    "EditorRegistry",
]

_LOGGER = logging.getLogger(__name__)

EDITOR_TYPE_ID = "percy-editor"
EDITOR_NAME = "Percy Editor"
SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({"yaml", "yml"})
DEFAULT_MAX_FILE_SIZE = 20_000_000

EditorListener = Callable[["PercyFileEditor"], None]


class PercyFileEditor:
    """Host-facing view of one open Percy editor tab."""

    name = EDITOR_NAME

    def __init__(self, session: EditorSession, adapter: BridgeAdapter | None = None) -> None:
        self._session = session
        self._adapter = adapter

    @property
    def file(self) -> EditorFile:
        return self._session.file

    @property
    def session(self) -> EditorSession:
        return self._session

    @property
    def adapter(self) -> BridgeAdapter | None:
        return self._adapter

    def get_content(self) -> str:
        return self._session.get_content()

    def is_modified(self) -> bool:
        return self._session.is_modified()

    def is_valid(self) -> bool:
        return not self._session.disposed

    def dispose(self) -> None:
        self._session.dispose()

    def __repr__(self) -> str:
        return f"PercyFileEditor(path={str(self.file.path)!r}, modified={self.is_modified()})"


class PercyEditorProvider:
    """Accepts YAML files and builds :class:`PercyFileEditor` instances.

    Editors created with a ``channel`` get a :class:`BridgeAdapter` attached;
    without one the session runs headless and outbound messages are only
    queued.
    """

    def __init__(
        self,
        store: HostDocumentStore,
        *,
        project_root: Path | str | None = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        executor: Optional[Executor] = None,
        theme: ThemeMonitor | None = None,
        page_url: str | None = None,
        stylesheet_url: Callable[[bool], str] | None = None,
        error_listener: Optional[ErrorListener] = None,
        resolver: ConfigResolver | None = None,
    ) -> None:
        self._store = store
        self._project_root = project_root
        self._max_file_size = max_file_size
        self._executor = executor
        self._theme = theme or ThemeMonitor()
        self._page_url = page_url
        self._stylesheet_url = stylesheet_url
        self._error_listener = error_listener
        self._resolver = resolver or ConfigResolver()

    @property
    def editor_type_id(self) -> str:
        return EDITOR_TYPE_ID

    @property
    def theme(self) -> ThemeMonitor:
        return self._theme

    def accept(self, path: Path | str) -> bool:
        candidate = Path(path)
        if candidate.is_dir() or not candidate.exists():
            return False
        try:
            size = candidate.stat().st_size
        except OSError as exc:
            _LOGGER.debug("Unable to stat %s: %s", candidate, exc)
            return False
        if size > self._max_file_size:
            _LOGGER.info("%s is too large for the Percy editor (%d bytes)", candidate, size)
            return False
        return candidate.suffix.lstrip(".").lower() in SUPPORTED_EXTENSIONS

    def create_editor(self, path: Path | str, *, channel: ContentChannel | None = None) -> PercyFileEditor:
        file = EditorFile.from_path(path)
        outbound = OutboundQueue(executor=self._executor)
        session = EditorSession(
            file,
            self._store,
            project_root=self._project_root,
            outbound=outbound,
            resolver=self._resolver,
        )
        adapter: BridgeAdapter | None = None
        if channel is not None:
            if self._page_url is None or self._stylesheet_url is None:
                session.dispose()
                raise ValueError("page_url and stylesheet_url are required to attach a content channel")
            adapter = BridgeAdapter(
                channel,
                session,
                page_url=self._page_url,
                theme=self._theme,
                stylesheet_url=self._stylesheet_url,
                error_listener=self._error_listener,
            )
            adapter.attach()
        _LOGGER.info("Opened %s in %s", file.path, EDITOR_NAME)
        return PercyFileEditor(session, adapter)


class EditorRegistry:
    """Keeps at most one editor per file and closes them on request."""

    def __init__(self, provider: PercyEditorProvider) -> None:
        self._provider = provider
        self._editors: Dict[Path, PercyFileEditor] = {}
        self._closed_listeners: List[EditorListener] = []
        self._lock = RLock()

    def open(self, path: Path | str, *, channel: ContentChannel | None = None) -> PercyFileEditor:
        key = EditorFile.from_path(path).path
        with self._lock:
            existing = self._editors.get(key)
            if existing is not None:
                return existing
            if not self._provider.accept(key):
                raise ValueError(f"{key} cannot be opened in {EDITOR_NAME}")
            editor = self._provider.create_editor(key, channel=channel)
            editor.session.add_close_listener(lambda session: self.close(session.file.path))
            self._editors[key] = editor
            return editor

    def get(self, path: Path | str) -> PercyFileEditor | None:
        return self._editors.get(EditorFile.from_path(path).path)

    def close(self, path: Path | str) -> bool:
        key = EditorFile.from_path(path).path
        with self._lock:
            editor = self._editors.pop(key, None)
            listeners = list(self._closed_listeners)
        if editor is None:
            return False
        try:
            editor.dispose()
        finally:
            for listener in listeners:
                try:
                    listener(editor)
                except Exception:
                    _LOGGER.exception("Editor close listener failed")
        return True

    def close_all(self) -> None:
        for key in list(self._editors):
            self.close(key)

    def on_editor_closed(self, listener: EditorListener) -> Subscription:
        with self._lock:
            self._closed_listeners.append(listener)

        def _release() -> None:
            with self._lock:
                if listener in self._closed_listeners:
                    self._closed_listeners.remove(listener)

        return Subscription(_release, label="editor-closed")

    def __len__(self) -> int:
        return len(self._editors)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return EditorFile.from_path(path).path in self._editors

    def __iter__(self) -> Iterator[PercyFileEditor]:
        return iter(list(self._editors.values()))
