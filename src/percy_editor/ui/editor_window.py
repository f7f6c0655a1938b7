"""Top-level window hosting a single Percy editor."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from PySide6.QtCore import QByteArray
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import QMainWindow, QMessageBox, QWidget

from ..editor.provider import EDITOR_NAME, EditorRegistry, PercyFileEditor
from ..services.errors import BridgeError
from .qt_channel import QtWebEngineChannel

__all__ = ["PercyEditorWindow"]

LOGGER = logging.getLogger(__name__)

_DEFAULT_SIZE = (1200, 800)
_STATUS_TIMEOUT_MS = 10_000

GeometryListener = Callable[[str], None]


class PercyEditorWindow(QMainWindow):
    """Main window whose central widget is the editor's web view."""

    def __init__(
        self,
        registry: EditorRegistry,
        path: Path | str,
        *,
        geometry: str | None = None,
        on_geometry_saved: Optional[GeometryListener] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._registry = registry
        self._on_geometry_saved = on_geometry_saved
        self._closing = False
        self._channel = QtWebEngineChannel()
        self._editor: PercyFileEditor = registry.open(path, channel=self._channel)
        self._closed_subscription = registry.on_editor_closed(self._handle_editor_closed)
        self.setCentralWidget(self._channel.view)
        self.setWindowTitle(f"{self._editor.file.name} - {EDITOR_NAME}")
        if not self._restore_geometry(geometry):
            self.resize(*_DEFAULT_SIZE)

    @property
    def editor(self) -> PercyFileEditor:
        return self._editor

    def show_error(self, error: BridgeError) -> None:
        self.statusBar().showMessage(str(error), _STATUS_TIMEOUT_MS)

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802 - Qt override
        if not self._closing and self._editor.is_valid() and self._editor.is_modified():
            answer = QMessageBox.question(
                self,
                EDITOR_NAME,
                f"{self._editor.file.name} has unsaved changes. Close anyway?",
                QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
                QMessageBox.StandardButton.No,
            )
            if answer != QMessageBox.StandardButton.Yes:
                event.ignore()
                return
        self._closing = True
        self._save_geometry()
        self._closed_subscription.unsubscribe()
        self._registry.close(self._editor.file.path)
        super().closeEvent(event)

    def _handle_editor_closed(self, editor: PercyFileEditor) -> None:
        # The page asked to close its tab.
        if editor is self._editor and not self._closing:
            self._closing = True
            self.close()

    def _restore_geometry(self, geometry: str | None) -> bool:
        if not geometry:
            return False
        try:
            data = QByteArray.fromHex(bytes(geometry, "ascii"))
        except ValueError:
            LOGGER.debug("Ignoring malformed window geometry")
            return False
        return bool(self.restoreGeometry(data))

    def _save_geometry(self) -> None:
        if self._on_geometry_saved is None:
            return
        encoded = bytes(self.saveGeometry().toHex()).decode("ascii")
        self._on_geometry_saved(encoded)
