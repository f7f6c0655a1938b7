"""PySide6 QtWebEngine implementation of the content channel."""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from PySide6.QtCore import QFile, QIODevice, QObject, Qt, QUrl, Signal, Slot
from PySide6.QtWebChannel import QWebChannel
from PySide6.QtWebEngineCore import QWebEngineScript
from PySide6.QtWebEngineWidgets import QWebEngineView

from ..core.subscriptions import Subscription
from ..services.bridge_adapter import InboundHandler, LoadListener

__all__ = ["QtWebEngineChannel", "QtMainThreadExecutor", "BRIDGE_OBJECT_NAME"]

_LOGGER = logging.getLogger(__name__)

BRIDGE_OBJECT_NAME = "percyBridge"

# Exposes ``window.bridge.postMessage(json)`` to the page once the channel is up.
_BRIDGE_BOOTSTRAP_JS = """
(function () {
  if (window.bridge) { return; }
  var queued = [];
  window.bridge = {
    postMessage: function (message) {
      var text = typeof message === "string" ? message : JSON.stringify(message);
      queued.push(text);
    }
  };
  new QWebChannel(qt.webChannelTransport, function (channel) {
    var target = channel.objects.%s;
    window.bridge.postMessage = function (message) {
      target.postMessage(typeof message === "string" ? message : JSON.stringify(message));
    };
    queued.splice(0).forEach(function (text) { target.postMessage(text); });
  });
})();
""" % BRIDGE_OBJECT_NAME


def _read_qrc_text(path: str) -> str:
    handle = QFile(path)
    if not handle.open(QIODevice.OpenModeFlag.ReadOnly):
        return ""
    try:
        return bytes(handle.readAll()).decode("utf-8", errors="replace")
    finally:
        handle.close()


class _InboundEndpoint(QObject):
    """Object registered on the QWebChannel; receives page messages."""

    received = Signal(str)

    @Slot(str)
    def postMessage(self, message: str) -> None:  # noqa: N802 - called from JavaScript
        self.received.emit(str(message))


class QtWebEngineChannel:
    """Content channel backed by a ``QWebEngineView`` and a ``QWebChannel``."""

    def __init__(self, view: QWebEngineView | None = None) -> None:
        self._view = view or QWebEngineView()
        self._endpoint = _InboundEndpoint()
        self._handlers: List[InboundHandler] = []
        self._load_listeners: List[LoadListener] = []
        self._web_channel = QWebChannel(self._view.page())
        self._web_channel.registerObject(BRIDGE_OBJECT_NAME, self._endpoint)
        self._view.page().setWebChannel(self._web_channel)
        self._endpoint.received.connect(self._dispatch_inbound)
        self._view.loadFinished.connect(self._dispatch_load_finished)
        # No Reload/Back entries; a page reload is only issued by the host.
        self._view.setContextMenuPolicy(Qt.ContextMenuPolicy.NoContextMenu)
        self._view.page().renderProcessTerminated.connect(self._handle_render_process_terminated)
        self._disposed = False
        self._install_bootstrap()

    @property
    def view(self) -> QWebEngineView:
        return self._view

    def load_url(self, url: str) -> None:
        _LOGGER.debug("Loading %s", url)
        self._view.load(QUrl(url))

    def execute_script(self, script: str) -> None:
        if self._disposed:
            return
        self._view.page().runJavaScript(script)

    def register_inbound_handler(self, handler: InboundHandler) -> Subscription:
        self._handlers.append(handler)
        return Subscription(lambda: self._remove(self._handlers, handler), label="inbound")

    def on_load_finished(self, listener: LoadListener) -> Subscription:
        self._load_listeners.append(listener)
        return Subscription(lambda: self._remove(self._load_listeners, listener), label="load-finished")

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._handlers.clear()
        self._load_listeners.clear()
        self._web_channel.deregisterObject(self._endpoint)
        self._view.deleteLater()
        _LOGGER.debug("Content channel disposed")

    def _install_bootstrap(self) -> None:
        qwc_js = _read_qrc_text(":/qtwebchannel/qwebchannel.js")
        if not qwc_js:
            _LOGGER.warning("qwebchannel.js was not found in Qt resources; inbound messages are disabled")
        script = QWebEngineScript()
        script.setName("percy_bridge_bootstrap")
        # Keep newlines: qwebchannel.js contains line comments.
        script.setSourceCode(qwc_js + "\n" + _BRIDGE_BOOTSTRAP_JS)
        script.setInjectionPoint(QWebEngineScript.InjectionPoint.DocumentCreation)
        script.setWorldId(QWebEngineScript.ScriptWorldId.MainWorld)
        script.setRunsOnSubFrames(False)
        self._view.page().scripts().insert(script)

    def _dispatch_inbound(self, message: str) -> None:
        for handler in list(self._handlers):
            handler(message)

    def _dispatch_load_finished(self, ok: bool) -> None:
        for listener in list(self._load_listeners):
            listener(bool(ok))

    def _handle_render_process_terminated(self, status: Any, exit_code: int) -> None:
        if self._disposed:
            return
        _LOGGER.warning("Content renderer terminated (status=%s, exit=%s); reloading", status, exit_code)
        # The reloaded page sends PercyEditorInit again.
        self._view.reload()

    @staticmethod
    def _remove(items: list, item: Any) -> None:
        if item in items:
            items.remove(item)


class QtMainThreadExecutor(QObject):
    """Runs callables on the thread owning this object (the GUI thread).

    Calls made from the GUI thread are still deferred to the next event loop
    iteration, so delivery never happens inline with the caller.
    """

    _submitted = Signal(object)

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._submitted.connect(self._run, Qt.ConnectionType.QueuedConnection)

    def __call__(self, fn: Callable[[], Any]) -> None:
        self._submitted.emit(fn)

    @Slot(object)
    def _run(self, fn: Callable[[], Any]) -> None:
        try:
            fn()
        except Exception:
            _LOGGER.exception("Main-thread task failed")
