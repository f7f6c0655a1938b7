"""Glue between an embedded content channel and an :class:`EditorSession`."""

from __future__ import annotations

import json
import logging
from typing import Callable, Optional, Protocol

from ..core.subscriptions import Subscription
from ..theme.monitor import ThemeMonitor
from .errors import BridgeError
from .session import EditorSession

__all__ = [
    "ContentChannel",
    "BridgeAdapter",
    "ErrorListener",
    "InboundHandler",
    "LoadListener",
    "send_message_script",
    "inject_css_script",
]

_LOGGER = logging.getLogger(__name__)

InboundHandler = Callable[[str], None]
LoadListener = Callable[[bool], None]
ErrorListener = Callable[[BridgeError], None]


class ContentChannel(Protocol):
    """Capabilities the adapter needs from an embedded browser view."""

    def load_url(self, url: str) -> None:
        ...

    def execute_script(self, script: str) -> None:
        ...

    def register_inbound_handler(self, handler: InboundHandler) -> Subscription:
        ...

    def on_load_finished(self, listener: LoadListener) -> Subscription:
        ...

    def dispose(self) -> None:
        ...


def send_message_script(payload: str) -> str:
    """Script delivering the JSON ``payload`` to ``window.sendMessage``.

    ``payload`` must be ASCII-escaped JSON (as produced by :func:`codec.dumps`),
    which is also a valid JavaScript object literal.
    """

    return f"window.sendMessage(JSON.stringify({payload}));"


def inject_css_script(url: str) -> str:
    return f"window.injectCss && window.injectCss({json.dumps(url)});"


class BridgeAdapter:
    """Connects one :class:`ContentChannel` to one :class:`EditorSession`.

    Outbound messages from the session become ``window.sendMessage`` calls,
    inbound strings posted by the page are fed to
    :meth:`EditorSession.handle_inbound_message`. Failures raised while
    handling an inbound message stop here: they are logged and forwarded to
    ``error_listener`` instead of escaping into the toolkit callback.

    Every subscription taken by :meth:`attach` is handed to the session, so
    disposing the session releases the channel, the inbound handler and the
    theme listener.
    """

    def __init__(
        self,
        channel: ContentChannel,
        session: EditorSession,
        *,
        page_url: str,
        theme: ThemeMonitor,
        stylesheet_url: Callable[[bool], str],
        error_listener: Optional[ErrorListener] = None,
    ) -> None:
        self._channel = channel
        self._session = session
        self._page_url = page_url
        self._theme = theme
        self._stylesheet_url = stylesheet_url
        self._error_listener = error_listener
        self._attached = False

    @property
    def session(self) -> EditorSession:
        return self._session

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self) -> None:
        if self._attached:
            return
        session = self._session
        session.add_cleanup(self._channel.dispose)
        session.outbound.set_sink(self._deliver)
        session.own(self._channel.register_inbound_handler(self.handle_inbound))
        session.own(self._channel.on_load_finished(self._handle_load_finished))
        session.own(self._theme.on_theme_change(self._handle_theme_change))
        self._attached = True
        _LOGGER.debug("Loading %s for %s", self._page_url, session.file.name)
        self._channel.load_url(self._page_url)

    def handle_inbound(self, raw: str) -> None:
        try:
            self._session.handle_inbound_message(raw)
        except BridgeError as exc:
            _LOGGER.exception("Inbound message failed for %s", self._session.file.name)
            if self._error_listener is not None:
                self._error_listener(exc)
        except Exception:
            _LOGGER.exception("Unexpected failure handling inbound message for %s", self._session.file.name)

    def inject_stylesheet(self) -> None:
        self._channel.execute_script(inject_css_script(self._stylesheet_url(self._theme.dark)))

    def _deliver(self, payload: str) -> None:
        self._channel.execute_script(send_message_script(payload))

    def _handle_load_finished(self, ok: bool) -> None:
        if not ok:
            _LOGGER.warning("Content page failed to load: %s", self._page_url)
            return
        self.inject_stylesheet()

    def _handle_theme_change(self, dark: bool) -> None:
        if self._session.disposed:
            return
        self.inject_stylesheet()
