"""Outbound message queue marshaling deliveries onto the content's thread."""

from __future__ import annotations

import logging
from collections import deque
from threading import Lock
from typing import Callable, Deque, Optional

from . import codec
from .bridge_types import Executor, OutboundMessage

__all__ = ["OutboundQueue", "MessageSink"]

_LOGGER = logging.getLogger(__name__)

MessageSink = Callable[[str], None]


class OutboundQueue:
    """Orders outbound messages and hands them to ``sink`` through ``executor``.

    ``post`` never delivers inline unless no executor is configured; with an
    executor the drain runs wherever the executor schedules it (typically the
    GUI thread). Messages keep their posting order across drains.
    """

    def __init__(self, sink: MessageSink | None = None, *, executor: Optional[Executor] = None) -> None:
        self._sink = sink
        self._executor = executor
        self._pending: Deque[str] = deque()
        self._lock = Lock()
        self._draining = False
        self._closed = False
        self._delivered = 0

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def delivered(self) -> int:
        return self._delivered

    @property
    def closed(self) -> bool:
        return self._closed

    def set_sink(self, sink: MessageSink | None) -> None:
        self._sink = sink

    def set_executor(self, executor: Optional[Executor]) -> None:
        """Configure a callable used to marshal deliveries onto the UI thread."""

        self._executor = executor

    def post(self, message: OutboundMessage) -> None:
        payload = codec.dumps(message)
        with self._lock:
            if self._closed:
                _LOGGER.debug("Dropping %s posted after close", message.message_type.value)
                return
            self._pending.append(payload)
        _LOGGER.debug("Queued outbound %s", message.message_type.value)
        self._schedule()

    def flush(self) -> None:
        """Deliver everything pending on the calling thread."""

        self._drain()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            dropped = len(self._pending)
            self._pending.clear()
        if dropped:
            _LOGGER.debug("Discarded %d undelivered outbound message(s)", dropped)

    def _schedule(self) -> None:
        if self._executor is not None:
            self._executor(self._drain)
            return
        self._drain()

    def _drain(self) -> None:
        with self._lock:
            if self._draining:
                return
            self._draining = True
        while True:
            with self._lock:
                if not self._pending or self._closed:
                    # Cleared under the lock so a concurrent post never strands a message.
                    self._draining = False
                    return
                payload = self._pending.popleft()
            sink = self._sink
            if sink is None:
                _LOGGER.warning("No content sink attached; dropping outbound message")
                continue
            try:
                sink(payload)
                self._delivered += 1
            except Exception:
                _LOGGER.exception("Outbound delivery failed")
