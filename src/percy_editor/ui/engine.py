"""Process-wide Qt WebEngine runtime with an explicit lifecycle.

The host calls :func:`init_engine` once before creating any editor window and
:func:`shutdown_engine` once on exit. Nothing here initializes lazily.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import sys
from dataclasses import dataclass
from threading import Lock
from typing import Any, Optional, cast

from ..services.settings import Settings

__all__ = ["EngineRuntime", "init_engine", "shutdown_engine", "get_engine", "engine_initialized"]

_LOGGER = logging.getLogger(__name__)

_APP_NAME = "Percy Editor"


@dataclass(slots=True)
class EngineRuntime:
    """Container returned by :func:`init_engine`."""

    app: Any
    loop: asyncio.AbstractEventLoop


_RUNTIME: Optional[EngineRuntime] = None
_RUNTIME_LOCK = Lock()


def init_engine(settings: Settings) -> EngineRuntime:
    """Create the QApplication, the qasync loop and load QtWebEngine."""

    global _RUNTIME
    with _RUNTIME_LOCK:
        if _RUNTIME is not None:
            raise RuntimeError("Web engine is already initialized")

        try:  # Local import to avoid mandatory PySide6 dependency at import time.
            from PySide6.QtCore import QCoreApplication, Qt
            from PySide6.QtWidgets import QApplication
        except ImportError as exc:  # pragma: no cover - depends on desktop stack
            raise RuntimeError("PySide6 must be installed to launch the Percy editor.") from exc

        try:
            # QtWebEngine must be loaded before the QApplication exists.
            import PySide6.QtWebEngineWidgets  # noqa: F401
        except ImportError as exc:  # pragma: no cover - depends on desktop stack
            raise RuntimeError("PySide6 was installed without QtWebEngine support.") from exc

        try:
            from qasync import QEventLoop
        except ImportError as exc:  # pragma: no cover - depends on env setup
            raise RuntimeError("qasync is required to run the async Qt event loop.") from exc

        os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")
        QCoreApplication.setAttribute(Qt.ApplicationAttribute.AA_ShareOpenGLContexts)
        app = cast(Any, QApplication.instance() or QApplication(sys.argv))
        app.setApplicationName(_APP_NAME)
        app.setApplicationDisplayName(_APP_NAME)

        loop = QEventLoop(app)
        asyncio.set_event_loop(loop)
        try:
            app.aboutToQuit.connect(loop.stop)  # type: ignore[attr-defined]
        except AttributeError:  # pragma: no cover - in case of mock QApplication
            pass

        if (settings.theme or "").lower() == "dark":
            app.setStyle("Fusion")

        _RUNTIME = EngineRuntime(app=app, loop=loop)
        _LOGGER.debug("Web engine initialized")
        return _RUNTIME


def get_engine() -> EngineRuntime:
    runtime = _RUNTIME
    if runtime is None:
        raise RuntimeError("Web engine has not been initialized; call init_engine() first")
    return runtime


def engine_initialized() -> bool:
    return _RUNTIME is not None


def shutdown_engine() -> None:
    """Drain the asyncio loop and release the process-wide runtime."""

    global _RUNTIME
    with _RUNTIME_LOCK:
        runtime, _RUNTIME = _RUNTIME, None
    if runtime is None:
        return
    loop = runtime.loop
    if not loop.is_closed():
        _drain_event_loop(loop)
        loop.close()
    _LOGGER.debug("Web engine shut down")


def _drain_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel outstanding tasks and shutdown async machinery before closing."""

    async def _cleanup() -> None:
        current_task = None
        with contextlib.suppress(RuntimeError):
            current_task = asyncio.current_task(loop=loop)

        tasks = [task for task in asyncio.all_tasks(loop) if not task.done() and task is not current_task]
        if tasks:
            _LOGGER.debug("Canceling %s pending asyncio task(s) before shutdown.", len(tasks))
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        with contextlib.suppress(RuntimeError, NotImplementedError):
            await loop.shutdown_asyncgens()
        with contextlib.suppress(RuntimeError, NotImplementedError):
            await loop.shutdown_default_executor()

    try:
        loop.run_until_complete(_cleanup())
    except RuntimeError as exc:  # pragma: no cover - loop already stopped elsewhere
        _LOGGER.debug("Unable to drain asyncio loop: %s", exc)
