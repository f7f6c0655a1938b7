"""Local HTTP endpoint serving the embedded editor's static assets."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import time
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Optional

from aiohttp import web

from ..theme.monitor import stylesheet_for

__all__ = ["StaticAssetServer", "ASSET_PREFIX", "KNOWN_ASSETS", "default_asset_root"]

_LOGGER = logging.getLogger(__name__)

ASSET_PREFIX = "/percy/"
INDEX_ASSET = "index.html"
KNOWN_ASSETS: tuple[str, ...] = (INDEX_ASSET, "default.css", "darcula.css")


def default_asset_root() -> Any:
    """Directory holding the packaged ``index.html`` and stylesheets."""

    return resources.files("percy_editor") / "resources"


@web.middleware
async def _request_logging_middleware(request: web.Request, handler) -> web.StreamResponse:
    start = time.monotonic()
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        _LOGGER.info("HTTP %s %s status=%s", request.method, request.path, exc.status)
        raise
    except Exception:
        elapsed_ms = (time.monotonic() - start) * 1000
        _LOGGER.exception("HTTP %s %s failed duration_ms=%.1f", request.method, request.path, elapsed_ms)
        raise
    elapsed_ms = (time.monotonic() - start) * 1000
    _LOGGER.debug(
        "HTTP %s %s status=%s duration_ms=%.1f",
        request.method,
        request.path,
        getattr(response, "status", "?"),
        elapsed_ms,
    )
    return response


class StaticAssetServer:
    """Serves a fixed set of resources under :data:`ASSET_PREFIX`.

    ``GET /percy/`` returns ``index.html``; ``GET /percy/<name>`` returns a
    known resource. Anything else is a 404 and unreadable resources are a 500.
    """

    def __init__(
        self,
        *,
        host: str = "127.0.0.1",
        port: int = 0,
        asset_root: Path | Any | None = None,
        assets: Iterable[str] = KNOWN_ASSETS,
    ) -> None:
        self._host = host
        self._port = port
        self._asset_root = asset_root if asset_root is not None else default_asset_root()
        self._assets = frozenset(assets)
        self._app = web.Application(middlewares=[_request_logging_middleware])
        self._runner: Optional[web.AppRunner] = None
        self._base_url: Optional[str] = None
        self._setup_routes()

    @property
    def app(self) -> web.Application:
        return self._app

    @property
    def base_url(self) -> str:
        if self._base_url is None:
            raise RuntimeError("Static asset server has not been started")
        return self._base_url

    @property
    def running(self) -> bool:
        return self._runner is not None

    def url_for(self, name: str) -> str:
        return f"{self.base_url}{name}"

    def stylesheet_url(self, dark: bool) -> str:
        return self.url_for(stylesheet_for(dark))

    async def start(self) -> str:
        if self._runner is not None:
            return self.base_url
        runner = web.AppRunner(self._app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        await site.start()
        self._runner = runner
        port = self._resolve_port(runner) or self._port
        self._base_url = f"http://{self._host}:{port}{ASSET_PREFIX}"
        _LOGGER.info("Static assets served at %s", self._base_url)
        return self._base_url

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        self._base_url = None
        if runner is not None:
            await runner.cleanup()
            _LOGGER.info("Static asset server stopped")

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------
    def _setup_routes(self) -> None:
        router = self._app.router
        router.add_get(ASSET_PREFIX, self._handle_index)
        router.add_get(ASSET_PREFIX + "{name}", self._handle_asset)

    async def _handle_index(self, request: web.Request) -> web.Response:
        return await self._send(INDEX_ASSET)

    async def _handle_asset(self, request: web.Request) -> web.Response:
        return await self._send(request.match_info["name"])

    async def _send(self, name: str) -> web.Response:
        if name not in self._assets:
            _LOGGER.warning("%s is not found", name)
            raise web.HTTPNotFound()
        try:
            data = await asyncio.to_thread(self._read_asset, name)
        except OSError as exc:
            _LOGGER.warning("Unable to read asset %s: %s", name, exc)
            raise web.HTTPInternalServerError() from exc
        content_type, _ = mimetypes.guess_type(name)
        return web.Response(body=data, content_type=content_type or "application/octet-stream")

    def _read_asset(self, name: str) -> bytes:
        return (self._asset_root / name).read_bytes()

    @staticmethod
    def _resolve_port(runner: web.AppRunner) -> int | None:
        for address in runner.addresses or ():
            if isinstance(address, tuple) and len(address) >= 2:
                return int(address[1])
        return None
