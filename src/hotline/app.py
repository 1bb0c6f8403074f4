"""Hotline application — one WebSocket server, two endpoints.

Wires the packager, the HMR server, the debugger proxy and the file
watcher together.  ``dev()`` is the blocking entry point; ``run()`` is the
awaitable core it drives.
"""

from __future__ import annotations

import asyncio
import importlib
import importlib.util
import json
import sys
import time
from http import HTTPStatus
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, urlsplit

from websockets.asyncio.server import serve

from hotline._errors import ConfigError
from hotline.config_loader import load_config
from hotline.debugger.broker import ConnectionBroker
from hotline.hmr.server import HMRServer
from hotline.observability import EventLog, StackCollector
from hotline.packager import ChangeHub, ChangeSource, Packager
from hotline.watcher import FileWatcher

if TYPE_CHECKING:
    from websockets.asyncio.server import Server, ServerConnection
    from websockets.http11 import Request, Response

    from hotline.config import HotlineConfig


STATS_PATH = "/__hotline/stats"


def resolve_packager(config: HotlineConfig) -> Packager:
    """Resolve ``config.packager`` into a Packager instance.

    Format: ``module:attr``.  ``<root>/<module>.py`` is preferred; otherwise
    ``module`` is imported normally.  ``attr`` may be a packager object or a
    callable taking the config and returning one.

    Raises:
        ConfigError: If the reference is missing, malformed, or does not yield a
            packager.

    """
    ref = config.packager
    if not ref or ":" not in ref:
        msg = "packager must be configured as 'module:attr' (e.g. packager:create)"
        raise ConfigError(msg)
    module_part, _, attr = ref.partition(":")
    if not module_part or not attr:
        msg = f"packager {ref!r}: expected 'module:attr'"
        raise ConfigError(msg)

    py_file = config.root / f"{module_part.replace('.', '/')}.py"
    if py_file.is_file():
        module_name = f"hotline_packager_{module_part.replace('.', '_')}"
        spec_obj = importlib.util.spec_from_file_location(module_name, py_file)
        if spec_obj is None or spec_obj.loader is None:
            msg = f"packager {ref!r}: failed to load {py_file}"
            raise ConfigError(msg)
        module = importlib.util.module_from_spec(spec_obj)
        sys.modules[module_name] = module
        spec_obj.loader.exec_module(module)
    else:
        try:
            module = importlib.import_module(module_part)
        except ImportError as exc:
            msg = f"packager {ref!r}: cannot import {module_part!r}: {exc}"
            raise ConfigError(msg) from exc

    target = getattr(module, attr, None)
    if target is None:
        msg = f"packager {ref!r}: {attr} not found in {module_part}"
        raise ConfigError(msg)
    if isinstance(target, Packager):
        return target
    if callable(target):
        packager = target(config)
        if isinstance(packager, Packager):
            return packager
    msg = f"packager {ref!r}: {attr} is not a packager or packager factory"
    raise ConfigError(msg)


class HotlineServer:
    """Routes WebSocket connections to the HMR server or the debugger proxy.

    Args:
        config: Resolved HotlineConfig.
        packager: Resolver/bundler collaborator.
        changes: File change subscription (defaults to a new ``ChangeHub``
            unless the packager provides one).
        collector: Observability sink shared by both endpoints.

    """

    def __init__(
        self,
        config: HotlineConfig,
        packager: Packager,
        *,
        changes: ChangeSource | None = None,
        collector: StackCollector | None = None,
    ) -> None:
        if changes is None:
            changes = packager if isinstance(packager, ChangeSource) else ChangeHub()
        self.config = config
        self.changes = changes
        self.collector = collector if collector is not None else StackCollector(EventLog())
        self.hmr = HMRServer(
            packager, changes, host=config.host, port=config.port, collector=self.collector,
        )
        self.broker = ConnectionBroker(
            close_client_on_debugger_exit=config.close_client_on_debugger_exit,
            collector=self.collector,
        )

    def bind(self, host: str, port: int) -> None:
        """Record the address the server actually listens on."""
        self.hmr.host = host
        self.hmr.port = port

    def process_request(self, connection: ServerConnection, request: Request) -> Response | None:
        """Answer plain HTTP requests before the WebSocket handshake."""
        path = urlsplit(request.path).path
        if path == STATS_PATH:
            stats = self.collector.log.stats()
            stats["debugger_connected"] = self.broker.is_debugger_connected()
            stats["hmr_sessions"] = self.hmr.session_count
            response = connection.respond(HTTPStatus.OK, json.dumps(stats) + "\n")
            del response.headers["Content-Type"]
            response.headers["Content-Type"] = "application/json"
            return response
        if path not in (self.config.hmr_path, self.config.debugger_path):
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return None

    async def handler(self, connection: Any) -> None:
        """Dispatch a WebSocket connection by URL path."""
        url = urlsplit(connection.request.path)
        params = dict(parse_qsl(url.query))
        if url.path == self.config.hmr_path:
            await self.hmr.handle(connection, params)
        elif url.path == self.config.debugger_path:
            await self.broker.handle(connection, params.get("role"))
        else:
            await connection.close(1011, "Unknown endpoint")


async def run(
    config: HotlineConfig,
    packager: Packager,
    *,
    ready: asyncio.Future[Server] | None = None,
    load_ms: float = 0.0,
) -> None:
    """Serve both endpoints until cancelled.

    Args:
        config: Resolved HotlineConfig.
        packager: Resolver/bundler collaborator.
        ready: Resolved with the listening server once it accepts connections.
        load_ms: Startup time reported in the banner.

    """
    from hotline.banner import print_banner

    app = HotlineServer(config, packager)
    watcher: FileWatcher | None = None
    watch_task: asyncio.Task[None] | None = None

    async with serve(
        app.handler,
        config.host,
        config.port,
        process_request=app.process_request,
    ) as server:
        host, port = next(iter(server.sockets)).getsockname()[:2]
        app.bind(host, port)

        if isinstance(app.changes, ChangeHub):
            watcher = FileWatcher(config)
            watch_task = asyncio.create_task(watcher.feed(app.changes))

        print_banner(config, port=port, watching=watcher is not None, load_ms=load_ms)
        if ready is not None and not ready.done():
            ready.set_result(server)

        try:
            await server.serve_forever()
        finally:
            if watcher is not None:
                watcher.stop()
            if watch_task is not None:
                watch_task.cancel()


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def dev(root: str | Path = ".", **kwargs: object) -> None:
    """Start the HMR server and debugger proxy for a project.

    Args:
        root: Project root directory (watched for changes).
        **kwargs: Override HotlineConfig fields.

    """
    config = load_config(Path(root), **kwargs)
    t0 = time.perf_counter()
    packager = resolve_packager(config)
    load_ms = (time.perf_counter() - t0) * 1000

    try:
        asyncio.run(run(config, packager, load_ms=load_ms))
    except KeyboardInterrupt:
        print("\n  Stopped.", file=sys.stderr)
