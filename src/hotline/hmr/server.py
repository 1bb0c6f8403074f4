"""HMR endpoint — session lifecycle for connected clients.

One ``HMRSession`` per WebSocket connection:

    connect     -> resolve the bundle entry, create session, subscribe to changes
    file change -> UpdateChannel.run_cycle() in its own task
    disconnect  -> unsubscribe, mark the session dead, drop it
"""

from __future__ import annotations

import sys
from collections.abc import Mapping
from contextlib import suppress
from typing import TYPE_CHECKING, Any

from websockets.exceptions import ConnectionClosed

from hotline.hmr.channel import UpdateChannel, error_message, serialize_error
from hotline.hmr.session import HMRSession
from hotline.hmr.snapshot import build_snapshot

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from hotline._types import FilePath
    from hotline.observability.collector import StackCollector
    from hotline.packager import ChangeSource, Packager


CLOSE_CODE = 1011


class HMRServer:
    """Accepts HMR connections and keeps one session per connection.

    Args:
        packager: Resolver/bundler collaborator.
        changes: File change subscription.
        host: Address the server is bound to (sanitized before use).
        port: Port the server is bound to.
        collector: Optional observability sink.

    """

    def __init__(
        self,
        packager: Packager,
        changes: ChangeSource,
        *,
        host: str = "",
        port: int = 0,
        collector: StackCollector | None = None,
    ) -> None:
        self._packager = packager
        self._changes = changes
        self._collector = collector
        self.host = host
        self.port = port
        self._sessions: dict[Any, HMRSession] = {}
        self._channel = UpdateChannel(
            packager, address=lambda: (self.host, self.port), collector=collector,
        )

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def get_session(self, connection: Any) -> HMRSession | None:
        return self._sessions.get(connection)

    async def handle(self, connection: Any, params: Mapping[str, str]) -> None:
        """Serve one HMR connection until it closes.

        Args:
            connection: WebSocket connection (``send``/``close``/async iteration).
            params: Query parameters; ``platform`` and ``bundleEntry`` are required.

        """
        platform = params.get("platform")
        entry_file = params.get("bundleEntry")
        if not platform or not entry_file:
            await connection.close(CLOSE_CODE, "Missing platform or bundleEntry param")
            return

        try:
            snapshot = await build_snapshot(
                self._packager, platform, entry_file, collector=self._collector,
            )
        except Exception as exc:
            body = serialize_error(exc)
            with suppress(ConnectionClosed):
                await connection.send(error_message(body))
                await connection.close(CLOSE_CODE, "Unable to resolve bundle entry")
            return

        session = HMRSession(
            connection=connection,
            platform=platform,
            entry_file=entry_file,
            snapshot=snapshot,
        )
        self._sessions[connection] = session

        async def on_change(filename: FilePath, change: Awaitable[object]) -> None:
            await self._channel.run_cycle(session, filename, change)

        self._changes.add_change_listener(on_change)
        print(
            f"  HMR: client connected ({platform}, {entry_file}, "
            f"{len(snapshot.file_list)} files)",
            file=sys.stderr,
        )

        try:
            # Clients never send anything meaningful; drain until closed.
            async for _message in connection:
                pass
        except ConnectionClosed as exc:
            print(f"  HMR: unexpected connection error: {exc}", file=sys.stderr)
        finally:
            self._changes.remove_change_listener(on_change)
            session.close()
            self._sessions.pop(connection, None)
            print("  HMR: client disconnected", file=sys.stderr)
