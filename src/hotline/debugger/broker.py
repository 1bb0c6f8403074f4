"""Debugger proxy — pairs one debugger with one running client.

Two roles share the endpoint, chosen by the ``role`` query parameter:

- ``debugger``: first come, first served.  A second debugger is turned
  away while the first is attached.
- ``client``: last come, first served.  A new client supersedes the
  current one, which is closed and silenced.

Messages are forwarded verbatim between the two.  When the client goes
away the debugger receives ``{"method": "$disconnected"}``.
"""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from websockets.exceptions import ConnectionClosed

if TYPE_CHECKING:
    from hotline._types import Role
    from hotline.observability.collector import StackCollector


CLOSE_CODE = 1011

DISCONNECTED_MESSAGE = json.dumps({"method": "$disconnected"})


@dataclass(slots=True)
class BrokerState:
    """Current occupant of each role.

    Only the broker mutates this, through the attach/detach methods.
    Detaching is a no-op for a connection that is no longer the
    occupant, which is how superseded clients are silenced.

    """

    debugger: Any = None
    client: Any = None

    @property
    def debugger_connected(self) -> bool:
        return self.debugger is not None

    def attach_debugger(self, connection: Any) -> bool:
        """Install *connection* as the debugger. False if the role is taken."""
        if self.debugger is not None:
            return False
        self.debugger = connection
        return True

    def attach_client(self, connection: Any) -> Any:
        """Install *connection* as the client; return the evicted one, if any."""
        previous, self.client = self.client, connection
        return previous

    def detach_debugger(self, connection: Any) -> bool:
        if self.debugger is not connection:
            return False
        self.debugger = None
        return True

    def detach_client(self, connection: Any) -> bool:
        if self.client is not connection:
            return False
        self.client = None
        return True


class ConnectionBroker:
    """Serves the debugger proxy endpoint.

    Args:
        state: Role occupancy; a fresh ``BrokerState`` by default.
        close_client_on_debugger_exit: Close the client (1011) when the
            debugger disconnects.
        collector: Optional observability sink.

    """

    def __init__(
        self,
        state: BrokerState | None = None,
        *,
        close_client_on_debugger_exit: bool = False,
        collector: StackCollector | None = None,
    ) -> None:
        self.state = state if state is not None else BrokerState()
        self._close_client_on_debugger_exit = close_client_on_debugger_exit
        self._collector = collector
        self._closing: set[asyncio.Task[None]] = set()

    def is_debugger_connected(self) -> bool:
        """Whether a debugger is currently attached."""
        return self.state.debugger_connected

    async def handle(self, connection: Any, role: str | None) -> None:
        """Serve one proxy connection in the given *role* until it closes."""
        if role == "debugger":
            await self._handle_debugger(connection)
        elif role == "client":
            await self._handle_client(connection)
        else:
            await connection.close(CLOSE_CODE, "Missing role param")

    async def _handle_debugger(self, connection: Any) -> None:
        if not self.state.attach_debugger(connection):
            self._record("debugger", "rejected")
            await connection.close(CLOSE_CODE, "Another debugger is already connected")
            return

        self._record("debugger", "attached")
        try:
            async for message in connection:
                await self._send(self.state.client, message)
        except ConnectionClosed as exc:
            print(f"  Debugger proxy: debugger connection error: {exc}", file=sys.stderr)
        finally:
            if self.state.detach_debugger(connection):
                self._record("debugger", "detached")
                if self._close_client_on_debugger_exit and self.state.client is not None:
                    await self.state.client.close(CLOSE_CODE, "Debugger was disconnected")

    async def _handle_client(self, connection: Any) -> None:
        previous = self.state.attach_client(connection)
        if previous is not None:
            self._record("client", "superseded")
            # The evicted peer may never answer the close handshake.
            self._close_in_background(previous, "Superseded by another client")

        self._record("client", "attached")
        try:
            async for message in connection:
                # A superseded client may still deliver buffered frames.
                if self.state.client is not connection:
                    break
                await self._send(self.state.debugger, message)
        except ConnectionClosed as exc:
            print(f"  Debugger proxy: client connection error: {exc}", file=sys.stderr)
        finally:
            if self.state.detach_client(connection):
                self._record("client", "detached")
                await self._send(self.state.debugger, DISCONNECTED_MESSAGE)

    async def _send(self, dest: Any, message: str | bytes) -> None:
        if dest is None:
            return
        try:
            await dest.send(message)
        except ConnectionClosed as exc:
            print(f"  Debugger proxy: dropped message, peer not open: {exc}", file=sys.stderr)

    def _close_in_background(self, connection: Any, reason: str) -> None:
        task = asyncio.create_task(connection.close(CLOSE_CODE, reason))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def drain(self) -> None:
        """Wait for pending closes of evicted connections."""
        while self._closing:
            await asyncio.gather(*tuple(self._closing), return_exceptions=True)

    def _record(self, role: Role, action: str) -> None:
        if self._collector is not None:
            self._collector.record_broker(role, action)
