"""Tests for hotline.debugger.broker — the debugger proxy."""

from __future__ import annotations

import asyncio
import json

import pytest

from hotline.debugger.broker import DISCONNECTED_MESSAGE, BrokerState, ConnectionBroker
from hotline.observability import BrokerEvent, EventLog, StackCollector
from tests.conftest import FakeConnection, settle


async def _attach(
    broker: ConnectionBroker, role: str | None,
) -> tuple[FakeConnection, asyncio.Task[None]]:
    conn = FakeConnection(f"/debugger-proxy?role={role}")
    task = asyncio.create_task(broker.handle(conn, role))
    await settle()
    return conn, task


# ---------------------------------------------------------------------------
# BrokerState
# ---------------------------------------------------------------------------


class TestBrokerState:
    """Role occupancy bookkeeping."""

    def test_empty(self) -> None:
        state = BrokerState()
        assert state.debugger is None
        assert state.client is None
        assert not state.debugger_connected

    def test_second_debugger_refused(self) -> None:
        state = BrokerState()
        first, second = object(), object()
        assert state.attach_debugger(first)
        assert not state.attach_debugger(second)
        assert state.debugger is first

    def test_client_eviction_returns_previous(self) -> None:
        state = BrokerState()
        first, second = object(), object()
        assert state.attach_client(first) is None
        assert state.attach_client(second) is first
        assert state.client is second

    def test_detach_ignores_non_occupant(self) -> None:
        state = BrokerState()
        first, second = object(), object()
        state.attach_client(first)
        state.attach_client(second)

        assert not state.detach_client(first)
        assert state.client is second
        assert state.detach_client(second)
        assert state.client is None


# ---------------------------------------------------------------------------
# ConnectionBroker
# ---------------------------------------------------------------------------


class TestRoles:
    """Role negotiation and single occupancy."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [None, "", "observer"])
    async def test_missing_or_unknown_role_closes(self, role: str | None) -> None:
        broker = ConnectionBroker()
        conn = FakeConnection("/debugger-proxy")

        await broker.handle(conn, role)

        assert conn.close_code == 1011
        assert conn.close_reason == "Missing role param"

    @pytest.mark.asyncio
    async def test_second_debugger_rejected(self) -> None:
        broker = ConnectionBroker()
        first, t1 = await _attach(broker, "debugger")
        second, t2 = await _attach(broker, "debugger")
        await t2

        assert second.close_code == 1011
        assert second.close_reason == "Another debugger is already connected"
        assert not first.closed
        assert broker.state.debugger is first

        await first.close()
        await t1

    @pytest.mark.asyncio
    async def test_second_client_supersedes_first(self) -> None:
        broker = ConnectionBroker()
        first, t1 = await _attach(broker, "client")
        second, t2 = await _attach(broker, "client")
        await t1

        assert first.close_code == 1011
        assert "Superseded" in (first.close_reason or "")
        assert not second.closed
        assert broker.state.client is second

        await second.close()
        await t2

    @pytest.mark.asyncio
    async def test_unresponsive_evicted_client_does_not_stall_forwarding(self) -> None:
        class HangingClose(FakeConnection):
            def __init__(self, path: str) -> None:
                super().__init__(path)
                self.release = asyncio.Event()

            async def close(self, code: int = 1000, reason: str = "") -> None:
                await self.release.wait()
                await super().close(code, reason)

        broker = ConnectionBroker()
        debugger, t0 = await _attach(broker, "debugger")
        stale = HangingClose("/debugger-proxy?role=client")
        t1 = asyncio.create_task(broker.handle(stale, "client"))
        await settle()
        fresh, t2 = await _attach(broker, "client")

        fresh.feed('{"id":7,"result":{}}')
        debugger.feed('{"id":8,"method":"Debugger.resume"}')
        await settle()

        assert debugger.sent == ['{"id":7,"result":{}}']
        assert fresh.sent == ['{"id":8,"method":"Debugger.resume"}']
        assert not stale.closed

        stale.release.set()
        await broker.drain()
        await t1
        assert stale.close_reason == "Superseded by another client"

        await fresh.close()
        await t2
        await debugger.close()
        await t0

    @pytest.mark.asyncio
    async def test_is_debugger_connected(self) -> None:
        broker = ConnectionBroker()
        assert not broker.is_debugger_connected()

        debugger, task = await _attach(broker, "debugger")
        assert broker.is_debugger_connected()

        await debugger.close()
        await task
        assert not broker.is_debugger_connected()

    @pytest.mark.asyncio
    async def test_debugger_can_reconnect_after_leaving(self) -> None:
        broker = ConnectionBroker()
        first, t1 = await _attach(broker, "debugger")
        await first.close()
        await t1

        second, t2 = await _attach(broker, "debugger")
        assert not second.closed
        assert broker.state.debugger is second

        await second.close()
        await t2


class TestForwarding:
    """Verbatim message relay between the two roles."""

    @pytest.mark.asyncio
    async def test_debugger_to_client(self) -> None:
        broker = ConnectionBroker()
        debugger, t1 = await _attach(broker, "debugger")
        client, t2 = await _attach(broker, "client")

        debugger.feed('{"id": 1, "method": "Runtime.evaluate"}')
        await settle()

        assert client.sent == ['{"id": 1, "method": "Runtime.evaluate"}']

        await client.close()
        await debugger.close()
        await asyncio.gather(t1, t2)

    @pytest.mark.asyncio
    async def test_client_to_debugger(self) -> None:
        broker = ConnectionBroker()
        debugger, t1 = await _attach(broker, "debugger")
        client, t2 = await _attach(broker, "client")

        client.feed(b"\x00binary-frame")
        await settle()

        assert debugger.sent == [b"\x00binary-frame"]

        await debugger.close()
        await client.close()
        await asyncio.gather(t1, t2)

    @pytest.mark.asyncio
    async def test_forward_without_peer_is_noop(self) -> None:
        broker = ConnectionBroker()
        debugger, task = await _attach(broker, "debugger")

        debugger.feed("hello?")
        await settle()

        assert not debugger.closed
        await debugger.close()
        await task

    @pytest.mark.asyncio
    async def test_forward_to_closed_peer_is_swallowed(self) -> None:
        broker = ConnectionBroker()
        debugger, t1 = await _attach(broker, "debugger")
        client, t2 = await _attach(broker, "client")
        # Peer socket closed but its handler has not detached yet.
        client.close_code = 1006

        debugger.feed("ping")
        await settle()

        assert client.sent == []
        assert not debugger.closed

        t2.cancel()
        with pytest.raises(asyncio.CancelledError):
            await t2
        await debugger.close()
        await t1

    @pytest.mark.asyncio
    async def test_superseded_client_is_silenced(self) -> None:
        broker = ConnectionBroker()
        debugger, t0 = await _attach(broker, "debugger")
        first, t1 = await _attach(broker, "client")
        replacement = FakeConnection("/debugger-proxy?role=client")
        broker.state.attach_client(replacement)

        # Frame that arrives from the stale connection after it lost the role.
        first.feed("stale frame")
        await t1

        assert debugger.sent == []
        assert broker.state.client is replacement

        await debugger.close()
        await t0


class TestDisconnectNotification:
    """Synthetic $disconnected message on client loss."""

    @pytest.mark.asyncio
    async def test_client_close_notifies_debugger(self) -> None:
        broker = ConnectionBroker()
        debugger, t1 = await _attach(broker, "debugger")
        client, t2 = await _attach(broker, "client")

        await client.close()
        await t2

        assert json.loads(debugger.sent[-1]) == {"method": "$disconnected"}
        assert broker.state.client is None

        await debugger.close()
        await t1

    @pytest.mark.asyncio
    async def test_debugger_close_sends_nothing_to_client(self) -> None:
        broker = ConnectionBroker()
        debugger, t1 = await _attach(broker, "debugger")
        client, t2 = await _attach(broker, "client")

        await debugger.close()
        await t1

        assert client.sent == []
        assert not client.closed

        await client.close()
        await t2

    @pytest.mark.asyncio
    async def test_superseded_client_does_not_notify(self) -> None:
        broker = ConnectionBroker()
        debugger, t0 = await _attach(broker, "debugger")
        first, t1 = await _attach(broker, "client")
        second, t2 = await _attach(broker, "client")
        await t1

        assert DISCONNECTED_MESSAGE not in debugger.sent

        await second.close()
        await t2
        assert debugger.sent == [DISCONNECTED_MESSAGE]

        await debugger.close()
        await t0

    @pytest.mark.asyncio
    async def test_optional_client_close_on_debugger_exit(self) -> None:
        broker = ConnectionBroker(close_client_on_debugger_exit=True)
        debugger, t1 = await _attach(broker, "debugger")
        client, t2 = await _attach(broker, "client")

        await debugger.close()
        await t1
        await t2

        assert client.close_code == 1011
        assert client.close_reason == "Debugger was disconnected"
        assert client.sent == []


class TestBrokerEvents:
    """Role transitions are recorded when a collector is supplied."""

    @pytest.mark.asyncio
    async def test_events(self) -> None:
        log = EventLog()
        broker = ConnectionBroker(collector=StackCollector(log))
        debugger, t1 = await _attach(broker, "debugger")
        extra, t2 = await _attach(broker, "debugger")
        await t2
        await debugger.close()
        await t1

        actions = [(e.role, e.action) for e in reversed(log.recent(event_type=BrokerEvent))]
        assert actions == [
            ("debugger", "attached"),
            ("debugger", "rejected"),
            ("debugger", "detached"),
        ]
