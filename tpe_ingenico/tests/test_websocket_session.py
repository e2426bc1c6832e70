"""
Integration tests for the WebSocket terminal session.

Each test runs a local websockets server standing in for the terminal.
"""

import asyncio
import socket
from unittest.mock import MagicMock

import pytest
from websockets.asyncio.server import serve

from conftest import PAID_RESPONSE, wait_until
from tpe_ingenico.application.correlator import PaymentCorrelator
from tpe_ingenico.core.exceptions import TransportError
from tpe_ingenico.core.value_objects import PaymentState
from tpe_ingenico.infrastructure.websocket_session import WebSocketSession


RETRY_INTERVAL = 0.05


class FakeTerminal:
    """Local terminal: answers "pay" frames and valid payment requests."""

    def __init__(self, replies=None, drop_first=False):
        self.connections = []
        self.received = []
        self.replies = replies if replies is not None else [PAID_RESPONSE]
        self.drop_first = drop_first

    async def handler(self, connection):
        self.connections.append(connection)
        async for message in connection:
            self.received.append(message)
            if self.drop_first and len(self.connections) == 1:
                # First link goes away without answering
                await connection.close()
                return
            for reply in self.replies:
                await connection.send(reply)


def free_port() -> int:
    """Return a local port nobody listens on."""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def server_url(server) -> str:
    port = server.sockets[0].getsockname()[1]
    return f"ws://127.0.0.1:{port}"


# =============================================================================
# Connection Lifecycle
# =============================================================================


class TestConnection:
    """Tests for opening and closing the link."""

    @pytest.mark.asyncio
    async def test_connect_send_receive(self):
        """Test a frame goes out and the answer reaches subscribers."""
        terminal = FakeTerminal()
        async with serve(terminal.handler, "127.0.0.1", 0) as server:
            session = WebSocketSession(server_url(server), reconnect_interval=RETRY_INTERVAL)
            on_open = MagicMock()
            session.on_open(on_open)
            try:
                assert await session.connect() is True
                assert session.is_connected
                assert session.connection_locked
                on_open.assert_called_once()

                subscription = session.subscribe()
                await session.send("pay")
                raw = await asyncio.wait_for(subscription.get(), timeout=2.0)
                assert raw == PAID_RESPONSE
                assert terminal.received == ["pay"]
            finally:
                await session.close()

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self):
        """Test a second connect reuses the open link."""
        terminal = FakeTerminal()
        async with serve(terminal.handler, "127.0.0.1", 0) as server:
            session = WebSocketSession(server_url(server), reconnect_interval=RETRY_INTERVAL)
            try:
                assert await session.connect() is True
                assert await session.connect() is True
                await wait_until(lambda: len(terminal.connections) == 1)
                await asyncio.sleep(0.05)
                assert len(terminal.connections) == 1
            finally:
                await session.close()

    @pytest.mark.asyncio
    async def test_send_while_disconnected(self):
        """Test send fails fast without a connection."""
        session = WebSocketSession(f"ws://127.0.0.1:{free_port()}")
        with pytest.raises(TransportError, match="not connected"):
            await session.send("pay")

    @pytest.mark.asyncio
    async def test_close_fires_callback(self):
        """Test close reports the closure and stops reconnecting."""
        terminal = FakeTerminal()
        async with serve(terminal.handler, "127.0.0.1", 0) as server:
            session = WebSocketSession(server_url(server), reconnect_interval=RETRY_INTERVAL)
            on_close = MagicMock()
            session.on_close(on_close)

            await session.connect()
            await session.close()

            on_close.assert_called_once_with("session closed")
            assert not session.is_connected
            assert not session.connection_locked
            assert not session.is_reconnecting


# =============================================================================
# Reconnection
# =============================================================================


class TestReconnection:
    """Tests for the automatic reconnection loop."""

    @pytest.mark.asyncio
    async def test_unreachable_terminal(self):
        """Test a refused connection releases the lock and arms the retry loop."""
        session = WebSocketSession(
            f"ws://127.0.0.1:{free_port()}",
            reconnect_interval=RETRY_INTERVAL,
        )
        on_error = MagicMock()
        session.on_error(on_error)
        try:
            assert await session.connect() is False
            assert not session.is_connected
            assert not session.connection_locked
            assert session.is_reconnecting
            on_error.assert_called()

            # Keeps retrying while the terminal is away
            await wait_until(lambda: on_error.call_count >= 3)
        finally:
            await session.close()

        assert not session.is_reconnecting

    @pytest.mark.asyncio
    async def test_reconnects_after_server_drop(self):
        """Test the session comes back after the terminal closes the link."""
        terminal = FakeTerminal()
        async with serve(terminal.handler, "127.0.0.1", 0) as server:
            session = WebSocketSession(server_url(server), reconnect_interval=RETRY_INTERVAL)
            on_open = MagicMock()
            on_close = MagicMock()
            session.on_open(on_open)
            session.on_close(on_close)
            try:
                await session.connect()
                subscription = session.subscribe()
                await wait_until(lambda: terminal.connections)

                await terminal.connections[0].close()

                with pytest.raises(TransportError, match="Connection lost"):
                    await asyncio.wait_for(subscription.get(), timeout=2.0)
                on_close.assert_called_once()

                await wait_until(lambda: session.is_connected)
                assert on_open.call_count == 2
                assert session.connection_locked
                assert not session.is_reconnecting

                # The subscription survives the reconnect
                await session.send("pay")
                raw = await asyncio.wait_for(subscription.get(), timeout=2.0)
                assert raw == PAID_RESPONSE
            finally:
                await session.close()

    @pytest.mark.asyncio
    async def test_connects_when_terminal_appears(self):
        """Test the retry loop opens the link once the terminal is up."""
        port = free_port()
        session = WebSocketSession(
            f"ws://127.0.0.1:{port}",
            reconnect_interval=RETRY_INTERVAL,
        )
        terminal = FakeTerminal()
        try:
            assert await session.connect() is False

            async with serve(terminal.handler, "127.0.0.1", port):
                await wait_until(lambda: session.is_connected)
                assert not session.is_reconnecting
                assert len(terminal.connections) == 1
                await session.close()
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_forced_reconnect(self):
        """Test reconnect drops the link and opens a new one at once."""
        terminal = FakeTerminal()
        async with serve(terminal.handler, "127.0.0.1", 0) as server:
            session = WebSocketSession(server_url(server), reconnect_interval=RETRY_INTERVAL)
            try:
                await session.connect()
                await session.reconnect()

                assert session.is_connected
                await wait_until(lambda: len(terminal.connections) == 2)
            finally:
                await session.close()


# =============================================================================
# End to End
# =============================================================================


class TestPaymentOverWebSocket:
    """Correlator scenarios against a real socket."""

    @pytest.mark.asyncio
    async def test_paid(self, payment):
        """Test a payment round trip over the wire."""
        terminal = FakeTerminal()
        async with serve(terminal.handler, "127.0.0.1", 0) as server:
            session = WebSocketSession(server_url(server), reconnect_interval=RETRY_INTERVAL)
            correlator = PaymentCorrelator(session, response_timeout=2.0)
            try:
                await session.connect()
                response = await correlator.submit_payment(payment)

                assert response.checkout_state == "paid"
                assert correlator.current_state is PaymentState.IDLE
                assert '"number": "A1"' in terminal.received[0]
            finally:
                await session.close()

    @pytest.mark.asyncio
    async def test_incomplete_frame_then_response(self, payment):
        """Test an incomplete frame is skipped and the next one resolves."""
        terminal = FakeTerminal(replies=['{"checkout_state": "paid"}', PAID_RESPONSE])
        async with serve(terminal.handler, "127.0.0.1", 0) as server:
            session = WebSocketSession(server_url(server), reconnect_interval=RETRY_INTERVAL)
            correlator = PaymentCorrelator(session, response_timeout=2.0)
            try:
                await session.connect()
                response = await correlator.submit_payment(payment)

                assert response.checkout_details == "ok"
            finally:
                await session.close()

    @pytest.mark.asyncio
    async def test_drop_mid_payment_then_recover(self, payment):
        """Test a drop fails the call, the link comes back and the next payment succeeds."""
        terminal = FakeTerminal(drop_first=True)
        async with serve(terminal.handler, "127.0.0.1", 0) as server:
            session = WebSocketSession(server_url(server), reconnect_interval=RETRY_INTERVAL)
            correlator = PaymentCorrelator(session, response_timeout=2.0)
            try:
                await session.connect()

                with pytest.raises(TransportError, match="Connection lost"):
                    await correlator.submit_payment(payment)
                assert correlator.current_state is PaymentState.IDLE

                await wait_until(lambda: session.is_connected)
                response = await correlator.submit_payment(payment)

                assert response.checkout_state == "paid"
                assert correlator.current_state is PaymentState.IDLE
                assert len(terminal.connections) == 2
                assert len(terminal.received) == 2
            finally:
                await session.close()
