"""
WebSocket transport session for the payment terminal.

Owns the persistent connection to the terminal, fans inbound frames out
to subscribers and reconnects on its own:

    open  -> connection_locked = True, retry loop cancelled
    close -> connection_locked = False, one retry loop armed
    error -> connection_locked = False, one retry loop armed

The retry loop tries again every fixed interval until the link is open.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Optional

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..configs import DEFAULT_TPE_URL, RECONNECT_INTERVAL_MS
from ..core.exceptions import TransportError
from ..core.interfaces import LifecycleCallback, Transport
from ..core.message_stream import MessageStream, MessageSubscription
from ..domain.payment_state_machine import SessionState
from ..loggers import logger


class WebSocketSession(Transport):
    """
    Persistent WebSocket link to the terminal.

    Attributes:
        url: Terminal endpoint.
        reconnect_interval: Seconds between reconnection attempts.
        open_timeout: Seconds allowed for the opening handshake.
    """

    def __init__(
        self,
        url: str = DEFAULT_TPE_URL,
        session: Optional[SessionState] = None,
        reconnect_interval: float = RECONNECT_INTERVAL_MS / 1000,
        open_timeout: float = 10.0,
    ) -> None:
        """
        Initialize the session. Nothing is opened until connect().

        Args:
            url: Terminal WebSocket URL.
            session: Shared session state holding connection_locked.
            reconnect_interval: Seconds between reconnection attempts.
            open_timeout: Seconds allowed for the opening handshake.
        """
        self.url = url
        self.reconnect_interval = reconnect_interval
        self.open_timeout = open_timeout

        self._session = session or SessionState()
        self._stream = MessageStream()
        self._connection: Optional[ClientConnection] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._retry_task: Optional[asyncio.Task] = None
        self._closing = False

        self._callbacks: dict[str, list[LifecycleCallback]] = {
            "open": [],
            "close": [],
            "error": [],
            "message": [],
        }

    # =========================================================================
    # State
    # =========================================================================

    @property
    def session(self) -> SessionState:
        """Get the shared session state."""
        return self._session

    @property
    def is_connected(self) -> bool:
        """Check if the connection is open."""
        return self._connection is not None

    @property
    def connection_locked(self) -> bool:
        """Check if a connection attempt or open session holds the lock."""
        return self._session.connection_locked

    @property
    def is_reconnecting(self) -> bool:
        """Check if the retry loop is running."""
        return self._retry_task is not None and not self._retry_task.done()

    # =========================================================================
    # Callbacks
    # =========================================================================

    def on_open(self, callback: LifecycleCallback) -> None:
        """Register callback() for connection opened."""
        self._callbacks["open"].append(callback)

    def on_close(self, callback: LifecycleCallback) -> None:
        """Register callback(reason) for connection closed."""
        self._callbacks["close"].append(callback)

    def on_error(self, callback: LifecycleCallback) -> None:
        """Register callback(exception) for connection errors."""
        self._callbacks["error"].append(callback)

    def on_message(self, callback: LifecycleCallback) -> None:
        """Register callback(raw) for every inbound frame."""
        self._callbacks["message"].append(callback)

    async def _fire(self, kind: str, *args: Any) -> None:
        for callback in list(self._callbacks[kind]):
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Callback error for {kind}: {e}")

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self) -> bool:
        """
        Open the connection to the terminal.

        Idempotent: returns at once if already connected, or if another
        attempt holds the lock. A failed attempt arms the retry loop.

        Returns:
            True if the connection is open.
        """
        self._closing = False

        if self.is_connected:
            return True

        if self._session.connection_locked:
            logger.debug("Connection attempt already in progress")
            return False

        return await self._attempt()

    async def _attempt(self) -> bool:
        self._session.connection_locked = True
        logger.info(f"Connecting to terminal at {self.url}")

        try:
            connection = await websockets.connect(
                self.url,
                open_timeout=self.open_timeout,
            )
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            logger.warning(f"Connection error: {e}")
            await self._handle_error(e)
            return False

        if self._closing:
            await connection.close()
            self._session.connection_locked = False
            return False

        self._connection = connection
        self._reader_task = asyncio.create_task(self._read_loop(connection))
        await self._handle_open()
        return True

    async def _read_loop(self, connection: ClientConnection) -> None:
        reason = "connection closed"
        try:
            async for raw in connection:
                await self._dispatch(raw)
        except ConnectionClosed as e:
            reason = str(e)

        # Only the live connection may report a close
        if self._connection is connection:
            await self._handle_close(reason)

    async def _dispatch(self, raw: Any) -> None:
        logger.debug(f"RX: {raw}")
        self._stream.publish(raw)
        await self._fire("message", raw)

    async def _handle_open(self) -> None:
        self._session.connection_locked = True

        # The retry loop exits by itself when it is the one that connected
        retry_task = self._retry_task
        if retry_task is not None and retry_task is not asyncio.current_task():
            retry_task.cancel()
            self._retry_task = None

        logger.info("Connection open")
        await self._fire("open")

    async def _handle_close(self, reason: str, arm_retry: bool = True) -> None:
        self._connection = None
        self._reader_task = None
        self._session.connection_locked = False

        logger.warning(f"Connection closed: {reason}")
        self._stream.connection_lost(reason)
        await self._fire("close", reason)

        if arm_retry:
            self._arm_retry()

    async def _handle_error(self, error: Exception) -> None:
        self._session.connection_locked = False
        await self._fire("error", error)
        self._arm_retry()

    def _arm_retry(self) -> None:
        if self._closing or self.is_reconnecting:
            return
        logger.info(f"Reconnecting every {self.reconnect_interval:.1f}s")
        self._retry_task = asyncio.create_task(self._retry_loop())

    async def _retry_loop(self) -> None:
        while not self._closing and not self.is_connected:
            await asyncio.sleep(self.reconnect_interval)
            if self._closing or self.is_connected:
                break
            if self._session.connection_locked:
                continue
            await self._attempt()

    async def reconnect(self) -> None:
        """Drop the current connection, if any, and open a new one now."""
        self._closing = False

        connection = self._connection
        if connection is not None:
            reader_task = self._reader_task
            self._connection = None
            if reader_task is not None:
                reader_task.cancel()
                try:
                    await reader_task
                except asyncio.CancelledError:
                    pass
            await connection.close()
            await self._handle_close("reconnect requested", arm_retry=False)

        if not self._session.connection_locked:
            await self._attempt()

    async def close(self) -> None:
        """Close the connection for good; no further reconnects."""
        self._closing = True

        retry_task, self._retry_task = self._retry_task, None
        if retry_task is not None and retry_task is not asyncio.current_task():
            retry_task.cancel()
            try:
                await retry_task
            except asyncio.CancelledError:
                pass

        connection, self._connection = self._connection, None
        reader_task, self._reader_task = self._reader_task, None
        if reader_task is not None:
            reader_task.cancel()
            try:
                await reader_task
            except asyncio.CancelledError:
                pass

        self._session.connection_locked = False

        if connection is not None:
            await connection.close()
            logger.info("Connection closed by client")
            self._stream.connection_lost("session closed")
            await self._fire("close", "session closed")

    # =========================================================================
    # I/O
    # =========================================================================

    async def send(self, payload: str) -> None:
        """
        Write one text frame to the terminal.

        Raises:
            TransportError: If not connected or the write fails.
        """
        connection = self._connection
        if connection is None:
            raise TransportError("Terminal is not connected")

        logger.debug(f"TX: {payload}")
        try:
            await connection.send(payload)
        except ConnectionClosed as e:
            raise TransportError(f"Send failed: {e}") from e

    def subscribe(self) -> MessageSubscription:
        """Subscribe to inbound frames, across reconnects."""
        return self._stream.subscribe()
