"""
API Facade - Unified interface for the TPE adapter.

Assembles the terminal session, state machine and correlator for one
terminal, and exposes dictionary results for the command bridge.
"""

import asyncio
from typing import Any, Mapping, Optional

from ..configs import Settings, get_settings
from ..core.exceptions import TpeError
from ..core.interfaces import StateMirror, Transport
from ..core.value_objects import PaymentState
from ..domain.payment_state_machine import PaymentStateMachine, SessionState
from ..event_system import EventConsumer, EventPublisher, EventType
from ..infrastructure.websocket_session import WebSocketSession
from ..loggers import logger
from .correlator import PaymentCorrelator


class TpeIngenicoFacade:
    """
    Facade for one payment terminal.

    Wires transport lifecycle and state changes into the event system and,
    when a state mirror is given, keeps it up to date.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[Transport] = None,
        state_mirror: Optional[StateMirror] = None,
    ) -> None:
        """
        Initialize the facade.

        Args:
            settings: Settings, defaults to get_settings().
            transport: Terminal transport, defaults to a WebSocketSession
                built from the terminal settings.
            state_mirror: Optional observer store (e.g. Redis).
        """
        self._settings = settings or get_settings()
        self._session_state = SessionState()

        # Event system
        self._event_queue: asyncio.Queue = asyncio.Queue()
        self._event_publisher = EventPublisher(self._event_queue)
        self._event_consumer = EventConsumer(self._event_queue)

        terminal = self._settings.terminal
        self._transport = transport or WebSocketSession(
            url=terminal.url,
            session=self._session_state,
            reconnect_interval=terminal.reconnect_interval,
            open_timeout=terminal.open_timeout,
        )

        self._state_machine = PaymentStateMachine(self._session_state)
        self._state_machine.set_on_state_change(self._on_state_change)

        payment = self._settings.payment
        self._correlator = PaymentCorrelator(
            self._transport,
            self._state_machine,
            response_timeout=payment.response_timeout,
            validation_mode=payment.validation_mode,
            response_policy=payment.response_policy,
        )

        self._state_mirror = state_mirror
        self._register_transport_callbacks()
        if state_mirror is not None:
            self._register_mirror_handlers(state_mirror)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def transport(self) -> Transport:
        """Get the terminal transport."""
        return self._transport

    @property
    def correlator(self) -> PaymentCorrelator:
        """Get the request/response correlator."""
        return self._correlator

    @property
    def event_consumer(self) -> EventConsumer:
        """Get the event consumer, to register extra handlers."""
        return self._event_consumer

    @property
    def current_state(self) -> PaymentState:
        """Get the current payment state."""
        return self._state_machine.current_state

    # =========================================================================
    # Wiring
    # =========================================================================

    def _register_transport_callbacks(self) -> None:
        self._transport.on_open(self._on_open)
        self._transport.on_close(self._on_close)
        self._transport.on_error(self._on_error)

    def _register_mirror_handlers(self, mirror: StateMirror) -> None:
        async def mirror_state(event: dict[str, Any]) -> None:
            await mirror.set_state(event["current"])

        async def mirror_open(event: dict[str, Any]) -> None:
            await mirror.set_connected(True)

        async def mirror_close(event: dict[str, Any]) -> None:
            await mirror.set_connected(False)

        async def mirror_outcome(event: dict[str, Any]) -> None:
            await mirror.set_last_outcome(event["outcome"])

        self._event_consumer.register_handler(EventType.STATE_CHANGED, mirror_state)
        self._event_consumer.register_handler(EventType.OPEN, mirror_open)
        self._event_consumer.register_handler(EventType.CLOSE, mirror_close)
        self._event_consumer.register_handler(EventType.PAYMENT_COMPLETED, mirror_outcome)
        self._event_consumer.register_handler(EventType.PAYMENT_FAILED, mirror_outcome)

    async def _on_open(self) -> None:
        await self._event_publisher.publish(EventType.OPEN)

    async def _on_close(self, reason: str) -> None:
        await self._event_publisher.publish(EventType.CLOSE, reason=reason)

    async def _on_error(self, error: Exception) -> None:
        await self._event_publisher.publish(EventType.ERROR, error=str(error))

    async def _on_state_change(
        self,
        previous: PaymentState,
        current: PaymentState,
    ) -> None:
        await self._event_publisher.publish(
            EventType.STATE_CHANGED,
            previous=previous.value,
            current=current.value,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> dict[str, Any]:
        """
        Start event consumption and connect to the terminal.

        A failed connection is not an error: the session keeps retrying.

        Returns:
            Dictionary with the connection status.
        """
        if self._state_mirror is not None:
            await self._state_mirror.reset(self.current_state.value)

        await self._event_consumer.start_consuming()
        connected = await self._transport.connect()

        if connected:
            return {"success": True, "message": "Terminal connected"}
        return {
            "success": False,
            "message": "Terminal unreachable, reconnecting in background",
        }

    async def shutdown(self) -> None:
        """Abort any pending payment, close the link and stop events."""
        try:
            self._correlator.abort()
            await self._transport.close()
            await self._event_consumer.stop_consuming()
            logger.info("TPE adapter shut down successfully")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    # =========================================================================
    # Payment Operations
    # =========================================================================

    async def payment_request(self, payment: Mapping[str, Any]) -> dict[str, Any]:
        """
        Submit a payment and wait for the terminal's answer.

        Args:
            payment: Payment request in its dictionary form.

        Returns:
            Dictionary with success status, message and response data,
            or the error code and details on failure.
        """
        try:
            response = await self._correlator.submit_payment(payment)
        except TpeError as e:
            outcome = {"success": False, **e.to_dict()}
            await self._event_publisher.publish(EventType.PAYMENT_FAILED, outcome=outcome)
            return outcome

        outcome = {
            "success": True,
            "message": "Payment completed",
            "data": response.to_dict(),
        }
        await self._event_publisher.publish(EventType.PAYMENT_COMPLETED, outcome=outcome)
        return outcome

    async def abort_payment(self) -> dict[str, Any]:
        """Abort the in-flight payment."""
        if self._correlator.abort():
            return {"success": True, "message": "Payment aborted"}
        return {"success": False, "message": "No payment in progress"}

    async def get_state(self) -> dict[str, Any]:
        """Get the payment state and connection status."""
        return {
            "success": True,
            "message": "OK",
            "data": {
                "current_state": self.current_state.value,
                "connected": self._transport.is_connected,
                "connection_locked": self._session_state.connection_locked,
            },
        }

    async def reconnect(self) -> dict[str, Any]:
        """Force a reconnection to the terminal."""
        await self._transport.reconnect()
        if self._transport.is_connected:
            return {"success": True, "message": "Terminal reconnected"}
        return {"success": False, "message": "Reconnection failed, retrying"}
