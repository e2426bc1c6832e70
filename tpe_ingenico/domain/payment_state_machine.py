"""
Payment State Machine - Tracks the adapter lifecycle.

idle --begin_payment--> payment_in_progress --end_payment--> idle.
Overlapping payments are rejected while one is outstanding.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..core.exceptions import StateError
from ..core.value_objects import PaymentState
from ..loggers import logger


StateChangeCallback = Callable[[PaymentState, PaymentState], Awaitable[None]]


# =============================================================================
# Session State
# =============================================================================


@dataclass
class SessionState:
    """
    Mutable state shared by one terminal session.

    Attributes:
        current_state: Payment lifecycle state, mutated only through
            PaymentStateMachine.
        connection_locked: True while a connection attempt or an open
            session exists, mutated only by the transport session.
        pending_correlation_id: Handle of the in-flight payment.
    """

    current_state: PaymentState = PaymentState.IDLE
    connection_locked: bool = False
    pending_correlation_id: Optional[str] = None

    def reset(self) -> None:
        """Reset the payment part of the state."""
        self.current_state = PaymentState.IDLE
        self.pending_correlation_id = None


# =============================================================================
# Payment State Machine
# =============================================================================


class PaymentStateMachine:
    """
    State machine gating payment admission.

    Exposes current_state as a read-only projection; the correlator is
    the only caller of begin_payment/end_payment.
    """

    def __init__(self, session: Optional[SessionState] = None) -> None:
        self._session = session or SessionState()
        self._lock = asyncio.Lock()
        self._on_state_change: Optional[StateChangeCallback] = None

    @property
    def session(self) -> SessionState:
        """Get the underlying session state."""
        return self._session

    @property
    def current_state(self) -> PaymentState:
        """Get the current payment state."""
        return self._session.current_state

    @property
    def pending_correlation_id(self) -> Optional[str]:
        """Get the correlation id of the in-flight payment."""
        return self._session.pending_correlation_id

    @property
    def is_idle(self) -> bool:
        """Check if a new payment can be admitted."""
        return self._session.current_state is PaymentState.IDLE

    def set_on_state_change(self, callback: StateChangeCallback) -> None:
        """Set async callback(previous, current) for state transitions."""
        self._on_state_change = callback

    def ensure_idle(self) -> None:
        """
        Raise if a payment cannot be admitted now.

        Raises:
            StateError: If the adapter is not idle.
        """
        if not self.is_idle:
            raise StateError("busy", state=self._session.current_state.value)

    async def begin_payment(self, correlation_id: str) -> None:
        """
        Enter payment_in_progress and claim the pending slot.

        Args:
            correlation_id: Handle of the payment being admitted.

        Raises:
            StateError: If another payment is outstanding.
        """
        async with self._lock:
            self.ensure_idle()
            if self._session.pending_correlation_id is not None:
                raise StateError("busy", state=self._session.current_state.value)

            self._session.pending_correlation_id = correlation_id
            await self._transition(PaymentState.PAYMENT_IN_PROGRESS)

    async def end_payment(self, correlation_id: str) -> bool:
        """
        Release the pending slot and return to idle.

        Args:
            correlation_id: Handle of the payment being released.

        Returns:
            False if the slot belongs to another payment (nothing changed).
        """
        async with self._lock:
            if self._session.pending_correlation_id != correlation_id:
                logger.warning(
                    f"Ignoring release of {correlation_id}, "
                    f"pending is {self._session.pending_correlation_id}"
                )
                return False

            self._session.pending_correlation_id = None
            await self._transition(PaymentState.IDLE)
            return True

    async def _transition(self, new_state: PaymentState) -> None:
        previous = self._session.current_state
        self._session.current_state = new_state
        if previous is new_state:
            return

        logger.info(f"Payment state: {previous.value} -> {new_state.value}")

        if self._on_state_change:
            try:
                await self._on_state_change(previous, new_state)
            except Exception as e:
                logger.error(f"State change callback error: {e}")
