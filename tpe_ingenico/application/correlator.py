"""
Request/Response Correlator - one payment in flight, one outcome.

Turns the terminal's message stream into a single-shot call:

    submit_payment(request)
        -> StateError          adapter busy
        -> ValidationError     request rejected before any I/O
        -> TransportError      send failed or link dropped mid-call
        -> PaymentTimeoutError no matching response in time
        -> PaymentAbortedError abort() called
        -> PaymentResponse     first frame that validates as a response
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from ..configs import PAYMENT_TIMEOUT_MS
from ..core.exceptions import PaymentAbortedError, PaymentTimeoutError
from ..core.interfaces import Transport
from ..core.message_stream import MessageSubscription
from ..core.value_objects import (
    PaymentRequest,
    PaymentResponse,
    PaymentState,
    ResponsePolicy,
    ValidationMode,
)
from ..domain.payment_state_machine import PaymentStateMachine
from ..domain.validator import validate_incoming, validate_outgoing
from ..loggers import logger


@dataclass
class PendingPayment:
    """
    The single in-flight payment.

    Attributes:
        correlation_id: Opaque handle of the call.
        request: Validated request, immutable while in flight.
        started_at: Monotonic time the request was admitted.
        waiter: Task awaiting the response, set once the frame is sent.
        aborted: Set by abort().
    """

    correlation_id: str
    request: PaymentRequest
    started_at: float = field(default_factory=time.monotonic)
    waiter: Optional[asyncio.Task] = None
    aborted: bool = False


class PaymentCorrelator:
    """
    Bridges one outgoing payment request to its terminal response.

    Admission is serialized by the state machine: a second call while
    one is outstanding fails with StateError and has no side effects.
    """

    def __init__(
        self,
        transport: Transport,
        state_machine: Optional[PaymentStateMachine] = None,
        response_timeout: float = PAYMENT_TIMEOUT_MS / 1000,
        validation_mode: ValidationMode = ValidationMode.LENIENT,
        response_policy: ResponsePolicy = ResponsePolicy.IGNORE_AND_WAIT,
    ) -> None:
        """
        Initialize the correlator.

        Args:
            transport: Connection to the terminal.
            state_machine: Payment state machine, one per session.
            response_timeout: Seconds to wait for a response.
            validation_mode: Strictness of outgoing checks.
            response_policy: Handling of frames that are not responses.
        """
        self._transport = transport
        self._state_machine = state_machine or PaymentStateMachine()
        self._response_timeout = response_timeout
        self._validation_mode = validation_mode
        self._response_policy = response_policy
        self._pending: Optional[PendingPayment] = None

    @property
    def state_machine(self) -> PaymentStateMachine:
        """Get the payment state machine."""
        return self._state_machine

    @property
    def current_state(self) -> PaymentState:
        """Get the current payment state."""
        return self._state_machine.current_state

    @property
    def pending(self) -> Optional[PendingPayment]:
        """Get the in-flight payment, if any."""
        return self._pending

    async def submit_payment(
        self,
        request: Union[PaymentRequest, Mapping],
    ) -> PaymentResponse:
        """
        Send a payment to the terminal and wait for its response.

        Args:
            request: PaymentRequest or its dictionary form.

        Returns:
            The first inbound frame that validates as a payment response.

        Raises:
            StateError: If a payment is already in progress.
            ValidationError: If the request is invalid; nothing is sent.
            TransportError: If the frame cannot be sent or the link drops.
            PaymentTimeoutError: If no response arrives in time.
            PaymentAbortedError: If abort() is called meanwhile.
        """
        self._state_machine.ensure_idle()
        validated = validate_outgoing(request, self._validation_mode)

        correlation_id = uuid.uuid4().hex
        await self._state_machine.begin_payment(correlation_id)
        pending = PendingPayment(correlation_id=correlation_id, request=validated)
        self._pending = pending

        # Subscribe before sending so a fast answer is not missed
        subscription = self._transport.subscribe()
        try:
            await self._transport.send(validated.to_json())
            logger.info(
                f"Payment {validated.data.number} sent "
                f"(id={validated.data.id}, correlation={correlation_id})"
            )

            if pending.aborted:
                raise PaymentAbortedError("payment aborted")

            pending.waiter = asyncio.create_task(
                asyncio.wait_for(
                    self._await_response(subscription),
                    timeout=self._response_timeout,
                )
            )
            try:
                response = await pending.waiter
            except asyncio.TimeoutError:
                logger.error(
                    f"Payment {validated.data.number} timed out "
                    f"after {self._response_timeout:.1f}s"
                )
                raise PaymentTimeoutError(timeout=self._response_timeout) from None
            except asyncio.CancelledError:
                if pending.aborted:
                    logger.warning(f"Payment {validated.data.number} aborted")
                    raise PaymentAbortedError("payment aborted") from None
                raise

            logger.info(
                f"Payment {validated.data.number} resolved: "
                f"{response.checkout_state}"
            )
            return response
        finally:
            subscription.close()
            if self._pending is pending:
                self._pending = None
            await self._state_machine.end_payment(correlation_id)

    async def _await_response(self, subscription: MessageSubscription) -> PaymentResponse:
        while True:
            raw = await subscription.get()
            outcome = validate_incoming(raw, self._response_policy)

            if outcome.is_match:
                return outcome.response
            if outcome.is_pending:
                logger.warning(f"Ignoring terminal frame: {outcome.reason}")
                continue
            raise outcome.error

    def abort(self) -> bool:
        """
        Abort the in-flight payment.

        The pending submit_payment call ends with PaymentAbortedError.

        Returns:
            True if a payment was in flight.
        """
        pending = self._pending
        if pending is None:
            return False

        pending.aborted = True
        if pending.waiter is not None and not pending.waiter.done():
            pending.waiter.cancel()
        return True
