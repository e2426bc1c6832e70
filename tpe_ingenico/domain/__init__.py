"""
Domain layer - Payment rules and state.

Contains:
- Request/response validation
- Session state and payment state machine
"""

from .payment_state_machine import (
    PaymentStateMachine,
    SessionState,
)
from .validator import (
    validate_incoming,
    validate_outgoing,
)


__all__ = [
    # Payment State
    "PaymentStateMachine",
    "SessionState",
    # Validation
    "validate_incoming",
    "validate_outgoing",
]
