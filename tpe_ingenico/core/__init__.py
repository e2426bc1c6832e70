"""
Core module - Foundation layer with no external dependencies.

Contains:
- Exceptions
- Interfaces (ABC and Protocols)
- Value Objects
- Inbound message fan-out
"""

from .exceptions import (
    TpeError,
    ValidationError,
    ParseError,
    PaymentError,
    StateError,
    PaymentTimeoutError,
    PaymentAbortedError,
    TransportError,
    RepositoryError,
)
from .interfaces import (
    Transport,
    StateMirror,
)
from .message_stream import (
    MessageStream,
    MessageSubscription,
)
from .value_objects import (
    PaymentState,
    ValidationMode,
    ResponsePolicy,
    OutcomeStatus,
    Extra,
    Item,
    PaymentData,
    PaymentRequest,
    PaymentResponse,
    ValidationOutcome,
)


__all__ = [
    # Exceptions
    "TpeError",
    "ValidationError",
    "ParseError",
    "PaymentError",
    "StateError",
    "PaymentTimeoutError",
    "PaymentAbortedError",
    "TransportError",
    "RepositoryError",
    # Interfaces
    "Transport",
    "StateMirror",
    "MessageStream",
    "MessageSubscription",
    # Value Objects
    "PaymentState",
    "ValidationMode",
    "ResponsePolicy",
    "OutcomeStatus",
    "Extra",
    "Item",
    "PaymentData",
    "PaymentRequest",
    "PaymentResponse",
    "ValidationOutcome",
]
