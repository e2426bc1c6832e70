"""
Client-side adapter for Ingenico payment terminals (TPE).

Submits one payment at a time over a persistent WebSocket link,
waits for the matching terminal response and keeps the link alive.
"""

from .application import PaymentCorrelator, TpeIngenicoFacade
from .core import (
    PaymentAbortedError,
    PaymentRequest,
    PaymentResponse,
    PaymentState,
    PaymentTimeoutError,
    ParseError,
    StateError,
    TpeError,
    TransportError,
    ValidationError,
)
from .infrastructure import WebSocketSession


__version__ = "0.3.0"

__all__ = [
    "PaymentCorrelator",
    "TpeIngenicoFacade",
    "WebSocketSession",
    "PaymentRequest",
    "PaymentResponse",
    "PaymentState",
    "TpeError",
    "ValidationError",
    "ParseError",
    "StateError",
    "TransportError",
    "PaymentTimeoutError",
    "PaymentAbortedError",
]
