"""
Custom exceptions for the TPE adapter.

Provides a hierarchy of typed exceptions so callers can tell apart
what they must fix (validation, state) from what the terminal link
caused (transport, timeout).
"""

from typing import Any, Optional


class TpeError(Exception):
    """Base exception for all TPE adapter errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            code: Optional error code for programmatic handling.
            details: Optional additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(TpeError):
    """A payment request or response failed structural checks."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.field = field
        if field:
            self.details["field"] = field


class ParseError(TpeError):
    """Inbound payload is not well-formed JSON."""

    def __init__(
        self,
        message: str,
        payload: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if payload is not None:
            self.details["payload"] = payload[:200]


# =============================================================================
# Payment Errors
# =============================================================================


class PaymentError(TpeError):
    """Base exception for payment flow errors."""

    pass


class StateError(PaymentError):
    """A payment was submitted while the terminal is busy."""

    def __init__(
        self,
        message: str = "busy",
        state: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if state:
            self.details["state"] = state


class PaymentTimeoutError(PaymentError):
    """No valid terminal response arrived in time."""

    def __init__(
        self,
        message: str = "response timeout",
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        if timeout is not None:
            self.details["timeout"] = timeout


class PaymentAbortedError(PaymentError):
    """The in-flight payment was aborted by the caller."""

    pass


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(TpeError):
    """Terminal connection is down or a frame could not be written."""

    pass


class RepositoryError(TpeError):
    """Error while mirroring state to Redis."""

    pass
