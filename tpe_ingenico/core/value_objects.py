"""
Value Objects for the TPE adapter.

Immutable objects that represent payment requests, terminal responses
and validation outcomes. Value objects are compared by value, not by identity.
"""

import copy
import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, auto
from typing import Any, Optional


# =============================================================================
# Enums
# =============================================================================


class PaymentState(str, Enum):
    """Lifecycle state of the adapter."""

    IDLE = "idle"
    PAYMENT_IN_PROGRESS = "payment_in_progress"
    PRINT_IN_PROGRESS = "print_in_progress"


class ValidationMode(str, Enum):
    """How strictly outgoing requests are checked."""

    LENIENT = "lenient"
    STRICT = "strict"


class ResponsePolicy(str, Enum):
    """What to do with an inbound frame that is not a payment response."""

    IGNORE_AND_WAIT = "ignore_and_wait"
    FAIL_ON_MALFORMED = "fail_on_malformed"


class OutcomeStatus(Enum):
    """Tag of an inbound validation outcome."""

    MATCH = auto()      # Frame is the resolving payment response
    PENDING = auto()    # Unrelated frame, keep waiting
    ERROR = auto()      # Frame must fail the call


def _to_decimal(value: Any) -> Any:
    # Non-numeric values pass through untouched; lenient validation lets them by
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    return Decimal(str(value))


def _json_default(value: Any) -> Any:
    # Whole amounts stay integers on the wire
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(str(value))
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


# =============================================================================
# Payment Request Value Objects
# =============================================================================


@dataclass(frozen=True)
class Extra:
    """Extra attached to a line item (e.g. a topping)."""

    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name}


@dataclass(frozen=True)
class Item:
    """
    Line item of a payment.

    Composite items (menus, bundles) carry their components in ``items``.

    Attributes:
        name: Item label.
        total_ttc: Item total including taxes.
        quantity: Number of units.
        extras: Optional extras.
        items: Optional nested items.
    """

    name: str
    total_ttc: Decimal
    quantity: int
    extras: Optional[tuple[Extra, ...]] = None
    items: Optional[tuple["Item", ...]] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Item":
        """Build an item from its wire representation."""
        extras = data.get("extras")
        items = data.get("items")
        return cls(
            name=data["name"],
            total_ttc=_to_decimal(data["total_ttc"]),
            quantity=data["quantity"],
            extras=tuple(Extra(name=e["name"]) for e in extras) if extras is not None else None,
            items=tuple(cls.from_dict(i) for i in items) if items is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire representation."""
        result: dict[str, Any] = {
            "name": self.name,
            "total_ttc": self.total_ttc,
            "quantity": self.quantity,
        }
        if self.extras is not None:
            result["extras"] = [e.to_dict() for e in self.extras]
        if self.items is not None:
            result["items"] = [i.to_dict() for i in self.items]
        return result


_DECIMAL_FIELDS = ("total_ht", "tva1", "tva2", "tva3")
_OPTIONAL_FIELDS = (
    "total_ht",
    "tva1",
    "tva2",
    "tva3",
    "create_at",
    "checkout_state",
    "delivery",
    "confirmed",
    "reseted",
)


@dataclass(frozen=True)
class PaymentData:
    """
    Payment body sent to the terminal.

    Attributes:
        id: Order identifier, strictly positive.
        number: Order number as printed on the ticket.
        total_ttc: Order total including taxes, strictly positive.
        items: Line items, never empty.
    """

    id: int
    number: str
    total_ttc: Decimal
    items: tuple[Item, ...]
    total_ht: Optional[Decimal] = None
    tva1: Optional[Decimal] = None
    tva2: Optional[Decimal] = None
    tva3: Optional[Decimal] = None
    create_at: Optional[str] = None
    checkout_state: Optional[str] = None
    delivery: Optional[str] = None
    confirmed: Optional[bool] = None
    reseted: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentData":
        """Build payment data from its wire representation."""
        optional = {}
        for name in _OPTIONAL_FIELDS:
            if name in data and data[name] is not None:
                value = data[name]
                optional[name] = _to_decimal(value) if name in _DECIMAL_FIELDS else value
        return cls(
            id=data["id"],
            number=data["number"],
            total_ttc=_to_decimal(data["total_ttc"]),
            items=tuple(Item.from_dict(i) for i in data["items"]),
            **optional,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire representation, omitting unset optional fields."""
        result: dict[str, Any] = {
            "id": self.id,
            "number": self.number,
            "total_ttc": self.total_ttc,
            "items": [i.to_dict() for i in self.items],
        }
        for name in _OPTIONAL_FIELDS:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        return result


@dataclass(frozen=True)
class PaymentRequest:
    """
    Payment request submitted by the host application.

    The typed fields give access to the known schema; ``payload`` keeps a
    copy of the caller's dictionary, which is what goes on the wire.

    Attributes:
        action: Terminal opcode.
        data: Payment body.
        payload: Caller's request as supplied, None when built directly.
    """

    action: int
    data: PaymentData
    payload: Optional[dict[str, Any]] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PaymentRequest":
        """Build a request from its wire representation."""
        return cls(
            action=payload["action"],
            data=PaymentData.from_dict(payload["data"]),
            payload=copy.deepcopy(dict(payload)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert the typed fields to a dictionary."""
        return {"action": self.action, "data": self.data.to_dict()}

    def to_json(self) -> str:
        """Serialize to a JSON text frame, unchanged from the caller's request."""
        body = self.payload if self.payload is not None else self.to_dict()
        return json.dumps(body, default=_json_default)


# =============================================================================
# Payment Response Value Objects
# =============================================================================


@dataclass(frozen=True)
class PaymentResponse:
    """
    Terminal answer to a payment request.

    Attributes:
        checkout_state: Terminal-reported outcome (e.g. ``paid``).
        checkout_details: Free-form details from the terminal.
        extra: Any other top-level fields of the frame.
    """

    checkout_state: Any
    checkout_details: Any
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PaymentResponse":
        """Build a response from a decoded frame."""
        extra = {
            k: v for k, v in payload.items()
            if k not in ("checkout_state", "checkout_details")
        }
        return cls(
            checkout_state=payload["checkout_state"],
            checkout_details=payload["checkout_details"],
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "checkout_state": self.checkout_state,
            "checkout_details": self.checkout_details,
            **self.extra,
        }


@dataclass(frozen=True)
class ValidationOutcome:
    """
    Result of checking one inbound frame.

    Attributes:
        status: MATCH, PENDING or ERROR.
        response: Parsed response when status is MATCH.
        error: Failure when status is ERROR.
        reason: Why the frame was not a match.
    """

    status: OutcomeStatus
    response: Optional[PaymentResponse] = None
    error: Optional[Exception] = None
    reason: str = ""

    @classmethod
    def match(cls, response: PaymentResponse) -> "ValidationOutcome":
        """Create an outcome for the resolving response."""
        return cls(status=OutcomeStatus.MATCH, response=response)

    @classmethod
    def pending(cls, reason: str) -> "ValidationOutcome":
        """Create an outcome for a frame to be ignored."""
        return cls(status=OutcomeStatus.PENDING, reason=reason)

    @classmethod
    def failed(cls, error: Exception) -> "ValidationOutcome":
        """Create an outcome that fails the call."""
        return cls(status=OutcomeStatus.ERROR, error=error, reason=str(error))

    @property
    def is_match(self) -> bool:
        return self.status is OutcomeStatus.MATCH

    @property
    def is_pending(self) -> bool:
        return self.status is OutcomeStatus.PENDING
