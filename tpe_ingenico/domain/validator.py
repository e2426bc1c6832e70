"""
Payment Validator - structural checks on both sides of the terminal link.

Pure functions with no shared state: the same input always yields the
same result. Outgoing requests fail fast with ValidationError on the
first violated rule; inbound frames are classified into a
ValidationOutcome so that noise and real failures stay distinguishable.
"""

import json
import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Final, Union

from ..core.exceptions import ParseError, ValidationError
from ..core.value_objects import (
    PaymentRequest,
    PaymentResponse,
    ResponsePolicy,
    ValidationMode,
    ValidationOutcome,
)


MANDATORY_FIELDS: Final[tuple[str, ...]] = ("id", "number", "total_ttc", "items")
STRICT_MANDATORY_FIELDS: Final[tuple[str, ...]] = MANDATORY_FIELDS + ("delivery",)
RESPONSE_FIELDS: Final[tuple[str, ...]] = ("checkout_state", "checkout_details")

_DECIMAL_OPTIONALS: Final[tuple[str, ...]] = ("total_ht", "tva1", "tva2", "tva3")
_STRING_OPTIONALS: Final[tuple[str, ...]] = ("create_at", "checkout_state", "delivery")
_BOOL_OPTIONALS: Final[tuple[str, ...]] = ("confirmed", "reseted")


# =============================================================================
# Type helpers
# =============================================================================


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return False


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


# =============================================================================
# Outgoing requests
# =============================================================================


def _check_item(item: Any, path: str) -> None:
    if not isinstance(item, Mapping):
        raise ValidationError(f"{path} is not an object", field=path)

    for name in ("name", "total_ttc", "quantity"):
        if name not in item:
            raise ValidationError(f"mandatory field is missing: {path}.{name}", field=f"{path}.{name}")

    if not isinstance(item["name"], str):
        raise ValidationError(f"{path}.name must be a string", field=f"{path}.name")
    if not _is_number(item["total_ttc"]):
        raise ValidationError(f"{path}.total_ttc must be a number", field=f"{path}.total_ttc")
    if not _is_int(item["quantity"]):
        raise ValidationError(f"{path}.quantity must be an integer", field=f"{path}.quantity")

    extras = item.get("extras")
    if extras is not None:
        if not _is_sequence(extras):
            raise ValidationError(f"{path}.extras must be a list", field=f"{path}.extras")
        for index, extra in enumerate(extras):
            if not isinstance(extra, Mapping) or not isinstance(extra.get("name"), str):
                raise ValidationError(
                    f"{path}.extras[{index}].name must be a string",
                    field=f"{path}.extras[{index}]",
                )

    children = item.get("items")
    if children is not None:
        if not _is_sequence(children):
            raise ValidationError(f"{path}.items must be a list", field=f"{path}.items")
        for index, child in enumerate(children):
            _check_item(child, f"{path}.items[{index}]")


def _check_optionals(data: Mapping) -> None:
    for name in _DECIMAL_OPTIONALS:
        if data.get(name) is not None and not _is_number(data[name]):
            raise ValidationError(f"{name} must be a number", field=name)
    for name in _STRING_OPTIONALS:
        if data.get(name) is not None and not isinstance(data[name], str):
            raise ValidationError(f"{name} must be a string", field=name)
    for name in _BOOL_OPTIONALS:
        if data.get(name) is not None and not isinstance(data[name], bool):
            raise ValidationError(f"{name} must be a boolean", field=name)


def validate_outgoing(
    request: Union[PaymentRequest, Mapping],
    mode: ValidationMode = ValidationMode.LENIENT,
) -> PaymentRequest:
    """
    Check a payment request before it is sent to the terminal.

    Args:
        request: Request as a PaymentRequest or its dictionary form.
        mode: LENIENT checks mandatory fields; STRICT also requires
            ``delivery`` and type-checks the optional fields.

    Returns:
        The validated request as an immutable PaymentRequest. Its wire
        form is the caller's dictionary, unknown keys included.

    Raises:
        ValidationError: On the first violated rule.
    """
    if isinstance(request, PaymentRequest):
        payload: Mapping = request.payload if request.payload is not None else request.to_dict()
    elif isinstance(request, Mapping):
        payload = request
    else:
        raise ValidationError("payment request is not an object")

    if "action" not in payload:
        raise ValidationError("attribute action is missing", field="action")
    if "data" not in payload:
        raise ValidationError("attribute data is missing", field="data")
    if not _is_int(payload["action"]):
        raise ValidationError("action must be an integer", field="action")

    data = payload["data"]
    if not isinstance(data, Mapping):
        raise ValidationError("data is not an object", field="data")

    mandatory = STRICT_MANDATORY_FIELDS if mode is ValidationMode.STRICT else MANDATORY_FIELDS
    for name in mandatory:
        if name not in data or data[name] is None:
            raise ValidationError(f"mandatory field is missing: {name}", field=name)

    if not _is_int(data["id"]):
        raise ValidationError("id must be an integer", field="id")
    if not isinstance(data["number"], str):
        raise ValidationError("number must be a string", field="number")
    if not _is_number(data["total_ttc"]):
        raise ValidationError("total_ttc must be a number", field="total_ttc")
    if not _is_sequence(data["items"]):
        raise ValidationError("items must be a list", field="items")

    if data["id"] <= 0:
        raise ValidationError("id can't be null", field="id")
    if data["total_ttc"] <= 0:
        raise ValidationError("total_ttc can't be null", field="total_ttc")
    if len(data["items"]) <= 0:
        raise ValidationError("items can't be null", field="items")

    for index, item in enumerate(data["items"]):
        _check_item(item, f"items[{index}]")

    if mode is ValidationMode.STRICT:
        _check_optionals(data)

    return PaymentRequest.from_dict(dict(payload))


# =============================================================================
# Incoming responses
# =============================================================================


def validate_incoming(
    raw: Union[str, bytes],
    policy: ResponsePolicy = ResponsePolicy.IGNORE_AND_WAIT,
) -> ValidationOutcome:
    """
    Classify one inbound frame.

    Args:
        raw: Raw text (or binary) frame from the terminal.
        policy: IGNORE_AND_WAIT turns malformed or incomplete frames into
            PENDING; FAIL_ON_MALFORMED turns them into ERROR.

    Returns:
        MATCH with the parsed response, PENDING or ERROR.
    """

    def reject(error: Exception) -> ValidationOutcome:
        if policy is ResponsePolicy.FAIL_ON_MALFORMED:
            return ValidationOutcome.failed(error)
        return ValidationOutcome.pending(str(error))

    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        text = raw.decode("utf-8", "replace") if isinstance(raw, bytes) else str(raw)
        return reject(ParseError(f"Parsing error: {e}", payload=text))

    if not isinstance(payload, dict):
        return reject(ParseError("payment response is not an object"))

    for name in RESPONSE_FIELDS:
        if name not in payload:
            return reject(ValidationError(f"response field is missing: {name}", field=name))

    return ValidationOutcome.match(PaymentResponse.from_dict(payload))
