"""
Unit tests for payment request and response validation.
"""

import json
from decimal import Decimal

import pytest

from tpe_ingenico.core.exceptions import ParseError, ValidationError
from tpe_ingenico.core.value_objects import (
    Item,
    OutcomeStatus,
    PaymentData,
    PaymentRequest,
    ResponsePolicy,
    ValidationMode,
)
from tpe_ingenico.domain.validator import validate_incoming, validate_outgoing


# =============================================================================
# Outgoing Request Tests
# =============================================================================


class TestValidateOutgoing:
    """Tests for validate_outgoing."""

    def test_valid_request(self, payment):
        """Test a minimal valid request is accepted."""
        request = validate_outgoing(payment)
        assert isinstance(request, PaymentRequest)
        assert request.action == 1
        assert request.data.id == 42
        assert request.data.total_ttc == Decimal("19.9")
        assert request.data.items[0].name == "Coffee"

    def test_accepts_payment_request_instance(self, payment):
        """Test a PaymentRequest is validated through its dict form."""
        request = PaymentRequest.from_dict(payment)
        assert validate_outgoing(request) == request

    def test_validation_is_idempotent(self, payment):
        """Test validating the same object twice gives the same result."""
        assert validate_outgoing(payment) == validate_outgoing(payment)

        payment["data"]["items"] = []
        messages = []
        for _ in range(2):
            with pytest.raises(ValidationError) as exc_info:
                validate_outgoing(payment)
            messages.append(exc_info.value.message)
        assert messages[0] == messages[1]

    def test_not_an_object(self):
        """Test non-mapping requests are rejected."""
        with pytest.raises(ValidationError, match="not an object"):
            validate_outgoing("payment")

    def test_action_missing(self, payment):
        """Test missing action is rejected."""
        del payment["action"]
        with pytest.raises(ValidationError, match="attribute action is missing"):
            validate_outgoing(payment)

    def test_data_missing(self, payment):
        """Test missing data is rejected."""
        del payment["data"]
        with pytest.raises(ValidationError, match="attribute data is missing"):
            validate_outgoing(payment)

    @pytest.mark.parametrize("field", ["id", "number", "total_ttc", "items"])
    def test_mandatory_field_missing(self, payment, field):
        """Test each mandatory field is required."""
        del payment["data"][field]
        with pytest.raises(ValidationError, match="mandatory field is missing") as exc_info:
            validate_outgoing(payment)
        assert exc_info.value.field == field

    def test_fail_fast_reports_first_rule(self, payment):
        """Test only the first violated rule is reported."""
        del payment["data"]["id"]
        payment["data"]["items"] = []
        with pytest.raises(ValidationError) as exc_info:
            validate_outgoing(payment)
        assert exc_info.value.field == "id"

    @pytest.mark.parametrize("value", [0, -3])
    def test_id_must_be_positive(self, payment, value):
        """Test non-positive id is rejected."""
        payment["data"]["id"] = value
        with pytest.raises(ValidationError, match="id can't be null"):
            validate_outgoing(payment)

    def test_total_ttc_must_be_positive(self, payment):
        """Test non-positive total is rejected."""
        payment["data"]["total_ttc"] = 0
        with pytest.raises(ValidationError, match="total_ttc can't be null"):
            validate_outgoing(payment)

    def test_items_must_not_be_empty(self, payment):
        """Test empty item list is rejected."""
        payment["data"]["items"] = []
        with pytest.raises(ValidationError, match="items can't be null"):
            validate_outgoing(payment)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("id", "42"),
            ("id", True),
            ("number", 1),
            ("total_ttc", "19.90"),
            ("total_ttc", float("nan")),
            ("items", "Coffee"),
        ],
    )
    def test_mandatory_field_types(self, payment, field, value):
        """Test mandatory fields are type-checked."""
        payment["data"][field] = value
        with pytest.raises(ValidationError, match="must be"):
            validate_outgoing(payment)

    def test_action_must_be_integer(self, payment):
        """Test action opcode type."""
        payment["action"] = "1"
        with pytest.raises(ValidationError, match="action must be an integer"):
            validate_outgoing(payment)

    def test_item_fields_checked(self, payment):
        """Test line items are checked."""
        del payment["data"]["items"][0]["quantity"]
        with pytest.raises(ValidationError, match=r"items\[0\]\.quantity"):
            validate_outgoing(payment)

    def test_nested_items_and_extras(self, payment):
        """Test composite items with extras are accepted and kept."""
        payment["data"]["items"] = [
            {
                "name": "Menu",
                "total_ttc": 9.5,
                "quantity": 1,
                "extras": [{"name": "No ice"}],
                "items": [
                    {"name": "Burger", "total_ttc": 0, "quantity": 1},
                    {"name": "Soda", "total_ttc": 0, "quantity": 1},
                ],
            }
        ]
        request = validate_outgoing(payment)
        menu = request.data.items[0]
        assert menu.extras[0].name == "No ice"
        assert [i.name for i in menu.items] == ["Burger", "Soda"]
        assert request.to_dict()["data"]["items"][0]["items"][1]["name"] == "Soda"

    def test_nested_item_errors_have_path(self, payment):
        """Test nested item errors point at the offending item."""
        payment["data"]["items"][0]["items"] = [{"name": "Soda", "quantity": 1}]
        with pytest.raises(ValidationError, match=r"items\[0\]\.items\[0\]\.total_ttc"):
            validate_outgoing(payment)

    def test_lenient_does_not_require_delivery(self, payment):
        """Test delivery is optional in lenient mode."""
        assert validate_outgoing(payment, ValidationMode.LENIENT).data.delivery is None

    def test_strict_requires_delivery(self, payment):
        """Test delivery is mandatory in strict mode."""
        with pytest.raises(ValidationError, match="mandatory field is missing: delivery"):
            validate_outgoing(payment, ValidationMode.STRICT)

        payment["data"]["delivery"] = "on_site"
        assert validate_outgoing(payment, ValidationMode.STRICT).data.delivery == "on_site"

    def test_strict_checks_optional_types(self, payment):
        """Test strict mode type-checks optional fields."""
        payment["data"]["delivery"] = "on_site"
        payment["data"]["confirmed"] = "yes"
        with pytest.raises(ValidationError, match="confirmed must be a boolean"):
            validate_outgoing(payment, ValidationMode.STRICT)

        # Lenient lets it through untouched
        request = validate_outgoing(payment, ValidationMode.LENIENT)
        assert request.data.confirmed == "yes"

    def test_optional_fields_round_trip_to_wire(self, payment):
        """Test set optional fields reach the wire and unset ones do not."""
        payment["data"]["tva1"] = 1.5
        payment["data"]["reseted"] = False
        wire = json.loads(validate_outgoing(payment).to_json())
        assert wire["data"]["tva1"] == 1.5
        assert wire["data"]["reseted"] is False
        assert "tva2" not in wire["data"]
        assert wire["data"]["total_ttc"] == 19.9

    def test_unknown_keys_kept_for_wire(self, payment):
        """Test keys outside the known schema are kept but not typed."""
        payment["data"]["table"] = 7
        payment["data"]["items"][0]["sku"] = "C-01"

        request = validate_outgoing(payment)

        assert json.loads(request.to_json()) == payment
        assert "table" not in request.to_dict()["data"]

    def test_caller_changes_after_validation_not_sent(self, payment):
        """Test the wire form is a copy taken at validation time."""
        request = validate_outgoing(payment)
        payment["data"]["items"][0]["name"] = "Tea"

        assert json.loads(request.to_json())["data"]["items"][0]["name"] == "Coffee"

    def test_decimal_amounts_on_wire(self):
        """Test Decimals serialize as integers when whole, exact floats otherwise."""
        request = PaymentRequest(
            action=1,
            data=PaymentData(
                id=1,
                number="A1",
                total_ttc=Decimal("20.00"),
                items=(Item(name="Coffee", total_ttc=Decimal("19.90"), quantity=1),),
            ),
        )

        wire = json.loads(request.to_json())

        assert wire["data"]["total_ttc"] == 20
        assert isinstance(wire["data"]["total_ttc"], int)
        assert wire["data"]["items"][0]["total_ttc"] == 19.9


# =============================================================================
# Incoming Response Tests
# =============================================================================


class TestValidateIncoming:
    """Tests for validate_incoming."""

    def test_valid_response(self):
        """Test a complete response matches."""
        outcome = validate_incoming('{"checkout_state": "paid", "checkout_details": "ok", "ref": 7}')
        assert outcome.status is OutcomeStatus.MATCH
        assert outcome.response.checkout_state == "paid"
        assert outcome.response.checkout_details == "ok"
        assert outcome.response.extra == {"ref": 7}

    def test_bytes_frame(self):
        """Test binary frames are decoded."""
        outcome = validate_incoming(b'{"checkout_state": "paid", "checkout_details": "ok"}')
        assert outcome.is_match

    @pytest.mark.parametrize(
        "raw",
        [
            '{"checkout_state": "paid"}',
            '{"checkout_details": "ok"}',
            '{"type": "heartbeat"}',
        ],
    )
    def test_incomplete_response_is_pending(self, raw):
        """Test frames missing a response field are ignored by default."""
        outcome = validate_incoming(raw)
        assert outcome.is_pending
        assert "response field is missing" in outcome.reason

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"paid"', ""])
    def test_malformed_frame_is_pending(self, raw):
        """Test malformed frames are ignored by default."""
        assert validate_incoming(raw).is_pending

    def test_malformed_frame_fails_under_strict_policy(self):
        """Test malformed frames fail the call with fail_on_malformed."""
        outcome = validate_incoming("not json", ResponsePolicy.FAIL_ON_MALFORMED)
        assert outcome.status is OutcomeStatus.ERROR
        assert isinstance(outcome.error, ParseError)

    def test_incomplete_response_fails_under_strict_policy(self):
        """Test incomplete responses fail the call with fail_on_malformed."""
        outcome = validate_incoming('{"checkout_state": "paid"}', ResponsePolicy.FAIL_ON_MALFORMED)
        assert outcome.status is OutcomeStatus.ERROR
        assert isinstance(outcome.error, ValidationError)
        assert outcome.error.field == "checkout_details"

    def test_incoming_validation_is_idempotent(self):
        """Test the same frame always gives the same outcome."""
        raw = '{"checkout_state": "paid", "checkout_details": "ok"}'
        assert validate_incoming(raw) == validate_incoming(raw)
