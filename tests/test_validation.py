"""Tests for boundary validation and form parsing."""

import pytest

from storefront_orders.errors import MalformedPayload, ValidationFailed
from storefront_orders.models import OrderDocument, OrderItemDocument, ShippingAddress
from storefront_orders.schemas import CreateOrderRequest, InvoiceRequest, StatusTransitionRequest, UpdateOrderRequest
from storefront_orders.services.validation import (
    decode_json_field,
    parse_order_form,
    require_valid,
    validate_payload,
)

from conftest import order_payload


def update_form(**overrides):
    form = {
        "id": "o1",
        "customer_name": "Ada Lovelace",
        "customer_email": "ada@example.com",
        "status": "PENDING",
        "items": [
            {"product_id": "p1", "product_name": "Widget", "quantity": 1, "price": 10, "total": 10}
        ],
        "subtotal": 10,
        "tax": 0,
        "shipping": 0,
        "total": 10,
        "shipping_address": {
            "full_name": "Ada Lovelace",
            "address_line1": "1 Analytical St",
            "city": "London",
            "state": "Greater London",
            "postal_code": "N1",
            "country": "UK",
        },
        "payment_method": "CARD",
        "payment_status": "PENDING",
    }
    form.update(overrides)
    return form


class TestValidatePayload:
    def test_valid_order_payload(self):
        outcome = validate_payload(CreateOrderRequest, order_payload())
        assert outcome.ok
        assert outcome.value.total == 1000
        assert outcome.value.status.value == "PENDING"

    def test_errors_are_keyed_by_field(self):
        outcome = validate_payload(CreateOrderRequest, order_payload(items=[], total=-1))
        assert not outcome.ok
        assert set(outcome.errors) == {"items", "total"}

    def test_quantity_bounds(self):
        too_many = order_payload(items=[{"product_id": "p1", "quantity": 1000, "price": 1}])
        none = order_payload(items=[{"product_id": "p1", "quantity": 0, "price": 1}])
        assert "items" in validate_payload(CreateOrderRequest, too_many).errors
        assert "items" in validate_payload(CreateOrderRequest, none).errors

    def test_invalid_email(self):
        outcome = validate_payload(UpdateOrderRequest, update_form(customer_email="not-an-email"))
        assert list(outcome.errors) == ["customer_email"]

    def test_unknown_status_rejected(self):
        outcome = validate_payload(UpdateOrderRequest, update_form(status="LOST"))
        assert "status" in outcome.errors

    def test_long_notes_rejected(self):
        outcome = validate_payload(UpdateOrderRequest, update_form(notes="x" * 1001))
        assert "notes" in outcome.errors

    def test_due_date_must_follow_invoice_date(self):
        outcome = validate_payload(
            InvoiceRequest,
            {
                "invoice_number": "INV-1",
                "order_number": "ORD-1",
                "invoice_date": "2024-03-10T00:00:00Z",
                "due_date": "2024-03-01T00:00:00Z",
                "customer": {"name": "Ada"},
                "items": [{"description": "Widget", "quantity": 1, "unit_price": 5, "total": 5}],
                "subtotal": 5,
                "total": 5,
            },
        )
        assert outcome.errors == {"due_date": ["Due date must be after invoice date"]}

    def test_status_transition_request(self):
        ok = validate_payload(
            StatusTransitionRequest, {"order_id": "o1", "from_status": "PENDING", "to_status": "PROCESSING"}
        )
        assert ok.ok
        bad = validate_payload(
            StatusTransitionRequest,
            {"order_id": "", "from_status": "PENDING", "to_status": "LOST", "reason": "x" * 501},
        )
        assert set(bad.errors) == {"order_id", "to_status", "reason"}

    def test_require_valid_raises(self):
        with pytest.raises(ValidationFailed) as exc_info:
            require_valid(CreateOrderRequest, {"items": []})
        assert "items" in exc_info.value.errors
        assert exc_info.value.status_code == 400


class TestFormParsing:
    def test_json_text_is_decoded(self):
        assert decode_json_field({"items": '[{"a": 1}]'}, "items") == [{"a": 1}]

    def test_structured_value_passes_through(self):
        assert decode_json_field({"items": [1, 2]}, "items") == [1, 2]

    def test_missing_field_uses_default(self):
        assert decode_json_field({}, "items", default=[]) == []

    def test_malformed_json_raises(self):
        with pytest.raises(MalformedPayload) as exc_info:
            decode_json_field({"items": "[{oops"}, "items")
        assert exc_info.value.field == "items"
        assert "Malformed JSON in field 'items'" in exc_info.value.message

    def test_status_defaults_to_stored_values(self):
        data = parse_order_form({"customer_name": "Ada"}, {"status": "SHIPPED", "payment_status": "PAID"})
        assert data["status"] == "SHIPPED"
        assert data["payment_status"] == "PAID"
        assert data["items"] == []

    def test_status_is_normalized(self):
        data = parse_order_form({"status": " delivered "}, {"status": "SHIPPED", "payment_status": "PAID"})
        assert data["status"] == "DELIVERED"

    def test_blank_optional_fields_become_none(self):
        data = parse_order_form(
            {"notes": "", "tracking_number": "  ", "customer_id": ""},
            {"status": "PENDING", "payment_status": "PENDING"},
        )
        assert data["notes"] is None
        assert data["tracking_number"] is None
        assert data["customer_id"] is None

    def test_parsed_form_validates(self):
        form = update_form(
            items='[{"product_id": "p1", "product_name": "Widget", "quantity": "2", "price": "10", "total": 20}]',
            subtotal="20",
            total="20",
        )
        data = parse_order_form(form, {"status": "PENDING", "payment_status": "PENDING"})
        data["id"] = "o1"
        request = require_valid(UpdateOrderRequest, data)
        assert request.items[0].quantity == 2
        assert request.subtotal == 20.0


def test_settings_carry_no_unused_knobs(settings):
    fields = set(type(settings).model_fields)
    assert {"rate_limit_window_seconds", "rate_limit_max_requests", "enforce_stock_levels"} <= fields
    assert not fields & {"debug", "default_page_size", "max_page_size"}


def test_order_document_omits_unset_idempotency_key():
    order = OrderDocument(
        order_number="ORD-KEYLESS1",
        items=[OrderItemDocument(product_id="p1", product_name="Widget", quantity=1, price=500, total=500)],
        shipping_address=ShippingAddress(full_name="Ada Lovelace"),
        subtotal=500,
        total=500,
    )
    assert "idempotency_key" not in order.to_document()

    keyed = order.model_copy(update={"idempotency_key": "submit-1"})
    assert keyed.to_document()["idempotency_key"] == "submit-1"
