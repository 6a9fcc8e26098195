"""Tests for the order status state machine and the admin edit path."""

import json
from datetime import timedelta

import pytest

from storefront_orders.models import OrderStatus
from storefront_orders.schemas import OrderQueryParams
from storefront_orders.services.order_lifecycle import (
    calculate_order_totals,
    is_valid_status_transition,
    update_order,
    update_order_status,
)
from storefront_orders.services.order_creation import process_order_creation
from storefront_orders.services.order_queries import list_orders

from conftest import START, insert_order, order_payload

ALLOWED = {
    "PENDING": {"PROCESSING", "CANCELLED"},
    "PROCESSING": {"SHIPPED", "CANCELLED"},
    "SHIPPED": {"DELIVERED", "CANCELLED"},
    "DELIVERED": {"COMPLETED", "REFUNDED"},
    "COMPLETED": {"REFUNDED"},
    "CANCELLED": set(),
    "REFUNDED": set(),
}

ALL_PAIRS = [(source.value, target.value) for source in OrderStatus for target in OrderStatus]


def admin_form(**overrides):
    form = {
        "customer_id": "c1",
        "customer_name": "Ada Lovelace",
        "customer_email": "ada@example.com",
        "items": json.dumps(
            [{"product_id": "p1", "product_name": "Widget", "quantity": 3, "price": 10, "total": 0}]
        ),
        "tax": "5",
        "shipping": "0",
        "discount": "0",
        "shipping_address": json.dumps(
            {
                "full_name": "Ada Lovelace",
                "address_line1": "1 Analytical St",
                "city": "London",
                "state": "Greater London",
                "postal_code": "N1",
                "country": "UK",
            }
        ),
        "payment_method": "CARD",
        "tracking_number": "TRK-1",
    }
    form.update(overrides)
    return form


@pytest.mark.parametrize("source,target", ALL_PAIRS)
def test_transition_table(source, target):
    assert is_valid_status_transition(source, target) == (target in ALLOWED[source])


def test_unknown_statuses_are_not_transitions():
    assert not is_valid_status_transition("PENDING", "LOST")
    assert not is_valid_status_transition("LOST", "PENDING")


def test_lowercase_status_accepted():
    assert is_valid_status_transition("pending", OrderStatus.PROCESSING)


def test_calculate_order_totals():
    totals = calculate_order_totals(
        [{"quantity": 3, "price": 19.99}, {"quantity": 1, "price": 0.015}], tax=4.5, shipping=2, discount=1
    )
    assert [item["total"] for item in totals["items"]] == [59.97, 0.02]
    assert totals["subtotal"] == 59.99
    assert totals["total"] == 65.49


class TestUpdateOrderStatus:
    @pytest.mark.parametrize("source,target", ALL_PAIRS)
    async def test_accepts_exactly_the_table(self, store, clock, source, target):
        payment_status = "PAID" if target == "REFUNDED" else "PENDING"
        order_id = await insert_order(store, status=source, payment_status=payment_status)

        result = await update_order_status(store, order_id, target)

        stored = await store.get_order(order_id)
        if target in ALLOWED[source]:
            assert result.success
            assert stored["status"] == target
        else:
            assert not result.success
            assert result.status_code == 409
            assert result.message == f"Invalid status transition from {source} to {target}"
            assert stored["status"] == source

    async def test_cancelled_order_cannot_ship(self, store, clock):
        order_id = await insert_order(store, status="CANCELLED")

        result = await update_order_status(store, order_id, "SHIPPED")

        assert not result.success
        assert result.errors == {"status": ["Cannot change status from CANCELLED to SHIPPED"]}
        assert (await store.get_order(order_id))["status"] == "CANCELLED"

    async def test_missing_order(self, store, clock):
        result = await update_order_status(store, "does-not-exist", "SHIPPED")
        assert not result.success
        assert result.status_code == 404
        assert result.message == "Order not found"

    async def test_unknown_target_status(self, store, clock):
        order_id = await insert_order(store, status="PENDING")
        result = await update_order_status(store, order_id, "TELEPORTED")
        assert not result.success
        assert result.message == "Invalid status transition from PENDING to TELEPORTED"

    async def test_shipping_stamps_milestone(self, store, clock):
        order_id = await insert_order(store, status="PROCESSING")

        result = await update_order_status(store, order_id, "SHIPPED")

        assert result.data["shipped_at"] == clock.now
        assert result.data["updated_at"] == clock.now
        assert result.data["delivered_at"] is None

    async def test_existing_milestone_is_not_overwritten(self, store, clock):
        earlier = START - timedelta(days=3)
        order_id = await insert_order(store, status="PROCESSING", shipped_at=earlier)

        result = await update_order_status(store, order_id, "SHIPPED")

        assert result.success
        assert result.data["shipped_at"] == earlier

    async def test_cancel_records_reason(self, store, clock):
        order_id = await insert_order(store, status="PENDING")

        result = await update_order_status(store, order_id, "CANCELLED", reason="Customer changed mind")

        assert result.data["cancel_reason"] == "Customer changed mind"
        assert result.data["cancelled_at"] == clock.now

    async def test_listing_cache_invalidated(self, store, clock):
        order_id = await insert_order(store, status="PENDING")
        query = OrderQueryParams(status="PROCESSING")
        assert (await list_orders(store, query)).pagination.total == 0

        await update_order_status(store, order_id, "PROCESSING")

        assert (await list_orders(store, query)).pagination.total == 1

    async def test_refunded_status_refunds_payment_and_restocks(self, store, clock, product):
        order_id = (await process_order_creation(store, order_payload(created_by_admin=True))).order["_id"]

        result = await update_order_status(store, order_id, "REFUNDED", reason="Returned")

        assert result.success
        assert result.message == "Order status updated to REFUNDED"
        assert result.data["payment_status"] == "REFUNDED"
        assert result.data["cancel_reason"] == "Returned"
        restocked = await store.get_product("p1")
        assert (restocked["stock"], restocked["sales"]) == (10, 0)

        again = await update_order_status(store, order_id, "REFUNDED")
        assert again.status_code == 409
        assert (await store.get_product("p1"))["stock"] == 10

    async def test_unpaid_order_cannot_move_to_refunded(self, store, clock, product):
        order_id = await insert_order(store, status="COMPLETED", payment_status="PENDING")

        result = await update_order_status(store, order_id, "REFUNDED")

        assert not result.success
        assert result.status_code == 422
        assert result.message == "Only paid orders can be refunded."
        assert (await store.get_order(order_id))["status"] == "COMPLETED"
        assert (await store.get_product("p1"))["stock"] == 10

    async def test_overlong_reason_rejected(self, store, clock):
        order_id = await insert_order(store, status="PENDING")

        result = await update_order_status(store, order_id, "CANCELLED", reason="x" * 501)

        assert not result.success
        assert result.status_code == 400
        assert "reason" in result.errors
        assert (await store.get_order(order_id))["status"] == "PENDING"


class TestUpdateOrder:
    async def test_edit_fields_and_advance_status(self, store, clock):
        order_id = await insert_order(store, status="PROCESSING")

        result = await update_order(store, order_id, admin_form(status="SHIPPED"))

        assert result.success, result.errors
        order = result.data
        assert order["status"] == "SHIPPED"
        assert order["shipped_at"] == clock.now
        assert order["items"][0]["total"] == 30
        assert order["subtotal"] == 30
        assert order["total"] == 35
        assert order["tracking_number"] == "TRK-1"
        assert order["shipping_address"]["address_line1"] == "1 Analytical St"

    async def test_status_defaults_to_stored(self, store, clock):
        order_id = await insert_order(store, status="SHIPPED", payment_status="PAID")

        result = await update_order(store, order_id, admin_form())

        assert result.success, result.errors
        assert result.data["status"] == "SHIPPED"
        assert result.data["payment_status"] == "PAID"

    async def test_transition_checked_against_stored_status(self, store, clock):
        order_id = await insert_order(store, status="PENDING")

        result = await update_order(store, order_id, admin_form(status="DELIVERED"))

        assert not result.success
        assert result.errors == {"status": ["Cannot change status from PENDING to DELIVERED"]}
        assert (await store.get_order(order_id))["status"] == "PENDING"

    async def test_validation_errors_reported_by_field(self, store, clock):
        order_id = await insert_order(store, status="PENDING")

        result = await update_order(store, order_id, admin_form(customer_email="nope"))

        assert not result.success
        assert result.status_code == 400
        assert "customer_email" in result.errors

    async def test_malformed_items_json(self, store, clock):
        order_id = await insert_order(store, status="PENDING")

        result = await update_order(store, order_id, admin_form(items="[{broken"))

        assert not result.success
        assert result.status_code == 400
        assert result.message.startswith("Malformed JSON in field 'items'")

    async def test_missing_order(self, store, clock):
        result = await update_order(store, "does-not-exist", admin_form())
        assert result.status_code == 404

    async def test_refunded_order_payment_is_frozen(self, store, clock):
        order_id = await insert_order(store, status="REFUNDED", payment_status="REFUNDED")

        result = await update_order(store, order_id, admin_form(payment_status="PAID"))

        assert not result.success
        assert result.status_code == 422
        assert result.errors == {"payment_status": ["Payment status of a refunded order cannot change"]}
        assert (await store.get_order(order_id))["payment_status"] == "REFUNDED"

    async def test_refunded_order_other_fields_editable(self, store, clock):
        order_id = await insert_order(store, status="REFUNDED", payment_status="REFUNDED")

        result = await update_order(store, order_id, admin_form(tracking_number="TRK-RETURN"))

        assert result.success, result.errors
        assert result.data["tracking_number"] == "TRK-RETURN"

    @pytest.mark.parametrize("field", ["status", "payment_status"])
    async def test_form_cannot_refund(self, store, clock, field):
        order_id = await insert_order(store, status="DELIVERED", payment_status="PAID")

        result = await update_order(store, order_id, admin_form(**{field: "REFUNDED"}))

        assert not result.success
        assert result.status_code == 422
        assert result.errors == {field: ["Use the refund action to refund an order"]}
        stored = await store.get_order(order_id)
        assert (stored["status"], stored["payment_status"]) == ("DELIVERED", "PAID")
