"""Tests for invoice derivation and the admin invoice operations."""

from datetime import timedelta

import pytest

from storefront_orders.errors import NotFoundError
from storefront_orders.schemas import InvoiceQueryParams
from storefront_orders.services.invoices import (
    build_invoice_from_order,
    create_invoice,
    create_invoice_from_order,
    delete_invoice,
    format_address,
    get_invoice,
    get_invoice_by_order_number,
    list_invoices,
    update_invoice,
)

from conftest import START, insert_order


def paid_order(**overrides):
    order = {
        "order_number": "ORD-7KQ2M9XA",
        "customer_id": "c1",
        "customer_name": "Ada Lovelace",
        "customer_email": "ada@example.com",
        "payment_status": "PAID",
        "items": [
            {
                "product_id": "p2",
                "product_name": "Shirt",
                "variant_name": "Blue / L",
                "quantity": 2,
                "price": 20,
                "total": 40,
                "sku": "SH-BLU-L",
            },
            {"product_id": "p1", "product_name": "Widget", "quantity": 1, "price": 500, "total": 500},
        ],
        "shipping_address": {
            "full_name": "Ada Lovelace",
            "address_line1": "1 Analytical St",
            "city": "London",
            "postal_code": "N1",
            "country": "UK",
            "phone": "555-0100",
        },
        "subtotal": 540,
        "tax": 10,
        "shipping": 5,
        "discount": 0,
        "total": 555,
        "created_at": START - timedelta(days=2),
        "completed_at": START - timedelta(days=1),
    }
    order.update(overrides)
    return order


def invoice_payload(**overrides):
    payload = {
        "invoice_number": "INV-MANUAL1",
        "order_number": "ORD-MANUAL1",
        "invoice_date": "2024-03-01T00:00:00Z",
        "due_date": "2024-03-31T00:00:00Z",
        "customer": {"name": "Ada Lovelace", "email": "ada@example.com"},
        "items": [{"description": "Consulting", "quantity": 1, "unit_price": 250, "total": 250}],
        "subtotal": 250,
        "total": 250,
        "payment_status": "pending",
    }
    payload.update(overrides)
    return payload


class TestBuildInvoice:
    def test_paid_order(self, settings):
        invoice = build_invoice_from_order(paid_order(), START, settings)

        assert invoice.invoice_number == "INV-7KQ2M9XA"
        assert invoice.order_number == "ORD-7KQ2M9XA"
        assert invoice.payment_status == "PAID"
        assert invoice.invoice_date == START - timedelta(days=1)
        assert invoice.due_date == START + timedelta(days=29)
        assert invoice.payment_terms == "Net 30"
        assert invoice.total == 555

    def test_snapshot_of_customer_and_items(self, settings):
        invoice = build_invoice_from_order(paid_order(), START, settings)

        assert invoice.customer.name == "Ada Lovelace"
        assert invoice.customer.address == "1 Analytical St, London, N1, UK"
        assert invoice.customer.phone == "555-0100"
        assert [item.description for item in invoice.items] == ["Shirt - Blue / L", "Widget"]
        assert invoice.items[0].unit_price == 20

    def test_unpaid_within_terms_is_pending(self, settings):
        order = paid_order(payment_status="PENDING", completed_at=None)
        invoice = build_invoice_from_order(order, START, settings)

        assert invoice.payment_status == "PENDING"
        assert invoice.invoice_date == START - timedelta(days=2)

    def test_unpaid_past_due_is_overdue(self, settings):
        order = paid_order(payment_status="PENDING")
        invoice = build_invoice_from_order(order, START + timedelta(days=45), settings)

        assert invoice.payment_status == "OVERDUE"

    def test_dated_now_without_timestamps(self, settings):
        order = paid_order(created_at=None, completed_at=None)
        invoice = build_invoice_from_order(order, START, settings)

        assert invoice.invoice_date == START
        assert invoice.due_date == START + timedelta(days=30)

    def test_format_address_skips_blanks(self):
        assert format_address({"address_line1": "1 Main", "address_line2": "", "city": "Paris"}) == "1 Main, Paris"
        assert format_address(None) == ""


class TestInvoiceFromOrder:
    async def test_requires_sign_in(self, store, clock):
        order_id = await insert_order(store, status="COMPLETED", payment_status="PAID")

        result = await create_invoice_from_order(store, order_id, None)

        assert not result.success
        assert result.status_code == 401
        assert result.message == "Sign In"

    async def test_issues_invoice_once(self, store, clock):
        order_id = await insert_order(store, status="COMPLETED", payment_status="PAID", order_number="ORD-ABCD2345")

        result = await create_invoice_from_order(store, order_id, "admin-1")

        assert result.success
        assert result.status_code == 201
        assert result.data["invoice_number"] == "INV-ABCD2345"
        assert result.data["payment_status"] == "PAID"

        again = await create_invoice_from_order(store, order_id, "admin-1")
        assert not again.success
        assert again.status_code == 422
        assert again.message == "Invoice already exists for this order"

    async def test_missing_order(self, store, clock):
        result = await create_invoice_from_order(store, "does-not-exist", "admin-1")
        assert result.status_code == 404

    async def test_invoice_found_by_order_number(self, store, clock):
        order_id = await insert_order(store, order_number="ORD-LOOKUP01")
        await create_invoice_from_order(store, order_id, "admin-1")

        invoice = await get_invoice_by_order_number(store, "ORD-LOOKUP01")

        assert invoice["invoice_number"] == "INV-LOOKUP01"
        assert invoice["payment_status"] == "PENDING"


class TestAdminInvoices:
    async def test_writes_require_sign_in(self, store, clock):
        created = await create_invoice(store, invoice_payload(), None)
        assert created.status_code == 401
        assert created.message == "Sign In"

        invoice_id = (await create_invoice(store, invoice_payload(), "admin-1")).data["_id"]

        assert (await update_invoice(store, invoice_id, invoice_payload(notes="Edited"), None)).status_code == 401
        assert (await delete_invoice(store, invoice_id, None)).status_code == 401
        assert (await get_invoice(store, invoice_id)).get("notes") is None

    async def test_writes_rate_limited_per_user(self, store, clock):
        for n in range(10):
            payload = invoice_payload(invoice_number=f"INV-RL{n}", order_number=f"ORD-RL{n}")
            assert (await create_invoice(store, payload, "admin-1")).success

        result = await create_invoice(store, invoice_payload(), "admin-1")

        assert result.status_code == 429
        assert (await list_invoices(store, InvoiceQueryParams())).pagination.total == 10

    async def test_create_update_delete(self, store, clock):
        created = await create_invoice(store, invoice_payload(), "admin-1")
        assert created.success
        assert created.status_code == 201
        invoice_id = created.data["_id"]
        assert created.data["payment_status"] == "PENDING"

        updated = await update_invoice(
            store, invoice_id, invoice_payload(payment_status="paid", notes="Wire received"), "admin-1"
        )
        assert updated.success
        assert updated.data["payment_status"] == "PAID"
        assert updated.data["notes"] == "Wire received"

        fetched = await get_invoice(store, invoice_id)
        assert fetched["notes"] == "Wire received"

        deleted = await delete_invoice(store, invoice_id, "admin-1")
        assert deleted.success
        with pytest.raises(NotFoundError):
            await get_invoice(store, invoice_id)

    async def test_due_date_before_invoice_date(self, store, clock):
        result = await create_invoice(store, invoice_payload(due_date="2024-02-01T00:00:00Z"), "admin-1")

        assert not result.success
        assert result.status_code == 400
        assert result.errors == {"due_date": ["Due date must be after invoice date"]}

    async def test_empty_items_rejected(self, store, clock):
        result = await create_invoice(store, invoice_payload(items=[]), "admin-1")
        assert "items" in result.errors

    async def test_duplicate_invoice_number(self, store, clock):
        assert (await create_invoice(store, invoice_payload(), "admin-1")).success

        second = await create_invoice(store, invoice_payload(order_number="ORD-OTHER"), "admin-1")

        assert not second.success
        assert "invoice_number" in second.errors

    async def test_delete_missing(self, store, clock):
        result = await delete_invoice(store, "does-not-exist", "admin-1")
        assert result.status_code == 404

    async def test_update_missing(self, store, clock):
        result = await update_invoice(store, "does-not-exist", invoice_payload(), "admin-1")
        assert result.status_code == 404

    async def test_listing_summary(self, store, clock):
        await create_invoice(store, invoice_payload(), "admin-1")
        await create_invoice(
            store,
            invoice_payload(invoice_number="INV-MANUAL2", order_number="ORD-MANUAL2", payment_status="PAID",
                            total=100, subtotal=100),
        "admin-1",
        )
        await create_invoice(
            store,
            invoice_payload(invoice_number="INV-MANUAL3", order_number="ORD-MANUAL3", payment_status="OVERDUE"),
        "admin-1",
        )

        listing = await list_invoices(store, InvoiceQueryParams())

        assert listing.pagination.total == 3
        assert listing.summary.total_invoices == 3
        assert listing.summary.total_amount == 600
        assert listing.summary.paid_amount == 100
        assert listing.summary.pending_amount == 250
        assert listing.summary.overdue_amount == 250

        paid = await list_invoices(store, InvoiceQueryParams(payment_status="paid"))
        assert [invoice["invoice_number"] for invoice in paid.invoices] == ["INV-MANUAL2"]
