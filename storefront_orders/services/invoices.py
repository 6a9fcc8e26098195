"""
Invoice derivation from orders and the admin invoice operations.

An invoice is a snapshot: customer, address and line items are copied from
the order when the invoice is issued and never follow later order edits.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from pymongo.errors import DuplicateKeyError

from ..config.settings import Settings, get_settings
from ..errors import InvoiceRejected, NotFoundError
from ..models.invoice import InvoiceCustomer, InvoiceDocument, InvoiceItem, InvoicePaymentStatus
from ..models.order import PaymentStatus
from ..repositories.base import Document, OrderStore
from ..schemas.common import ActionResult, PaginationMeta
from ..schemas.invoice import InvoiceQueryParams, InvoiceRequest, InvoiceSummary, InvoicesListResponse
from ..utils.cache import INVOICES_TAG, listing_cache
from ..utils import clock
from ..utils.clock import ensure_utc
from ..utils.identifiers import invoice_number_for
from ..utils.money import round_money
from ..utils.serializers import serialize_doc, serialize_docs
from .actions import action
from .rate_limit import authorize_action
from .validation import require_valid

logger = logging.getLogger(__name__)

ADDRESS_PARTS = ("address_line1", "address_line2", "city", "state", "postal_code", "country")


def format_address(address: Optional[Mapping[str, Any]]) -> str:
    if not address:
        return ""
    return ", ".join(str(address[part]) for part in ADDRESS_PARTS if address.get(part))


def derive_invoice_payment_status(order_payment_status: str, due_date: datetime, now: datetime) -> InvoicePaymentStatus:
    if order_payment_status == PaymentStatus.PAID.value:
        return InvoicePaymentStatus.PAID
    if ensure_utc(now) > ensure_utc(due_date):
        return InvoicePaymentStatus.OVERDUE
    return InvoicePaymentStatus.PENDING


def build_invoice_from_order(
    order: Mapping[str, Any],
    now: datetime,
    settings: Optional[Settings] = None,
) -> InvoiceDocument:
    """
    Derive an invoice from an order. Pure: nothing is read or written.

    The invoice is dated at completion (or creation) and due after the
    configured payment term.
    """
    settings = settings or get_settings()

    invoice_date = ensure_utc(order.get("completed_at") or order.get("created_at") or now)
    due_date = invoice_date + timedelta(days=settings.invoice_payment_term_days)
    address = order.get("billing_address") or order.get("shipping_address") or {}

    customer = InvoiceCustomer(
        id=order.get("customer_id"),
        name=order.get("customer_name") or address.get("full_name") or "Guest",
        email=order.get("customer_email") or "",
        address=format_address(address),
        phone=address.get("phone") or "",
    )

    items = [
        InvoiceItem(
            description=(
                f"{item['product_name']} - {item['variant_name']}" if item.get("variant_name") else item["product_name"]
            ),
            quantity=item["quantity"],
            unit_price=item["price"],
            total=item["total"],
            sku=item.get("sku"),
        )
        for item in order["items"]
    ]

    return InvoiceDocument(
        invoice_number=invoice_number_for(
            order["order_number"], settings.order_number_prefix, settings.invoice_number_prefix
        ),
        order_number=order["order_number"],
        customer=customer,
        items=items,
        invoice_date=invoice_date,
        due_date=due_date,
        subtotal=order.get("subtotal", 0),
        tax=order.get("tax", 0),
        shipping=order.get("shipping", 0),
        discount=order.get("discount", 0),
        total=order.get("total", 0),
        payment_status=derive_invoice_payment_status(order.get("payment_status"), due_date, now),
        payment_terms=f"Net {settings.invoice_payment_term_days}",
        notes=order.get("notes"),
        created_at=now,
        updated_at=now,
    )


@action("Failed to create invoice")
async def create_invoice_from_order(
    store: OrderStore,
    order_id: str,
    user_id: Optional[str],
    client_ip: Optional[str] = None,
) -> ActionResult:
    await authorize_action(store, user_id, client_ip)

    order = await store.get_order(order_id)
    if order is None:
        raise NotFoundError("Order not found")

    if await store.get_invoice_by_number(order_number=order["order_number"]) is not None:
        raise InvoiceRejected("Invoice already exists for this order")

    invoice = build_invoice_from_order(order, clock.utcnow())
    try:
        created = await store.insert_invoice(invoice.to_document())
    except DuplicateKeyError:
        raise InvoiceRejected("Invoice already exists for this order")

    listing_cache.invalidate(INVOICES_TAG)
    logger.info(f"🧾 Invoice {invoice.invoice_number} issued for order {order['order_number']}")
    return ActionResult.ok("Invoice created successfully", data=serialize_doc(created), status_code=201)


def _duplicate_number_errors(request: InvoiceRequest) -> dict:
    return {
        "invoice_number": [f"Invoice number {request.invoice_number} or order {request.order_number} already invoiced"]
    }


@action("Failed to create invoice")
async def create_invoice(
    store: OrderStore,
    payload: Any,
    user_id: Optional[str],
    client_ip: Optional[str] = None,
) -> ActionResult:
    """Admin-authored invoice."""
    await authorize_action(store, user_id, client_ip)
    request = require_valid(InvoiceRequest, payload)
    now = clock.utcnow()

    document = InvoiceDocument(**request.model_dump(), created_at=now, updated_at=now).to_document()
    try:
        created = await store.insert_invoice(document)
    except DuplicateKeyError:
        raise InvoiceRejected("Invoice number already exists", errors=_duplicate_number_errors(request))

    listing_cache.invalidate(INVOICES_TAG)
    logger.info(f"🧾 Invoice {request.invoice_number} created")
    return ActionResult.ok("Invoice created successfully", data=serialize_doc(created), status_code=201)


@action("Failed to update invoice")
async def update_invoice(
    store: OrderStore,
    invoice_id: str,
    payload: Any,
    user_id: Optional[str],
    client_ip: Optional[str] = None,
) -> ActionResult:
    await authorize_action(store, user_id, client_ip)
    request = require_valid(InvoiceRequest, payload)

    existing = await store.get_invoice(invoice_id)
    if existing is None:
        raise NotFoundError("Invoice not found")

    now = clock.utcnow()
    updates = InvoiceDocument(
        **request.model_dump(), created_at=existing.get("created_at"), updated_at=now
    ).to_document()
    try:
        updated = await store.update_invoice(invoice_id, updates)
    except DuplicateKeyError:
        raise InvoiceRejected("Invoice number already exists", errors=_duplicate_number_errors(request))
    if updated is None:
        raise NotFoundError("Invoice not found")

    listing_cache.invalidate(INVOICES_TAG)
    return ActionResult.ok("Invoice updated successfully", data=serialize_doc(updated))


@action("Failed to delete invoice")
async def delete_invoice(
    store: OrderStore,
    invoice_id: str,
    user_id: Optional[str],
    client_ip: Optional[str] = None,
) -> ActionResult:
    await authorize_action(store, user_id, client_ip)
    if not await store.delete_invoice(invoice_id):
        raise NotFoundError("Invoice not found")

    listing_cache.invalidate(INVOICES_TAG)
    logger.info(f"🗑️ Invoice {invoice_id} deleted")
    return ActionResult.ok("Invoice deleted successfully")


async def get_invoice(store: OrderStore, invoice_id: str) -> Document:
    invoice = await store.get_invoice(invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return serialize_doc(invoice)


async def get_invoice_by_order_number(store: OrderStore, order_number: str) -> Document:
    invoice = await store.get_invoice_by_number(order_number=order_number)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return serialize_doc(invoice)


async def list_invoices(store: OrderStore, query: InvoiceQueryParams) -> InvoicesListResponse:
    cache_key = query.model_dump_json()
    cached = listing_cache.get(INVOICES_TAG, cache_key)
    if cached is not None:
        return cached

    invoices, total = await store.list_invoices(query)
    groups = await store.aggregate_invoices(query)

    def amount(status: InvoicePaymentStatus) -> float:
        return round_money(groups.get(status.value, {}).get("amount", 0))

    summary = InvoiceSummary(
        total_invoices=int(sum(group["count"] for group in groups.values())),
        total_amount=round_money(sum(group["amount"] for group in groups.values())),
        paid_amount=amount(InvoicePaymentStatus.PAID),
        pending_amount=amount(InvoicePaymentStatus.PENDING),
        overdue_amount=amount(InvoicePaymentStatus.OVERDUE),
        status_counts={status: int(group["count"]) for status, group in groups.items()},
    )

    response = InvoicesListResponse(
        invoices=serialize_docs(invoices),
        pagination=PaginationMeta.build(query.page, query.limit, total),
        summary=summary,
    )
    listing_cache.set(INVOICES_TAG, cache_key, response)
    return response
