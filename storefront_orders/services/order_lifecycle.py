"""
Order status state machine and the admin order edit path.
"""
import logging
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from ..errors import (
    BusinessRuleViolation,
    InvalidTransition,
    NotFoundError,
    OrderConflict,
    RefundNotAllowed,
    ValidationFailed,
)
from ..models.order import OrderStatus, PaymentStatus, ShippingAddress
from ..repositories.base import Document, OrderStore
from ..schemas.common import ActionResult
from ..schemas.order import StatusTransitionRequest, UpdateOrderRequest
from ..utils.cache import ORDERS_TAG, listing_cache
from ..utils import clock
from ..utils.money import round_money
from ..utils.serializers import serialize_doc
from .actions import action
from .validation import parse_order_form, require_valid, validate_payload

logger = logging.getLogger(__name__)

ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED, OrderStatus.REFUNDED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

# Timestamp stamped the first time an order enters the status
STATUS_MILESTONES: Dict[OrderStatus, str] = {
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

StatusLike = Union[OrderStatus, str]


def coerce_status(value: Any) -> Optional[OrderStatus]:
    if isinstance(value, OrderStatus):
        return value
    if isinstance(value, str):
        try:
            return OrderStatus(value.strip().upper())
        except ValueError:
            return None
    return None


def is_valid_status_transition(from_status: StatusLike, to_status: StatusLike) -> bool:
    """True iff the pair is listed in the transition table; same-state requests are not."""
    source = coerce_status(from_status)
    target = coerce_status(to_status)
    if source is None or target is None:
        return False
    return target in ORDER_STATUS_TRANSITIONS[source]


def milestone_updates(order: Mapping[str, Any], status: StatusLike, now: datetime) -> Dict[str, datetime]:
    """Milestone field to set when entering ``status``; empty if already stamped."""
    target = coerce_status(status)
    field = STATUS_MILESTONES.get(target) if target else None
    if field and not order.get(field):
        return {field: now}
    return {}


def calculate_order_totals(
    items: Iterable[Mapping[str, Any]],
    tax: float = 0,
    shipping: float = 0,
    discount: float = 0,
) -> Dict[str, Any]:
    """
    Recompute line totals and the order amounts from quantity and unit price.

    Returns ``{"items": [...], "subtotal": x, "total": y}``.
    """
    priced_items = []
    subtotal = 0.0
    for item in items:
        line_total = round_money(item["quantity"] * item["price"])
        priced_items.append({**item, "total": line_total})
        subtotal += line_total

    subtotal = round_money(subtotal)
    total = round_money(subtotal + tax + shipping - discount)
    return {"items": priced_items, "subtotal": subtotal, "total": total}


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _fill_form_totals(data: Dict[str, Any]) -> None:
    """
    Overwrite line totals and order amounts in a parsed form with computed ones.

    Entries that are not numeric are left alone for validation to report.
    """
    items = data.get("items")
    if not isinstance(items, list) or not items:
        return

    numeric_items = []
    for item in items:
        if not isinstance(item, dict):
            return
        quantity, price = _as_number(item.get("quantity")), _as_number(item.get("price"))
        if quantity is None or price is None:
            return
        numeric_items.append({**item, "quantity": quantity, "price": price})

    amounts = [_as_number(data.get(field, 0)) for field in ("tax", "shipping", "discount")]
    if any(amount is None for amount in amounts):
        return

    totals = calculate_order_totals(numeric_items, *amounts)
    for item, priced in zip(items, totals["items"]):
        item["total"] = priced["total"]
    data["subtotal"] = totals["subtotal"]
    data["total"] = totals["total"]


async def apply_refund(
    store: OrderStore,
    order_id: str,
    order: Mapping[str, Any],
    reason: Optional[str],
    now: datetime,
) -> Document:
    """
    Move a paid order to REFUNDED/REFUNDED and put its items back into stock.

    Runs in one store transaction. The write is conditional on the order
    still having the status and the PAID payment it was read with.
    """
    updates: Document = {
        "status": OrderStatus.REFUNDED.value,
        "payment_status": PaymentStatus.REFUNDED.value,
        "updated_at": now,
    }
    if reason:
        updates["cancel_reason"] = reason

    async with store.transaction() as session:
        updated = await store.update_order(
            order_id,
            updates,
            expected={"status": order["status"], "payment_status": PaymentStatus.PAID.value},
            session=session,
        )
        if updated is None:
            raise OrderConflict("Order was refunded or modified by another request.")

        for item in updated["items"]:
            restored = await store.adjust_product_inventory(
                item["product_id"], item["quantity"], -item["quantity"], session=session
            )
            if not restored:
                logger.warning(f"Product {item['product_id']} no longer exists, stock not restored")

    return updated


@action("Failed to update order status")
async def update_order_status(
    store: OrderStore,
    order_id: str,
    new_status: StatusLike,
    reason: Optional[str] = None,
) -> ActionResult:
    order = await store.get_order(order_id)
    if order is None:
        raise NotFoundError("Order not found")

    current = order["status"]
    target = coerce_status(new_status)
    request = validate_payload(
        StatusTransitionRequest,
        {
            "order_id": order_id,
            "from_status": current,
            "to_status": target.value if target else new_status,
            "reason": reason,
        },
    )
    if not request.ok and "reason" in request.errors:
        raise ValidationFailed(errors={"reason": request.errors["reason"]})
    if not request.ok or not is_valid_status_transition(current, target):
        raise InvalidTransition(current, target.value if target else str(new_status))

    now = clock.utcnow()
    if target is OrderStatus.REFUNDED:
        if order.get("payment_status") != PaymentStatus.PAID.value:
            raise RefundNotAllowed()
        updated = await apply_refund(store, order_id, order, reason, now)
    else:
        updates: Document = {"status": target.value, "updated_at": now}
        if reason:
            updates["cancel_reason"] = reason
        updates.update(milestone_updates(order, target, now))

        updated = await store.update_order(order_id, updates, expected={"status": current})
        if updated is None:
            raise OrderConflict()

    listing_cache.invalidate(ORDERS_TAG)
    logger.info(f"Order {order['order_number']} moved {current} -> {target.value}")
    return ActionResult.ok(f"Order status updated to {target.value}", data=serialize_doc(updated))


def _refund_state_errors(existing: Mapping[str, Any], status: str, payment_status: str) -> Dict[str, List[str]]:
    """Form edits may neither enter nor leave the refunded state."""
    refunded = PaymentStatus.REFUNDED.value
    errors: Dict[str, List[str]] = {}

    if existing["status"] == OrderStatus.REFUNDED.value:
        if payment_status != refunded:
            errors["payment_status"] = ["Payment status of a refunded order cannot change"]
        return errors

    if status == OrderStatus.REFUNDED.value:
        errors["status"] = ["Use the refund action to refund an order"]
    if payment_status == refunded and existing.get("payment_status") != refunded:
        errors["payment_status"] = ["Use the refund action to refund an order"]
    return errors


@action("Failed to update order")
async def update_order(store: OrderStore, order_id: str, form: Mapping[str, Any]) -> ActionResult:
    """
    Admin form edit. Fields and status may change in one call; the transition
    is checked against the status stored before the call.
    """
    existing = await store.get_order(order_id)
    if existing is None:
        raise NotFoundError("Order not found")

    data = parse_order_form(form, existing)
    data["id"] = order_id
    _fill_form_totals(data)
    request = require_valid(UpdateOrderRequest, data)

    stored_status = existing["status"]
    new_status = request.status.value
    status_changed = new_status != stored_status
    if status_changed and not is_valid_status_transition(stored_status, new_status):
        raise InvalidTransition(stored_status, new_status)

    refund_errors = _refund_state_errors(existing, new_status, request.payment_status.value)
    if refund_errors:
        raise BusinessRuleViolation("Refunds can only be made with the refund action", errors=refund_errors)

    totals = calculate_order_totals(
        [item.model_dump() for item in request.items],
        request.tax,
        request.shipping,
        request.discount,
    )

    now = clock.utcnow()
    updates: Document = {
        "customer_id": request.customer_id,
        "customer_name": request.customer_name,
        "customer_email": str(request.customer_email),
        "guest": request.customer_id is None,
        "status": new_status,
        "payment_status": request.payment_status.value,
        "items": totals["items"],
        "subtotal": totals["subtotal"],
        "tax": round_money(request.tax),
        "shipping": round_money(request.shipping),
        "discount": round_money(request.discount),
        "total": totals["total"],
        "shipping_address": ShippingAddress(**request.shipping_address.model_dump()).model_dump(),
        "payment_method": request.payment_method,
        "notes": request.notes,
        "tracking_number": request.tracking_number,
        "cancel_reason": request.cancel_reason,
        "updated_at": now,
    }
    if status_changed:
        updates.update(milestone_updates(existing, new_status, now))

    updated = await store.update_order(order_id, updates, expected={"status": stored_status})
    if updated is None:
        raise OrderConflict()

    listing_cache.invalidate(ORDERS_TAG)
    logger.info(f"Order {existing['order_number']} updated")
    return ActionResult.ok("Order updated successfully", data=serialize_doc(updated))
