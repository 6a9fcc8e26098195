"""
Order creation and refund.

Creating an order inserts the order, decrements product stock, increments
product sales and consumes the coupon in a single store transaction. A
refund reverses the inventory part; coupon usage stays consumed.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from ..config.settings import get_settings
from ..errors import (
    BusinessRuleViolation,
    CouponRejected,
    DuplicateOrder,
    InsufficientStock,
    NotFoundError,
    RefundNotAllowed,
    ValidationFailed,
)
from ..models.order import (
    OrderDocument,
    OrderItemDocument,
    OrderStatus,
    PaymentStatus,
    ShippingAddress,
)
from ..repositories.base import Document, OrderStore
from ..schemas.common import ActionResult, OrderCreationResult
from ..schemas.order import CheckoutRequest, CreateOrderItem, CreateOrderRequest
from ..utils.cache import ORDERS_TAG, listing_cache
from ..utils import clock
from ..utils.identifiers import generate_order_number
from ..utils.money import round_money
from ..utils.serializers import serialize_doc
from .actions import action
from .coupons import calculate_coupon_discount, resolve_coupon
from .order_lifecycle import apply_refund, milestone_updates
from .rate_limit import authorize_action, require_rate_limit
from .validation import require_valid

logger = logging.getLogger(__name__)

MAX_ORDER_NUMBER_ATTEMPTS = 5
MAX_REFUND_REASON_LENGTH = 500


def _as_dict(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, BaseModel):
        return payload.model_dump()
    return dict(payload)


async def _allocate_order_number(store: OrderStore, prefix: str, session: Any) -> str:
    for _ in range(MAX_ORDER_NUMBER_ATTEMPTS):
        candidate = generate_order_number(prefix)
        if not await store.order_number_exists(candidate, session=session):
            return candidate
    raise RuntimeError(f"Could not allocate a unique order number after {MAX_ORDER_NUMBER_ATTEMPTS} attempts")


def _snapshot_item(item: CreateOrderItem, product: Document) -> OrderItemDocument:
    """Copy catalog names and SKUs onto the line item as they are right now."""
    variants = product.get("variants") or []
    variant = next((v for v in variants if item.variant_id and v.get("id") == item.variant_id), None)

    if variant is not None and variant.get("sku"):
        sku = variant["sku"]
    elif variants and variants[0].get("sku"):
        sku = variants[0]["sku"]
    else:
        sku = product.get("sku")

    return OrderItemDocument(
        product_id=item.product_id,
        product_name=product["name"],
        variant_id=item.variant_id,
        variant_name=variant.get("name") if variant else None,
        quantity=item.quantity,
        price=round_money(item.price),
        total=round_money(item.quantity * item.price),
        sku=sku,
    )


async def _snapshot_items(
    store: OrderStore, items: Sequence[CreateOrderItem], session: Any
) -> List[OrderItemDocument]:
    products = await store.find_products([item.product_id for item in items], session=session)
    by_id = {str(product["_id"]): product for product in products}

    snapshots = []
    for item in items:
        product = by_id.get(item.product_id)
        if product is None:
            raise NotFoundError(f"Product {item.product_id} not found")
        snapshots.append(_snapshot_item(item, product))
    return snapshots


def _shipping_snapshot(request: CreateOrderRequest) -> ShippingAddress:
    if request.shipping_address is not None:
        return ShippingAddress(**request.shipping_address.model_dump())
    return ShippingAddress(full_name=request.customer_name or "Guest")


@action("Failed to create order. Please try again.", result_type=OrderCreationResult)
async def process_order_creation(store: OrderStore, payload: Any) -> OrderCreationResult:
    """
    Validate the payload, reject duplicates, then persist the order and its
    inventory and coupon effects atomically.
    """
    request = require_valid(CreateOrderRequest, payload)
    settings = get_settings()

    subtotal = round_money(request.subtotal)
    tax = round_money(request.tax)
    shipping = round_money(request.shipping)
    total = round_money(request.total)
    discount = round_money(subtotal + tax + shipping - total)
    if discount < 0:
        raise ValidationFailed(errors={"total": ["Total cannot exceed subtotal plus tax and shipping"]})

    if request.created_by_admin:
        status, payment_status = OrderStatus.COMPLETED, PaymentStatus.PAID
    elif request.status is not OrderStatus.PENDING:
        raise ValidationFailed(errors={"status": ["New orders start as PENDING"]})
    else:
        status, payment_status = OrderStatus.PENDING, PaymentStatus.PENDING

    now = clock.utcnow()

    if request.idempotency_key:
        if await store.find_order_by_idempotency_key(request.idempotency_key) is not None:
            raise DuplicateOrder()

    if request.customer_id:
        since = now - timedelta(seconds=settings.duplicate_order_window_seconds)
        if await store.find_recent_order(request.customer_id, total, since) is not None:
            raise DuplicateOrder()

    try:
        async with store.transaction() as session:
            coupon = None
            if request.coupon_code:
                coupon = await resolve_coupon(store, request.coupon_code, now, session=session)

            items = await _snapshot_items(store, request.items, session)
            order_number = await _allocate_order_number(store, settings.order_number_prefix, session)

            order = OrderDocument(
                order_number=order_number,
                idempotency_key=request.idempotency_key,
                status=status,
                payment_status=payment_status,
                items=items,
                shipping_address=_shipping_snapshot(request),
                billing_address=(
                    ShippingAddress(**request.billing_address.model_dump()) if request.billing_address else None
                ),
                subtotal=subtotal,
                tax=tax,
                shipping=shipping,
                discount=discount,
                total=total,
                coupon_id=str(coupon["_id"]) if coupon else None,
                coupon_code=coupon["code"] if coupon else None,
                payment_method=request.payment_method,
                customer_id=request.customer_id,
                customer_name=request.customer_name,
                customer_email=str(request.customer_email) if request.customer_email else None,
                guest=request.guest or not request.customer_id,
                notes=request.notes,
                created_by_admin=request.created_by_admin,
                created_at=now,
                updated_at=now,
                **milestone_updates({}, status, now),
            )
            created = await store.insert_order(order.to_document(), session=session)

            for item in items:
                min_stock = item.quantity if settings.enforce_stock_levels else None
                adjusted = await store.adjust_product_inventory(
                    item.product_id, -item.quantity, item.quantity, min_stock=min_stock, session=session
                )
                if not adjusted:
                    raise InsufficientStock(item.product_name, item.quantity)

            if coupon is not None:
                consumed = await store.increment_coupon_usage(
                    str(coupon["_id"]), max_usage=coupon.get("max_usage"), session=session
                )
                if not consumed:
                    raise CouponRejected("Coupon usage limit exceeded")
    except DuplicateKeyError as e:
        logger.warning(f"Order insert hit a unique index: {e}")
        raise DuplicateOrder()

    listing_cache.invalidate(ORDERS_TAG)
    logger.info(f"✅ Order {order_number} created ({status.value}, total {total:.2f})")
    return OrderCreationResult.ok(serialize_doc(created))


@action("Failed to create order. Please try again.", result_type=OrderCreationResult)
async def create_order(
    store: OrderStore,
    payload: Any,
    user_id: Optional[str],
    client_ip: Optional[str] = None,
) -> OrderCreationResult:
    """Admin order entry: requires an authenticated actor and counts against its rate limit."""
    await authorize_action(store, user_id, client_ip)

    data = _as_dict(payload)
    data["created_by_admin"] = True
    return await process_order_creation(store, data)


@action("Failed to place order. Please try again.", result_type=OrderCreationResult)
async def checkout_from_cart(
    store: OrderStore,
    cart_items: Sequence[Any],
    customer: Any,
    coupon_code: Optional[str] = None,
    client_ip: Optional[str] = None,
) -> OrderCreationResult:
    """
    Storefront checkout. Amounts are derived from the cart and the coupon;
    tax and shipping are not charged here.
    """
    if not cart_items:
        raise BusinessRuleViolation("Cart is empty")

    if client_ip is not None:
        await require_rate_limit(store, client_ip=client_ip)

    request = require_valid(
        CheckoutRequest,
        {
            "cart_items": [_as_dict(item) for item in cart_items],
            "customer": _as_dict(customer),
            "coupon_code": coupon_code,
        },
    )

    subtotal = round_money(sum(item.final_price * item.quantity for item in request.cart_items))
    discount = 0.0
    if request.coupon_code:
        coupon = await resolve_coupon(store, request.coupon_code, clock.utcnow(), subtotal=subtotal)
        discount = calculate_coupon_discount(coupon, subtotal)

    customer_data = request.customer
    payload: Dict[str, Any] = {
        "customer_id": customer_data.id,
        "customer_name": customer_data.name,
        "customer_email": customer_data.email,
        "items": [
            {
                "product_id": item.id,
                "variant_id": item.variant_id,
                "quantity": item.quantity,
                "price": item.final_price,
            }
            for item in request.cart_items
        ],
        "subtotal": subtotal,
        "tax": 0,
        "shipping": 0,
        "total": round_money(subtotal - discount),
        "payment_method": "PENDING",
        "coupon_code": request.coupon_code,
        "status": OrderStatus.PENDING,
        "shipping_address": customer_data.address.model_dump() if customer_data.address else None,
        "guest": not customer_data.id,
    }
    return await process_order_creation(store, payload)


@action("Failed to refund order")
async def refund_order(store: OrderStore, order_id: str, reason: Optional[str]) -> ActionResult:
    """Refund a paid order and put its items back into stock."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed(errors={"reason": ["Refund reason is required"]})
    if len(reason) > MAX_REFUND_REASON_LENGTH:
        raise ValidationFailed(
            errors={"reason": [f"Refund reason must be at most {MAX_REFUND_REASON_LENGTH} characters"]}
        )

    order = await store.get_order(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.get("status") == OrderStatus.REFUNDED.value:
        raise RefundNotAllowed("Order has already been refunded.")
    if order.get("payment_status") != PaymentStatus.PAID.value:
        raise RefundNotAllowed()

    updated = await apply_refund(store, order_id, order, reason, clock.utcnow())

    listing_cache.invalidate(ORDERS_TAG)
    logger.info(f"💸 Order {order['order_number']} refunded")
    return ActionResult.ok("Order refunded successfully", data=serialize_doc(updated))
