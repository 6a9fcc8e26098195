"""
Coupon lookup, discount math and admin coupon creation.
"""
import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from pymongo.errors import DuplicateKeyError

from ..errors import BusinessRuleViolation, CouponRejected
from ..models.coupon import CouponDocument, DiscountType
from ..repositories.base import Document, OrderStore
from ..schemas.common import ActionResult
from ..schemas.coupon import ApplyCouponRequest, CreateCouponRequest
from ..utils import clock
from ..utils.clock import ensure_utc
from ..utils.money import round_money
from ..utils.serializers import serialize_doc
from .actions import action
from .validation import require_valid

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


def calculate_coupon_discount(coupon: Mapping[str, Any], subtotal: float) -> float:
    """Discount amount for ``subtotal``; never more than the subtotal itself."""
    value = coupon.get("discount_value", 0)
    if coupon.get("discount_type") == DiscountType.PERCENTAGE.value:
        amount = subtotal * value / 100
    else:
        amount = value
    return round_money(max(0.0, min(amount, subtotal)))


async def resolve_coupon(
    store: OrderStore,
    code: str,
    now: datetime,
    subtotal: Optional[float] = None,
    session: Any = None,
) -> Document:
    """
    Load a coupon that can still be redeemed.

    Raises ``CouponRejected`` when it is missing, inactive, expired, used up,
    or (with ``subtotal``) below its minimum order value.
    """
    coupon = await store.get_coupon_by_code(normalize_code(code), session=session)
    if coupon is None:
        raise CouponRejected()
    if not coupon.get("active", True):
        raise CouponRejected("Coupon is not active")

    expires_at = coupon.get("expires_at")
    if expires_at is not None and ensure_utc(expires_at) < now:
        raise CouponRejected("Coupon has expired")

    max_usage = coupon.get("max_usage")
    if max_usage is not None and coupon.get("used_count", 0) >= max_usage:
        raise CouponRejected("Coupon usage limit exceeded")

    min_order_value = coupon.get("min_order_value")
    if subtotal is not None and min_order_value and subtotal < min_order_value:
        raise CouponRejected(f"Minimum order value of {min_order_value:.2f} required for this coupon")

    return coupon


@action("Failed to apply coupon")
async def apply_coupon(store: OrderStore, code: str, subtotal: float) -> ActionResult:
    """Preview the discount a coupon gives on a cart subtotal."""
    request = require_valid(ApplyCouponRequest, {"code": code, "subtotal": subtotal})
    coupon = await resolve_coupon(store, request.code, clock.utcnow(), subtotal=request.subtotal)
    amount = calculate_coupon_discount(coupon, request.subtotal)

    return ActionResult.ok(
        "Coupon applied",
        data={"code": coupon["code"], "discount_type": coupon["discount_type"], "amount": amount},
    )


@action("Failed to create coupon")
async def create_coupon(store: OrderStore, payload: Any) -> ActionResult:
    request = require_valid(CreateCouponRequest, payload)
    now = clock.utcnow()

    document = CouponDocument(**request.model_dump(), used_count=0, created_at=now, updated_at=now).to_document()
    try:
        created = await store.insert_coupon(document)
    except DuplicateKeyError:
        raise BusinessRuleViolation(
            "Coupon code already exists",
            errors={"code": [f"Coupon code '{request.code}' already exists"]},
        )

    logger.info(f"🎟️ Coupon {request.code} created")
    return ActionResult.ok("Coupon created successfully", data=serialize_doc(created), status_code=201)
