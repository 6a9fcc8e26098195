"""
Models package for database document structures.
These models represent how data is stored in MongoDB.
"""
from .product import ProductDocument, ProductVariant
from .order import (
    OrderDocument,
    OrderItemDocument,
    OrderStatus,
    PaymentStatus,
    ShippingAddress
)
from .coupon import CouponDocument, DiscountType
from .invoice import InvoiceDocument, InvoiceCustomer, InvoiceItem, InvoicePaymentStatus
from .security import BlockedIp, RateLimitRecord

__all__ = [
    # Product models
    "ProductDocument",
    "ProductVariant",

    # Order models
    "OrderDocument",
    "OrderItemDocument",
    "OrderStatus",
    "PaymentStatus",
    "ShippingAddress",

    # Coupon models
    "CouponDocument",
    "DiscountType",

    # Invoice models
    "InvoiceDocument",
    "InvoiceCustomer",
    "InvoiceItem",
    "InvoicePaymentStatus",

    # Abuse protection
    "BlockedIp",
    "RateLimitRecord"
]
