"""
Service layer. Mutating operations return ``ActionResult`` or
``OrderCreationResult`` envelopes; read operations raise ``NotFoundError``.
"""
from .actions import action
from .validation import ValidationOutcome, validate_payload, require_valid, parse_order_form
from .rate_limit import require_rate_limit, block_ip
from .order_lifecycle import (
    ORDER_STATUS_TRANSITIONS,
    calculate_order_totals,
    is_valid_status_transition,
    update_order,
    update_order_status
)
from .order_creation import checkout_from_cart, create_order, process_order_creation, refund_order
from .coupons import apply_coupon, calculate_coupon_discount, create_coupon
from .invoices import (
    build_invoice_from_order,
    create_invoice,
    create_invoice_from_order,
    delete_invoice,
    get_invoice,
    get_invoice_by_order_number,
    list_invoices,
    update_invoice
)
from .order_queries import get_order, get_order_history, get_order_stats, list_orders
from .products import create_product, get_product, list_products

__all__ = [
    "action",
    "ValidationOutcome",
    "validate_payload",
    "require_valid",
    "parse_order_form",
    "require_rate_limit",
    "block_ip",
    "ORDER_STATUS_TRANSITIONS",
    "calculate_order_totals",
    "is_valid_status_transition",
    "update_order",
    "update_order_status",
    "checkout_from_cart",
    "create_order",
    "process_order_creation",
    "refund_order",
    "apply_coupon",
    "calculate_coupon_discount",
    "create_coupon",
    "build_invoice_from_order",
    "create_invoice",
    "create_invoice_from_order",
    "delete_invoice",
    "get_invoice",
    "get_invoice_by_order_number",
    "list_invoices",
    "update_invoice",
    "get_order",
    "get_order_history",
    "get_order_stats",
    "list_orders",
    "create_product",
    "get_product",
    "list_products"
]
