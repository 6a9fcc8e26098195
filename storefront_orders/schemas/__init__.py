"""
Schemas package for API request/response validation.
These models define the structure of data sent to and from the API endpoints.
"""

# Product schemas
from .product import (
    CreateProductRequest,
    ProductQueryParams,
    ProductsListResponse
)

# Order schemas
from .order import (
    OrderItemInput,
    ShippingAddressInput,
    UpdateOrderRequest,
    StatusTransitionRequest,
    UpdateOrderStatusRequest,
    RefundOrderRequest,
    CreateOrderItem,
    CreateOrderRequest,
    CartItem,
    CheckoutCustomer,
    CheckoutRequest,
    OrderQueryParams,
    OrderSummaryStats,
    OrdersListResponse
)

# Invoice schemas
from .invoice import (
    InvoiceRequest,
    InvoiceQueryParams,
    InvoiceSummary,
    InvoicesListResponse
)

# Coupon and security schemas
from .coupon import CreateCouponRequest, ApplyCouponRequest
from .security import BlockIpRequest

# Common schemas
from .common import (
    HealthCheckResponse,
    RootResponse,
    PaginationMeta,
    ActionResult,
    OrderCreationResult
)

__all__ = [
    # Product schemas
    "CreateProductRequest",
    "ProductQueryParams",
    "ProductsListResponse",

    # Order schemas
    "OrderItemInput",
    "ShippingAddressInput",
    "UpdateOrderRequest",
    "StatusTransitionRequest",
    "UpdateOrderStatusRequest",
    "RefundOrderRequest",
    "CreateOrderItem",
    "CreateOrderRequest",
    "CartItem",
    "CheckoutCustomer",
    "CheckoutRequest",
    "OrderQueryParams",
    "OrderSummaryStats",
    "OrdersListResponse",

    # Invoice schemas
    "InvoiceRequest",
    "InvoiceQueryParams",
    "InvoiceSummary",
    "InvoicesListResponse",

    # Coupon and security schemas
    "CreateCouponRequest",
    "ApplyCouponRequest",
    "BlockIpRequest",

    # Common schemas
    "HealthCheckResponse",
    "RootResponse",
    "PaginationMeta",
    "ActionResult",
    "OrderCreationResult"
]
