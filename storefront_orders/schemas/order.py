"""
Order API schemas for request/response validation.
These models define the structure of data sent to and from the API.
"""
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models.order import OrderStatus, PaymentStatus
from .common import PaginationMeta


# Request Schemas

class OrderItemInput(BaseModel):
    """Line item as edited on the admin order form."""
    product_id: str = Field(..., min_length=1, description="Product ID")
    product_name: str = Field(..., min_length=1, description="Product name")
    variant_id: Optional[str] = Field(None, description="Variant ID")
    variant_name: Optional[str] = Field(None, description="Variant name")
    quantity: int = Field(..., ge=1, le=999, description="Quantity ordered")
    price: float = Field(..., ge=0, description="Unit price")
    total: float = Field(..., ge=0, description="Line total")
    sku: Optional[str] = Field(None, description="SKU")


class ShippingAddressInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(..., min_length=1, max_length=100)
    address_line1: str = Field(..., min_length=1, max_length=200)
    address_line2: Optional[str] = Field(None, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)


class UpdateOrderRequest(BaseModel):
    """Full field set of the admin order edit form."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1, description="Order ID")
    customer_id: Optional[str] = Field(None, description="Customer ID, unset for guest orders")
    customer_name: str = Field(..., min_length=1, description="Customer name")
    customer_email: EmailStr = Field(..., description="Customer email")
    status: OrderStatus = Field(..., description="Order status")
    items: List[OrderItemInput] = Field(..., min_length=1, description="Order must have at least one item")
    subtotal: float = Field(..., ge=0)
    tax: float = Field(..., ge=0)
    shipping: float = Field(..., ge=0)
    discount: float = Field(0, ge=0)
    total: float = Field(..., ge=0)
    shipping_address: ShippingAddressInput
    payment_method: str = Field(..., min_length=1)
    payment_status: PaymentStatus
    notes: Optional[str] = Field(None, max_length=1000)
    tracking_number: Optional[str] = Field(None, max_length=100)
    cancel_reason: Optional[str] = Field(None, max_length=500)


class StatusTransitionRequest(BaseModel):
    order_id: str = Field(..., min_length=1)
    from_status: OrderStatus
    to_status: OrderStatus
    reason: Optional[str] = Field(None, max_length=500)


class UpdateOrderStatusRequest(BaseModel):
    """Request body for a status change."""
    status: str = Field(..., description="New order status")
    reason: Optional[str] = Field(None, description="Reason for status change")


class RefundOrderRequest(BaseModel):
    reason: str = Field(..., description="Refund reason")


class CreateOrderItem(BaseModel):
    """Line item submitted at order creation; names and SKUs are resolved from the catalog."""
    product_id: str = Field(..., min_length=1)
    variant_id: Optional[str] = None
    quantity: int = Field(..., ge=1, le=999)
    price: float = Field(..., ge=0)


class CreateOrderRequest(BaseModel):
    """Request schema for creating a new order."""
    model_config = ConfigDict(str_strip_whitespace=True)

    customer_id: Optional[str] = Field(None, min_length=1)
    customer_name: Optional[str] = Field(None, min_length=1)
    customer_email: Optional[EmailStr] = None
    items: List[CreateOrderItem] = Field(..., min_length=1, description="List of items in the order")
    subtotal: float = Field(..., ge=0)
    tax: float = Field(0, ge=0)
    shipping: float = Field(0, ge=0)
    total: float = Field(..., ge=0)
    payment_method: str = Field("UNKNOWN", min_length=1)
    coupon_code: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = Field(None, max_length=1000)
    shipping_address: Optional[ShippingAddressInput] = None
    billing_address: Optional[ShippingAddressInput] = None
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=100)
    created_by_admin: bool = False
    status: OrderStatus = OrderStatus.PENDING
    guest: bool = False


class CartItem(BaseModel):
    """Storefront cart line."""
    id: str = Field(..., min_length=1, description="Product ID")
    name: Optional[str] = None
    variant_id: Optional[str] = None
    quantity: int = Field(..., ge=1, le=999)
    final_price: float = Field(..., ge=0, description="Unit price after product-level discounts")


class CheckoutCustomer(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    email: EmailStr
    address: Optional[ShippingAddressInput] = Field(None, description="Default shipping address")

    @field_validator("id", mode="before")
    @classmethod
    def blank_id_is_guest(cls, v):
        if isinstance(v, str):
            v = v.strip()
        return v or None


class CheckoutRequest(BaseModel):
    cart_items: List[CartItem] = Field(default_factory=list)
    customer: CheckoutCustomer
    coupon_code: Optional[str] = None


class OrderQueryParams(BaseModel):
    """Query parameters for order filtering and pagination."""
    customer_id: Optional[str] = Field(None, description="Filter by customer ID")
    search: Optional[str] = Field(None, description="Order number, tracking number, customer name or email")
    status: Optional[str] = Field(None, description="Filter by order status, 'all' for no filter")
    payment_status: Optional[str] = Field(None, description="Filter by payment status, 'all' for no filter")
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sort_by: Literal["created_at", "total", "order_number", "status"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)

    def status_filter(self) -> Optional[str]:
        if self.status and self.status.lower() != "all":
            return self.status.upper()
        return None

    def payment_status_filter(self) -> Optional[str]:
        if self.payment_status and self.payment_status.lower() != "all":
            return self.payment_status.upper()
        return None


# Response Schemas

class OrderSummaryStats(BaseModel):
    total_orders: int
    total_value: float
    average_order_value: float
    status_counts: Dict[str, int]
    payment_status_counts: Dict[str, int]


class OrdersListResponse(BaseModel):
    """Response schema for order list with pagination."""
    orders: List[Dict[str, Any]] = Field(..., description="List of orders")
    pagination: PaginationMeta
    summary: OrderSummaryStats
