"""
Order data models for database documents.
These represent the actual structure of documents stored in MongoDB.
"""
from enum import Enum
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class OrderItemDocument(BaseModel):
    """Order line item, embedded in the order. Name and price are captured at order time."""
    product_id: str = Field(..., description="Product ID reference")
    product_name: str = Field(..., description="Product name at time of order")
    variant_id: Optional[str] = Field(None, description="Variant ID reference")
    variant_name: Optional[str] = Field(None, description="Variant name at time of order")
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    price: float = Field(..., ge=0, description="Unit price at time of order")
    total: float = Field(..., ge=0, description="quantity * price")
    sku: Optional[str] = Field(None, description="SKU at time of order")


class ShippingAddress(BaseModel):
    """Address snapshot copied onto the order; later address edits never change it."""
    full_name: str = Field(..., description="Recipient name")
    address_line1: str = Field("", description="Street address")
    address_line2: Optional[str] = Field(None, description="Apartment, suite, etc.")
    city: str = Field("", description="City")
    state: str = Field("", description="State/Province")
    postal_code: str = Field("", description="Postal/ZIP code")
    country: str = Field("", description="Country")
    phone: Optional[str] = Field(None, description="Contact phone number")


class OrderDocument(BaseModel):
    """
    Order document model representing the MongoDB document structure.
    This matches how orders are stored in the database.
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    id: Optional[str] = Field(None, alias="_id", description="Order ID")
    order_number: str = Field(..., description="Human-facing order number")
    idempotency_key: Optional[str] = Field(None, description="Caller-supplied submission token")

    status: OrderStatus = Field(default=OrderStatus.PENDING, description="Order status")
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING, description="Payment status")

    items: List[OrderItemDocument] = Field(..., min_length=1, description="Order items")

    shipping_address: ShippingAddress = Field(..., description="Shipping address snapshot")
    billing_address: Optional[ShippingAddress] = Field(None, description="Billing address snapshot")

    subtotal: float = Field(..., ge=0)
    tax: float = Field(0, ge=0)
    shipping: float = Field(0, ge=0)
    discount: float = Field(0, ge=0)
    total: float = Field(..., ge=0)

    coupon_id: Optional[str] = Field(None, description="Applied coupon reference")
    coupon_code: Optional[str] = Field(None, description="Applied coupon code, kept for display")

    payment_method: str = Field(default="UNKNOWN", description="Payment method used")

    customer_id: Optional[str] = Field(None, description="Customer who placed the order")
    customer_name: Optional[str] = Field(None, description="Customer name at time of order")
    customer_email: Optional[str] = Field(None, description="Customer email at time of order")
    guest: bool = Field(default=False, description="True when no customer identity is attached")

    notes: Optional[str] = Field(None, description="Order notes")
    tracking_number: Optional[str] = Field(None, description="Carrier tracking number")
    cancel_reason: Optional[str] = Field(None, description="Cancellation or refund reason")
    created_by_admin: bool = Field(default=False)

    # Timestamps
    created_at: Optional[datetime] = Field(None, description="Order creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    # Milestones, each set once on first entry into the status
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    def to_document(self) -> dict:
        """
        Dump for insertion; the store assigns ``_id``.

        ``idempotency_key`` is left out when unset so key-less orders never
        collide in its unique index.
        """
        exclude = {"id"} if self.idempotency_key else {"id", "idempotency_key"}
        return self.model_dump(exclude=exclude)
