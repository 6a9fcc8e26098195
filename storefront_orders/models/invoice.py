"""
Invoice data models. An invoice carries its own copy of customer, address
and line-item data so later order edits never alter an issued invoice.
"""
from enum import Enum
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class InvoicePaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class InvoiceCustomer(BaseModel):
    id: Optional[str] = Field(None, description="Customer ID")
    name: str = Field(..., min_length=1, description="Customer name")
    email: str = Field("", description="Customer email")
    address: str = Field("", description="One-line billing address")
    phone: str = Field("", description="Contact phone number")


class InvoiceItem(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    total: float = Field(..., ge=0)
    sku: Optional[str] = None


class InvoiceDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    id: Optional[str] = Field(None, alias="_id", description="Invoice ID")
    invoice_number: str = Field(..., min_length=1)
    order_number: str = Field(..., min_length=1)
    customer: InvoiceCustomer
    items: List[InvoiceItem] = Field(..., min_length=1)
    invoice_date: datetime
    due_date: datetime
    subtotal: float = Field(..., ge=0)
    tax: float = Field(0, ge=0)
    shipping: float = Field(0, ge=0)
    discount: float = Field(0, ge=0)
    total: float = Field(..., ge=0)
    payment_status: InvoicePaymentStatus = InvoicePaymentStatus.PENDING
    payment_terms: Optional[str] = None
    notes: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_document(self) -> dict:
        return self.model_dump(exclude={"id"})
