"""
Invoice API schemas for request/response validation.
"""
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ..utils.clock import ensure_utc
from ..models.invoice import InvoiceCustomer, InvoiceItem, InvoicePaymentStatus
from .common import PaginationMeta


class InvoiceRequest(BaseModel):
    """Admin-authored invoice, used for both create and update."""
    model_config = ConfigDict(str_strip_whitespace=True)

    invoice_number: str = Field(..., min_length=1, max_length=50)
    order_number: str = Field(..., min_length=1, max_length=50)
    invoice_date: datetime
    due_date: datetime
    customer: InvoiceCustomer
    items: List[InvoiceItem] = Field(..., min_length=1, description="At least one item is required")
    subtotal: float = Field(..., ge=0)
    tax: float = Field(0, ge=0)
    shipping: float = Field(0, ge=0)
    discount: float = Field(0, ge=0)
    total: float = Field(..., ge=0)
    payment_status: InvoicePaymentStatus = InvoicePaymentStatus.PENDING
    payment_terms: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("payment_status", mode="before")
    @classmethod
    def normalize_payment_status(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or InvoicePaymentStatus.PENDING
        return v

    @field_validator("invoice_date")
    @classmethod
    def invoice_date_as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: datetime, info: ValidationInfo) -> datetime:
        v = ensure_utc(v)
        invoice_date = info.data.get("invoice_date")
        if invoice_date is not None and v <= invoice_date:
            raise ValueError("Due date must be after invoice date")
        return v


class InvoiceQueryParams(BaseModel):
    search: Optional[str] = Field(None, description="Invoice number, order number, customer name or email")
    payment_status: Optional[str] = Field(None, description="paid, pending, overdue or all")
    customer_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sort_by: Literal["invoice_date", "due_date", "total", "invoice_number"] = "invoice_date"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)

    def payment_status_filter(self) -> Optional[str]:
        if self.payment_status and self.payment_status.lower() != "all":
            return self.payment_status.upper()
        return None


class InvoiceSummary(BaseModel):
    total_invoices: int
    total_amount: float
    paid_amount: float
    pending_amount: float
    overdue_amount: float
    status_counts: Dict[str, int]


class InvoicesListResponse(BaseModel):
    invoices: List[Dict[str, Any]]
    pagination: PaginationMeta
    summary: InvoiceSummary
