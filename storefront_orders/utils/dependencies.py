"""
FastAPI dependencies for request context and common query parameters
"""
from datetime import datetime
from typing import Literal, Optional

from fastapi import Header, Query, Request

from ..config.settings import get_settings
from ..schemas.invoice import InvoiceQueryParams
from ..schemas.order import OrderQueryParams


def get_client_ip(request: Request) -> str:
    """
    Resolve the caller's network address

    The first entry of the forwarding header wins (the service runs behind a
    proxy); falls back to the socket peer, then ``unknown-ip``.
    """
    forwarded = request.headers.get(get_settings().client_ip_header)
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown-ip"


async def get_current_user(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """
    Authenticated actor ID as forwarded by the auth gateway

    Returns None for anonymous callers; services decide whether that is allowed.
    """
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


def order_query_params(
    customer_id: Optional[str] = Query(None, description="Filter by customer ID"),
    search: Optional[str] = Query(None, description="Order number, tracking number, customer name or email"),
    status: Optional[str] = Query(None, description="Order status or 'all'"),
    payment_status: Optional[str] = Query(None, description="Payment status or 'all'"),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    sort_by: Literal["created_at", "total", "order_number", "status"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> OrderQueryParams:
    return OrderQueryParams(
        customer_id=customer_id,
        search=search,
        status=status,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


def invoice_query_params(
    search: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None, description="paid, pending, overdue or all"),
    customer_id: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    sort_by: Literal["invoice_date", "due_date", "total", "invoice_number"] = Query("invoice_date"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> InvoiceQueryParams:
    return InvoiceQueryParams(
        search=search,
        payment_status=payment_status,
        customer_id=customer_id,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
