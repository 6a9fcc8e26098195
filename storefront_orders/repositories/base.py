"""
Repository interface shared by the storage backends.

Every method accepts an optional ``session`` obtained from ``transaction()``;
operations issued with the same session commit or roll back together.
Documents are plain dicts keyed like the MongoDB documents (``_id`` included).
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, AsyncContextManager, Dict, List, Optional, Tuple

from ..schemas.invoice import InvoiceQueryParams
from ..schemas.order import OrderQueryParams
from ..schemas.product import ProductQueryParams

Document = Dict[str, Any]


class OrderStore(ABC):
    """Storage operations used by the order services."""

    name = "abstract"

    # Lifecycle

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backend is reachable."""

    @abstractmethod
    async def create_indexes(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    def transaction(self) -> AsyncContextManager[Any]:
        """Start an atomic unit of work; yields the session to pass to each call."""

    # Products

    @abstractmethod
    async def insert_product(self, document: Document, session: Any = None) -> Document:
        ...

    @abstractmethod
    async def get_product(self, product_id: str, session: Any = None) -> Optional[Document]:
        ...

    @abstractmethod
    async def find_products(self, product_ids: List[str], session: Any = None) -> List[Document]:
        ...

    @abstractmethod
    async def list_products(self, query: ProductQueryParams) -> Tuple[List[Document], int]:
        ...

    @abstractmethod
    async def adjust_product_inventory(
        self,
        product_id: str,
        stock_delta: int,
        sales_delta: int,
        min_stock: Optional[int] = None,
        session: Any = None,
    ) -> bool:
        """
        Atomically add the deltas to ``stock`` and ``sales``.

        When ``min_stock`` is given the update only applies while
        ``stock >= min_stock``. Returns False when no product was updated.
        """

    # Coupons

    @abstractmethod
    async def insert_coupon(self, document: Document, session: Any = None) -> Document:
        ...

    @abstractmethod
    async def get_coupon_by_code(self, code: str, session: Any = None) -> Optional[Document]:
        ...

    @abstractmethod
    async def increment_coupon_usage(
        self, coupon_id: str, max_usage: Optional[int] = None, session: Any = None
    ) -> bool:
        """Atomically increment ``used_count``; refuses once ``max_usage`` is reached."""

    # Orders

    @abstractmethod
    async def insert_order(self, document: Document, session: Any = None) -> Document:
        ...

    @abstractmethod
    async def get_order(self, order_id: str, session: Any = None) -> Optional[Document]:
        ...

    @abstractmethod
    async def order_number_exists(self, order_number: str, session: Any = None) -> bool:
        ...

    @abstractmethod
    async def find_recent_order(
        self, customer_id: str, total: float, since: datetime, session: Any = None
    ) -> Optional[Document]:
        """Most recent order of the customer with the same total created at or after ``since``."""

    @abstractmethod
    async def find_order_by_idempotency_key(self, key: str, session: Any = None) -> Optional[Document]:
        ...

    @abstractmethod
    async def update_order(
        self,
        order_id: str,
        updates: Document,
        expected: Optional[Document] = None,
        session: Any = None,
    ) -> Optional[Document]:
        """
        Set ``updates`` on the order and return the updated document.

        ``expected`` holds field values the stored order must still have;
        returns None when the order is missing or does not match.
        """

    @abstractmethod
    async def list_orders(self, query: OrderQueryParams) -> Tuple[List[Document], int]:
        ...

    @abstractmethod
    async def aggregate_orders(self, query: Optional[OrderQueryParams] = None) -> Document:
        """
        Totals over the orders matching ``query`` (ignoring pagination):
        ``count``, ``total_value``, ``status_counts``, ``payment_status_counts``.
        """

    # Invoices

    @abstractmethod
    async def insert_invoice(self, document: Document, session: Any = None) -> Document:
        ...

    @abstractmethod
    async def get_invoice(self, invoice_id: str, session: Any = None) -> Optional[Document]:
        ...

    @abstractmethod
    async def get_invoice_by_number(
        self, invoice_number: Optional[str] = None, order_number: Optional[str] = None, session: Any = None
    ) -> Optional[Document]:
        """Find an invoice by invoice number or by order number."""

    @abstractmethod
    async def update_invoice(self, invoice_id: str, updates: Document, session: Any = None) -> Optional[Document]:
        ...

    @abstractmethod
    async def delete_invoice(self, invoice_id: str, session: Any = None) -> bool:
        ...

    @abstractmethod
    async def list_invoices(self, query: InvoiceQueryParams) -> Tuple[List[Document], int]:
        ...

    @abstractmethod
    async def aggregate_invoices(self, query: InvoiceQueryParams) -> Dict[str, Dict[str, float]]:
        """Per payment status: ``{"PAID": {"count": n, "amount": x}, ...}``."""

    # Abuse protection

    @abstractmethod
    async def get_rate_limit(self, key: str, session: Any = None) -> Optional[Document]:
        ...

    @abstractmethod
    async def save_rate_limit(self, key: str, count: int, last_request: int, session: Any = None) -> None:
        """Create or overwrite the counter for ``key``."""

    @abstractmethod
    async def increment_rate_limit(self, key: str, last_request: int, session: Any = None) -> None:
        ...

    @abstractmethod
    async def get_blocked_ip(self, ip: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def delete_blocked_ip(self, ip: str) -> None:
        ...

    @abstractmethod
    async def upsert_blocked_ip(self, ip: str, reason: Optional[str], expires_at: Optional[datetime]) -> Document:
        ...
