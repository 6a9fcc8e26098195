"""
In-process backend for development and tests.

A single asyncio lock serializes transactions against each other and against
standalone operations. A transaction works on the live collections and
restores a snapshot taken at its start when the block raises.
"""
import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from ..schemas.invoice import InvoiceQueryParams
from ..schemas.order import OrderQueryParams
from ..schemas.product import ProductQueryParams
from ..utils import clock
from ..utils.clock import ensure_utc
from .base import Document, OrderStore

logger = logging.getLogger(__name__)

COLLECTIONS = ("products", "coupons", "orders", "invoices", "rate_limits", "blocked_ips")

# collection -> fields unique among documents where they are set and not None
UNIQUE_FIELDS = {
    "coupons": ("code",),
    "orders": ("order_number", "idempotency_key"),
    "invoices": ("invoice_number", "order_number"),
}


class MemorySession:
    """Marker handed out by ``MemoryOrderStore.transaction``."""


def _contains(value: Optional[str], needle: str) -> bool:
    return value is not None and needle.lower() in str(value).lower()


def _in_range(value: Optional[datetime], date_from: Optional[datetime], date_to: Optional[datetime]) -> bool:
    if value is None:
        return not (date_from or date_to)
    value = ensure_utc(value)
    if date_from and value < ensure_utc(date_from):
        return False
    if date_to and value > ensure_utc(date_to):
        return False
    return True


def _sort_key(field: str) -> Callable[[Document], Any]:
    def key(document: Document) -> Any:
        value = document.get(field)
        return (value is None, value if value is not None else 0)

    return key


class MemoryOrderStore(OrderStore):
    """Order store keeping every collection in dictionaries."""

    name = "memory"

    def __init__(self):
        self._collections: Dict[str, Dict[str, Document]] = {name: {} for name in COLLECTIONS}
        self._lock = asyncio.Lock()
        self._active_session: Optional[MemorySession] = None

    async def ping(self) -> bool:
        return True

    async def create_indexes(self) -> None:
        logger.info("In-memory store: uniqueness enforced on insert, no indexes to create")

    async def close(self) -> None:
        return None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[MemorySession]:
        async with self._lock:
            session = MemorySession()
            snapshot = copy.deepcopy(self._collections)
            self._active_session = session
            try:
                yield session
            except BaseException:
                self._collections = snapshot
                raise
            finally:
                self._active_session = None

    @asynccontextmanager
    async def _guard(self, session: Any) -> AsyncIterator[None]:
        if session is not None and session is self._active_session:
            yield
        else:
            async with self._lock:
                yield

    # Helpers

    def _collection(self, name: str) -> Dict[str, Document]:
        return self._collections[name]

    def _insert(self, name: str, document: Document) -> Document:
        collection = self._collection(name)
        document.setdefault("_id", ObjectId())
        key = str(document["_id"])
        if key in collection:
            raise DuplicateKeyError(f"E11000 duplicate key error collection: {name} index: _id_ dup key: {key}")

        for field in UNIQUE_FIELDS.get(name, ()):
            value = document.get(field)
            if value is None:
                continue
            if any(existing.get(field) == value for existing in collection.values()):
                raise DuplicateKeyError(
                    f"E11000 duplicate key error collection: {name} index: {field}_1 dup key: {value}"
                )

        collection[key] = copy.deepcopy(document)
        return copy.deepcopy(document)

    def _get(self, name: str, document_id: Any) -> Optional[Document]:
        document = self._collection(name).get(str(document_id))
        return copy.deepcopy(document) if document is not None else None

    def _find_one(self, name: str, predicate: Callable[[Document], bool]) -> Optional[Document]:
        for document in self._collection(name).values():
            if predicate(document):
                return copy.deepcopy(document)
        return None

    def _page(
        self,
        name: str,
        predicate: Callable[[Document], bool],
        sort_by: str,
        descending: bool,
        skip: int,
        limit: int,
    ) -> Tuple[List[Document], int]:
        matches = [document for document in self._collection(name).values() if predicate(document)]
        matches.sort(key=_sort_key(sort_by), reverse=descending)
        page = matches[skip:skip + limit]
        return [copy.deepcopy(document) for document in page], len(matches)

    # Products

    async def insert_product(self, document: Document, session: Any = None) -> Document:
        async with self._guard(session):
            return self._insert("products", document)

    async def get_product(self, product_id: str, session: Any = None) -> Optional[Document]:
        async with self._guard(session):
            return self._get("products", product_id)

    async def find_products(self, product_ids: List[str], session: Any = None) -> List[Document]:
        async with self._guard(session):
            found = (self._get("products", product_id) for product_id in dict.fromkeys(product_ids))
            return [product for product in found if product is not None]

    async def list_products(self, query: ProductQueryParams) -> Tuple[List[Document], int]:
        def matches(product: Document) -> bool:
            if query.name and not _contains(product.get("name"), query.name):
                return False
            if query.in_stock is True and product.get("stock", 0) <= 0:
                return False
            if query.in_stock is False and product.get("stock", 0) > 0:
                return False
            return True

        async with self._guard(None):
            return self._page("products", matches, "created_at", True, query.offset, query.limit)

    async def adjust_product_inventory(
        self,
        product_id: str,
        stock_delta: int,
        sales_delta: int,
        min_stock: Optional[int] = None,
        session: Any = None,
    ) -> bool:
        async with self._guard(session):
            product = self._collection("products").get(str(product_id))
            if product is None:
                return False
            if min_stock is not None and product.get("stock", 0) < min_stock:
                return False
            product["stock"] = product.get("stock", 0) + stock_delta
            product["sales"] = product.get("sales", 0) + sales_delta
            product["updated_at"] = clock.utcnow()
            return True

    # Coupons

    async def insert_coupon(self, document: Document, session: Any = None) -> Document:
        async with self._guard(session):
            return self._insert("coupons", document)

    async def get_coupon_by_code(self, code: str, session: Any = None) -> Optional[Document]:
        async with self._guard(session):
            return self._find_one("coupons", lambda coupon: coupon.get("code") == code)

    async def increment_coupon_usage(
        self, coupon_id: str, max_usage: Optional[int] = None, session: Any = None
    ) -> bool:
        async with self._guard(session):
            coupon = self._collection("coupons").get(str(coupon_id))
            if coupon is None:
                return False
            if max_usage is not None and coupon.get("used_count", 0) >= max_usage:
                return False
            coupon["used_count"] = coupon.get("used_count", 0) + 1
            coupon["updated_at"] = clock.utcnow()
            return True

    # Orders

    async def insert_order(self, document: Document, session: Any = None) -> Document:
        async with self._guard(session):
            return self._insert("orders", document)

    async def get_order(self, order_id: str, session: Any = None) -> Optional[Document]:
        async with self._guard(session):
            return self._get("orders", order_id)

    async def order_number_exists(self, order_number: str, session: Any = None) -> bool:
        async with self._guard(session):
            return self._find_one("orders", lambda order: order.get("order_number") == order_number) is not None

    async def find_recent_order(
        self, customer_id: str, total: float, since: datetime, session: Any = None
    ) -> Optional[Document]:
        def matches(order: Document) -> bool:
            created_at = order.get("created_at")
            return (
                order.get("customer_id") == customer_id
                and order.get("total") == total
                and created_at is not None
                and ensure_utc(created_at) >= ensure_utc(since)
            )

        async with self._guard(session):
            orders, _ = self._page("orders", matches, "created_at", True, 0, 1)
            return orders[0] if orders else None

    async def find_order_by_idempotency_key(self, key: str, session: Any = None) -> Optional[Document]:
        async with self._guard(session):
            return self._find_one("orders", lambda order: order.get("idempotency_key") == key)

    async def update_order(
        self,
        order_id: str,
        updates: Document,
        expected: Optional[Document] = None,
        session: Any = None,
    ) -> Optional[Document]:
        async with self._guard(session):
            order = self._collection("orders").get(str(order_id))
            if order is None:
                return None
            for field, value in (expected or {}).items():
                if order.get(field) != value:
                    return None
            order.update(copy.deepcopy(updates))
            return copy.deepcopy(order)

    def _order_matcher(self, query: Optional[OrderQueryParams]) -> Callable[[Document], bool]:
        if query is None:
            return lambda order: True

        status = query.status_filter()
        payment_status = query.payment_status_filter()

        def matches(order: Document) -> bool:
            if query.customer_id and order.get("customer_id") != query.customer_id:
                return False
            if query.search and not any(
                _contains(order.get(field), query.search)
                for field in ("order_number", "tracking_number", "customer_name", "customer_email")
            ):
                return False
            if status and order.get("status") != status:
                return False
            if payment_status and order.get("payment_status") != payment_status:
                return False
            return _in_range(order.get("created_at"), query.date_from, query.date_to)

        return matches

    async def list_orders(self, query: OrderQueryParams) -> Tuple[List[Document], int]:
        async with self._guard(None):
            return self._page(
                "orders",
                self._order_matcher(query),
                query.sort_by,
                query.sort_order == "desc",
                (query.page - 1) * query.limit,
                query.limit,
            )

    async def aggregate_orders(self, query: Optional[OrderQueryParams] = None) -> Document:
        matches = self._order_matcher(query)
        summary: Document = {"count": 0, "total_value": 0.0, "status_counts": {}, "payment_status_counts": {}}

        async with self._guard(None):
            for order in self._collection("orders").values():
                if not matches(order):
                    continue
                summary["count"] += 1
                summary["total_value"] += order.get("total", 0)
                status_counts = summary["status_counts"]
                status_counts[order["status"]] = status_counts.get(order["status"], 0) + 1
                payment_counts = summary["payment_status_counts"]
                payment_counts[order["payment_status"]] = payment_counts.get(order["payment_status"], 0) + 1

        return summary

    # Invoices

    async def insert_invoice(self, document: Document, session: Any = None) -> Document:
        async with self._guard(session):
            return self._insert("invoices", document)

    async def get_invoice(self, invoice_id: str, session: Any = None) -> Optional[Document]:
        async with self._guard(session):
            return self._get("invoices", invoice_id)

    async def get_invoice_by_number(
        self, invoice_number: Optional[str] = None, order_number: Optional[str] = None, session: Any = None
    ) -> Optional[Document]:
        if not invoice_number and not order_number:
            return None

        def matches(invoice: Document) -> bool:
            return bool(
                (invoice_number and invoice.get("invoice_number") == invoice_number)
                or (order_number and invoice.get("order_number") == order_number)
            )

        async with self._guard(session):
            return self._find_one("invoices", matches)

    async def update_invoice(self, invoice_id: str, updates: Document, session: Any = None) -> Optional[Document]:
        async with self._guard(session):
            invoice = self._collection("invoices").get(str(invoice_id))
            if invoice is None:
                return None
            for field in UNIQUE_FIELDS["invoices"]:
                value = updates.get(field)
                if value is None:
                    continue
                for key, other in self._collection("invoices").items():
                    if key != str(invoice_id) and other.get(field) == value:
                        raise DuplicateKeyError(
                            f"E11000 duplicate key error collection: invoices index: {field}_1 dup key: {value}"
                        )
            invoice.update(copy.deepcopy(updates))
            return copy.deepcopy(invoice)

    async def delete_invoice(self, invoice_id: str, session: Any = None) -> bool:
        async with self._guard(session):
            return self._collection("invoices").pop(str(invoice_id), None) is not None

    def _invoice_matcher(self, query: InvoiceQueryParams) -> Callable[[Document], bool]:
        payment_status = query.payment_status_filter()

        def matches(invoice: Document) -> bool:
            customer = invoice.get("customer") or {}
            if query.search and not any(
                _contains(value, query.search)
                for value in (
                    invoice.get("invoice_number"),
                    invoice.get("order_number"),
                    customer.get("name"),
                    customer.get("email"),
                )
            ):
                return False
            if payment_status and invoice.get("payment_status") != payment_status:
                return False
            if query.customer_id and customer.get("id") != query.customer_id:
                return False
            return _in_range(invoice.get("invoice_date"), query.date_from, query.date_to)

        return matches

    async def list_invoices(self, query: InvoiceQueryParams) -> Tuple[List[Document], int]:
        async with self._guard(None):
            return self._page(
                "invoices",
                self._invoice_matcher(query),
                query.sort_by,
                query.sort_order == "desc",
                (query.page - 1) * query.limit,
                query.limit,
            )

    async def aggregate_invoices(self, query: InvoiceQueryParams) -> Dict[str, Dict[str, float]]:
        matches = self._invoice_matcher(query)
        groups: Dict[str, Dict[str, float]] = {}

        async with self._guard(None):
            for invoice in self._collection("invoices").values():
                if not matches(invoice):
                    continue
                group = groups.setdefault(invoice["payment_status"], {"count": 0, "amount": 0.0})
                group["count"] += 1
                group["amount"] += invoice.get("total", 0)

        return groups

    # Abuse protection

    async def get_rate_limit(self, key: str, session: Any = None) -> Optional[Document]:
        async with self._guard(session):
            return self._get("rate_limits", key)

    async def save_rate_limit(self, key: str, count: int, last_request: int, session: Any = None) -> None:
        async with self._guard(session):
            self._collection("rate_limits")[key] = {
                "_id": key,
                "key": key,
                "count": count,
                "last_request": last_request,
            }

    async def increment_rate_limit(self, key: str, last_request: int, session: Any = None) -> None:
        async with self._guard(session):
            record = self._collection("rate_limits").get(key)
            if record is not None:
                record["count"] += 1
                record["last_request"] = last_request

    async def get_blocked_ip(self, ip: str) -> Optional[Document]:
        async with self._guard(None):
            return self._get("blocked_ips", ip)

    async def delete_blocked_ip(self, ip: str) -> None:
        async with self._guard(None):
            self._collection("blocked_ips").pop(ip, None)

    async def upsert_blocked_ip(self, ip: str, reason: Optional[str], expires_at: Optional[datetime]) -> Document:
        async with self._guard(None):
            entry = self._collection("blocked_ips").setdefault(ip, {"_id": ip, "ip": ip})
            entry.update({"reason": reason, "expires_at": expires_at})
            return copy.deepcopy(entry)
