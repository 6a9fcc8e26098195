"""
MongoDB backend built on motor.

Inventory, coupon usage and rate-limit counters are always changed with
relative ``$inc`` updates, never by writing back a previously read value.
Multi-document transactions require a replica set or sharded cluster.
"""
import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from ..schemas.invoice import InvoiceQueryParams
from ..schemas.order import OrderQueryParams
from ..schemas.product import ProductQueryParams
from ..utils import clock
from ..utils.clock import ensure_utc
from .base import Document, OrderStore

logger = logging.getLogger(__name__)


def to_object_id(value: Any) -> Any:
    """Use ObjectId for ids that look like one; keep other ids (e.g. seeded slugs) as given."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _contains(text: str) -> Dict[str, str]:
    return {"$regex": re.escape(text), "$options": "i"}


def _date_range(date_from: Optional[datetime], date_to: Optional[datetime]) -> Dict[str, datetime]:
    bounds = {}
    if date_from:
        bounds["$gte"] = ensure_utc(date_from)
    if date_to:
        bounds["$lte"] = ensure_utc(date_to)
    return bounds


def build_order_filter(query: Optional[OrderQueryParams]) -> Dict[str, Any]:
    filter_query: Dict[str, Any] = {}
    if query is None:
        return filter_query

    if query.customer_id:
        filter_query["customer_id"] = query.customer_id

    if query.search:
        pattern = _contains(query.search)
        filter_query["$or"] = [
            {"order_number": pattern},
            {"tracking_number": pattern},
            {"customer_name": pattern},
            {"customer_email": pattern},
        ]

    status = query.status_filter()
    if status:
        filter_query["status"] = status

    payment_status = query.payment_status_filter()
    if payment_status:
        filter_query["payment_status"] = payment_status

    created = _date_range(query.date_from, query.date_to)
    if created:
        filter_query["created_at"] = created

    return filter_query


def build_invoice_filter(query: InvoiceQueryParams) -> Dict[str, Any]:
    filter_query: Dict[str, Any] = {}

    if query.search:
        pattern = _contains(query.search)
        filter_query["$or"] = [
            {"invoice_number": pattern},
            {"order_number": pattern},
            {"customer.name": pattern},
            {"customer.email": pattern},
        ]

    payment_status = query.payment_status_filter()
    if payment_status:
        filter_query["payment_status"] = payment_status

    if query.customer_id:
        filter_query["customer.id"] = query.customer_id

    invoice_date = _date_range(query.date_from, query.date_to)
    if invoice_date:
        filter_query["invoice_date"] = invoice_date

    return filter_query


class MongoOrderStore(OrderStore):
    """Order store backed by a motor database."""

    name = "mongo"

    def __init__(self, client: AsyncIOMotorClient, database: AsyncIOMotorDatabase):
        self.client = client
        self.database = database

    async def ping(self) -> bool:
        await self.client.admin.command("ping")
        return True

    async def create_indexes(self) -> None:
        """Create database indexes for uniqueness and lookups."""
        try:
            # Products collection indexes
            await self.database.products.create_index("name")
            await self.database.products.create_index("created_at")

            # Orders collection indexes
            await self.database.orders.create_index("order_number", unique=True)
            await self.database.orders.create_index(
                "idempotency_key",
                unique=True,
                partialFilterExpression={"idempotency_key": {"$type": "string"}},
            )
            await self.database.orders.create_index("customer_id")
            await self.database.orders.create_index("status")
            await self.database.orders.create_index("created_at")
            await self.database.orders.create_index("items.product_id")
            await self.database.orders.create_index([("customer_id", ASCENDING), ("created_at", DESCENDING)])

            # Coupons, invoices and abuse protection
            await self.database.coupons.create_index("code", unique=True)
            await self.database.coupons.create_index("expires_at")
            await self.database.invoices.create_index("invoice_number", unique=True)
            await self.database.invoices.create_index("order_number", unique=True)
            await self.database.invoices.create_index("payment_status")
            await self.database.rate_limits.create_index("key", unique=True)
            await self.database.blocked_ips.create_index("ip", unique=True)

            logger.info("✅ Database indexes created successfully")

        except Exception as index_error:
            logger.warning(f"⚠️  Failed to create indexes: {index_error}")

    async def close(self) -> None:
        self.client.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        async with await self.client.start_session() as session:
            async with session.start_transaction():
                yield session

    # Products

    async def insert_product(self, document: Document, session: Any = None) -> Document:
        if "_id" in document:
            document["_id"] = to_object_id(document["_id"])
        result = await self.database.products.insert_one(document, session=session)
        document["_id"] = result.inserted_id
        return document

    async def get_product(self, product_id: str, session: Any = None) -> Optional[Document]:
        return await self.database.products.find_one({"_id": to_object_id(product_id)}, session=session)

    async def find_products(self, product_ids: List[str], session: Any = None) -> List[Document]:
        object_ids = [to_object_id(product_id) for product_id in product_ids]
        cursor = self.database.products.find({"_id": {"$in": object_ids}}, session=session)
        return await cursor.to_list(length=None)

    async def list_products(self, query: ProductQueryParams) -> Tuple[List[Document], int]:
        filter_query: Dict[str, Any] = {}

        if query.name:
            filter_query["name"] = _contains(query.name)

        if query.in_stock is True:
            filter_query["stock"] = {"$gt": 0}
        elif query.in_stock is False:
            filter_query["stock"] = {"$lte": 0}

        total_count = await self.database.products.count_documents(filter_query)
        cursor = (
            self.database.products.find(filter_query)
            .sort("created_at", DESCENDING)
            .skip(query.offset)
            .limit(query.limit)
        )
        products = await cursor.to_list(length=query.limit)
        return products, total_count

    async def adjust_product_inventory(
        self,
        product_id: str,
        stock_delta: int,
        sales_delta: int,
        min_stock: Optional[int] = None,
        session: Any = None,
    ) -> bool:
        filter_query: Dict[str, Any] = {"_id": to_object_id(product_id)}
        if min_stock is not None:
            filter_query["stock"] = {"$gte": min_stock}

        result = await self.database.products.update_one(
            filter_query,
            {"$inc": {"stock": stock_delta, "sales": sales_delta}, "$set": {"updated_at": clock.utcnow()}},
            session=session,
        )
        return result.matched_count == 1

    # Coupons

    async def insert_coupon(self, document: Document, session: Any = None) -> Document:
        result = await self.database.coupons.insert_one(document, session=session)
        document["_id"] = result.inserted_id
        return document

    async def get_coupon_by_code(self, code: str, session: Any = None) -> Optional[Document]:
        return await self.database.coupons.find_one({"code": code}, session=session)

    async def increment_coupon_usage(
        self, coupon_id: str, max_usage: Optional[int] = None, session: Any = None
    ) -> bool:
        filter_query: Dict[str, Any] = {"_id": to_object_id(coupon_id)}
        if max_usage is not None:
            filter_query["used_count"] = {"$lt": max_usage}

        result = await self.database.coupons.update_one(
            filter_query,
            {"$inc": {"used_count": 1}, "$set": {"updated_at": clock.utcnow()}},
            session=session,
        )
        return result.matched_count == 1

    # Orders

    async def insert_order(self, document: Document, session: Any = None) -> Document:
        result = await self.database.orders.insert_one(document, session=session)
        document["_id"] = result.inserted_id
        return document

    async def get_order(self, order_id: str, session: Any = None) -> Optional[Document]:
        return await self.database.orders.find_one({"_id": to_object_id(order_id)}, session=session)

    async def order_number_exists(self, order_number: str, session: Any = None) -> bool:
        existing = await self.database.orders.find_one(
            {"order_number": order_number}, projection={"_id": 1}, session=session
        )
        return existing is not None

    async def find_recent_order(
        self, customer_id: str, total: float, since: datetime, session: Any = None
    ) -> Optional[Document]:
        return await self.database.orders.find_one(
            {"customer_id": customer_id, "total": total, "created_at": {"$gte": since}},
            sort=[("created_at", DESCENDING)],
            session=session,
        )

    async def find_order_by_idempotency_key(self, key: str, session: Any = None) -> Optional[Document]:
        return await self.database.orders.find_one({"idempotency_key": key}, session=session)

    async def update_order(
        self,
        order_id: str,
        updates: Document,
        expected: Optional[Document] = None,
        session: Any = None,
    ) -> Optional[Document]:
        filter_query = {"_id": to_object_id(order_id)}
        filter_query.update(expected or {})
        return await self.database.orders.find_one_and_update(
            filter_query,
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
            session=session,
        )

    async def list_orders(self, query: OrderQueryParams) -> Tuple[List[Document], int]:
        filter_query = build_order_filter(query)
        direction = ASCENDING if query.sort_order == "asc" else DESCENDING

        total_count = await self.database.orders.count_documents(filter_query)
        cursor = (
            self.database.orders.find(filter_query)
            .sort(query.sort_by, direction)
            .skip((query.page - 1) * query.limit)
            .limit(query.limit)
        )
        orders = await cursor.to_list(length=query.limit)
        return orders, total_count

    async def aggregate_orders(self, query: Optional[OrderQueryParams] = None) -> Document:
        pipeline = [
            {"$match": build_order_filter(query)},
            {
                "$facet": {
                    "totals": [
                        {"$group": {"_id": None, "count": {"$sum": 1}, "total_value": {"$sum": "$total"}}}
                    ],
                    "status": [{"$group": {"_id": "$status", "count": {"$sum": 1}}}],
                    "payment_status": [{"$group": {"_id": "$payment_status", "count": {"$sum": 1}}}],
                }
            },
        ]
        results = await self.database.orders.aggregate(pipeline).to_list(length=1)
        facets = results[0] if results else {"totals": [], "status": [], "payment_status": []}
        totals = facets["totals"][0] if facets["totals"] else {"count": 0, "total_value": 0}

        return {
            "count": totals["count"],
            "total_value": totals["total_value"],
            "status_counts": {row["_id"]: row["count"] for row in facets["status"]},
            "payment_status_counts": {row["_id"]: row["count"] for row in facets["payment_status"]},
        }

    # Invoices

    async def insert_invoice(self, document: Document, session: Any = None) -> Document:
        result = await self.database.invoices.insert_one(document, session=session)
        document["_id"] = result.inserted_id
        return document

    async def get_invoice(self, invoice_id: str, session: Any = None) -> Optional[Document]:
        return await self.database.invoices.find_one({"_id": to_object_id(invoice_id)}, session=session)

    async def get_invoice_by_number(
        self, invoice_number: Optional[str] = None, order_number: Optional[str] = None, session: Any = None
    ) -> Optional[Document]:
        clauses = []
        if invoice_number:
            clauses.append({"invoice_number": invoice_number})
        if order_number:
            clauses.append({"order_number": order_number})
        if not clauses:
            return None
        return await self.database.invoices.find_one({"$or": clauses}, session=session)

    async def update_invoice(self, invoice_id: str, updates: Document, session: Any = None) -> Optional[Document]:
        return await self.database.invoices.find_one_and_update(
            {"_id": to_object_id(invoice_id)},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
            session=session,
        )

    async def delete_invoice(self, invoice_id: str, session: Any = None) -> bool:
        result = await self.database.invoices.delete_one({"_id": to_object_id(invoice_id)}, session=session)
        return result.deleted_count == 1

    async def list_invoices(self, query: InvoiceQueryParams) -> Tuple[List[Document], int]:
        filter_query = build_invoice_filter(query)
        direction = ASCENDING if query.sort_order == "asc" else DESCENDING

        total_count = await self.database.invoices.count_documents(filter_query)
        cursor = (
            self.database.invoices.find(filter_query)
            .sort(query.sort_by, direction)
            .skip((query.page - 1) * query.limit)
            .limit(query.limit)
        )
        invoices = await cursor.to_list(length=query.limit)
        return invoices, total_count

    async def aggregate_invoices(self, query: InvoiceQueryParams) -> Dict[str, Dict[str, float]]:
        pipeline = [
            {"$match": build_invoice_filter(query)},
            {"$group": {"_id": "$payment_status", "count": {"$sum": 1}, "amount": {"$sum": "$total"}}},
        ]
        rows = await self.database.invoices.aggregate(pipeline).to_list(length=None)
        return {row["_id"]: {"count": row["count"], "amount": row["amount"]} for row in rows}

    # Abuse protection

    async def get_rate_limit(self, key: str, session: Any = None) -> Optional[Document]:
        return await self.database.rate_limits.find_one({"key": key}, session=session)

    async def save_rate_limit(self, key: str, count: int, last_request: int, session: Any = None) -> None:
        await self.database.rate_limits.update_one(
            {"key": key},
            {"$set": {"count": count, "last_request": last_request}},
            upsert=True,
            session=session,
        )

    async def increment_rate_limit(self, key: str, last_request: int, session: Any = None) -> None:
        await self.database.rate_limits.update_one(
            {"key": key},
            {"$inc": {"count": 1}, "$set": {"last_request": last_request}},
            session=session,
        )

    async def get_blocked_ip(self, ip: str) -> Optional[Document]:
        return await self.database.blocked_ips.find_one({"ip": ip})

    async def delete_blocked_ip(self, ip: str) -> None:
        await self.database.blocked_ips.delete_one({"ip": ip})

    async def upsert_blocked_ip(self, ip: str, reason: Optional[str], expires_at: Optional[datetime]) -> Document:
        return await self.database.blocked_ips.find_one_and_update(
            {"ip": ip},
            {"$set": {"reason": reason, "expires_at": expires_at}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
