"""
Read paths for orders. These raise ``NotFoundError`` instead of returning
envelopes; the HTTP layer maps it to a 404.
"""
from typing import List, Optional

from ..errors import NotFoundError
from ..models.order import PaymentStatus
from ..repositories.base import Document, OrderStore
from ..schemas.common import PaginationMeta
from ..schemas.order import OrderQueryParams, OrderSummaryStats, OrdersListResponse
from ..utils.cache import ORDERS_TAG, listing_cache
from ..utils.money import round_money
from ..utils.serializers import serialize_doc, serialize_docs

HISTORY_PAGE_SIZE = 100


def build_order_summary(aggregate: Document) -> OrderSummaryStats:
    count = aggregate.get("count", 0)
    total_value = round_money(aggregate.get("total_value", 0))
    return OrderSummaryStats(
        total_orders=count,
        total_value=total_value,
        average_order_value=round_money(total_value / count) if count else 0.0,
        status_counts=aggregate.get("status_counts", {}),
        payment_status_counts=aggregate.get("payment_status_counts", {}),
    )


async def get_order(store: OrderStore, order_id: str) -> Document:
    order = await store.get_order(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return serialize_doc(order)


async def get_order_history(store: OrderStore, customer_id: str, only_paid: bool = False) -> List[Document]:
    """All orders of a customer, newest first."""
    query = OrderQueryParams(
        customer_id=customer_id,
        payment_status=PaymentStatus.PAID.value if only_paid else None,
        limit=HISTORY_PAGE_SIZE,
    )

    orders: List[Document] = []
    while True:
        page, total = await store.list_orders(query)
        orders.extend(page)
        if not page or len(orders) >= total:
            break
        query = query.model_copy(update={"page": query.page + 1})
    return serialize_docs(orders)


async def list_orders(store: OrderStore, query: OrderQueryParams) -> OrdersListResponse:
    """Admin order listing with pagination and a summary over all matches."""
    cache_key = query.model_dump_json()
    cached: Optional[OrdersListResponse] = listing_cache.get(ORDERS_TAG, cache_key)
    if cached is not None:
        return cached

    orders, total = await store.list_orders(query)
    aggregate = await store.aggregate_orders(query)

    response = OrdersListResponse(
        orders=serialize_docs(orders),
        pagination=PaginationMeta.build(query.page, query.limit, total),
        summary=build_order_summary(aggregate),
    )
    listing_cache.set(ORDERS_TAG, cache_key, response)
    return response


async def get_order_stats(store: OrderStore) -> OrderSummaryStats:
    return build_order_summary(await store.aggregate_orders())
