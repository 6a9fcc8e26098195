"""Pytest fixtures for the order service tests."""

import os

# Selected before the package reads its settings
os.environ["STORAGE_BACKEND"] = "memory"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from storefront_orders.config import get_settings, get_store
from storefront_orders.main import app
from storefront_orders.models import OrderDocument, OrderItemDocument, ShippingAddress
from storefront_orders.repositories import MemoryOrderStore
from storefront_orders.services.products import create_product
from storefront_orders.utils import clock as clock_module
from storefront_orders.utils.cache import listing_cache

START = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Stand-in for ``utils.clock.utcnow`` that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def clean_cache():
    listing_cache.clear()
    yield
    listing_cache.clear()


@pytest.fixture
def clock(monkeypatch):
    frozen = FrozenClock(START)
    monkeypatch.setattr(clock_module, "utcnow", frozen)
    return frozen


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def store():
    return MemoryOrderStore()


@pytest.fixture
async def product(store, clock):
    """Product p1: price 500, stock 10, no sales."""
    result = await create_product(
        store, {"id": "p1", "name": "Widget", "price": 500, "sku": "WID-1", "stock": 10, "sales": 0}
    )
    assert result.success
    return result.data


def order_payload(**overrides):
    payload = {
        "items": [{"product_id": "p1", "quantity": 2, "price": 500}],
        "subtotal": 1000,
        "tax": 0,
        "shipping": 0,
        "total": 1000,
        "payment_method": "CARD",
    }
    payload.update(overrides)
    return payload


async def insert_order(store, status="PENDING", payment_status="PENDING", **fields):
    """Persist an order directly, bypassing inventory."""
    document = OrderDocument(
        order_number=fields.pop("order_number", f"ORD-{status[:4]}{payment_status[:4]}"),
        status=status,
        payment_status=payment_status,
        items=[
            OrderItemDocument(
                product_id="p1", product_name="Widget", quantity=1, price=500, total=500, sku="WID-1"
            )
        ],
        shipping_address=ShippingAddress(full_name="Ada Lovelace", city="London", country="UK"),
        subtotal=500,
        total=500,
        customer_id="c1",
        customer_name="Ada Lovelace",
        customer_email="ada@example.com",
        created_at=START,
        updated_at=START,
        **fields,
    ).to_document()
    created = await store.insert_order(document)
    return str(created["_id"])


@pytest.fixture
def client(store, clock):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
