"""
Minimal catalog operations: enough to seed and inspect the products whose
stock and sales the order services adjust.
"""
import logging
from typing import Any

from pymongo.errors import DuplicateKeyError

from ..errors import BusinessRuleViolation, NotFoundError
from ..models.product import ProductDocument
from ..repositories.base import Document, OrderStore
from ..schemas.common import ActionResult
from ..schemas.product import CreateProductRequest, ProductQueryParams, ProductsListResponse
from ..utils import clock
from ..utils.serializers import serialize_doc, serialize_docs
from .actions import action
from .validation import require_valid

logger = logging.getLogger(__name__)


@action("Failed to create product")
async def create_product(store: OrderStore, payload: Any) -> ActionResult:
    request = require_valid(CreateProductRequest, payload)
    now = clock.utcnow()

    document = ProductDocument(**request.model_dump(), created_at=now, updated_at=now).to_document()
    try:
        created = await store.insert_product(document)
    except DuplicateKeyError:
        raise BusinessRuleViolation("Product already exists", errors={"id": [f"Product {request.id} already exists"]})

    logger.info(f"📦 Product '{request.name}' created with stock {request.stock}")
    return ActionResult.ok("Product created successfully", data=serialize_doc(created), status_code=201)


async def get_product(store: OrderStore, product_id: str) -> Document:
    product = await store.get_product(product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return serialize_doc(product)


async def list_products(store: OrderStore, query: ProductQueryParams) -> ProductsListResponse:
    products, total = await store.list_products(query)
    return ProductsListResponse(
        products=serialize_docs(products),
        total=total,
        limit=query.limit,
        offset=query.offset,
        has_more=query.offset + len(products) < total,
    )
