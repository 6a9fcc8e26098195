# main.py
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .config import get_settings, get_store_manager, get_store, lifespan, StoreManager
from .errors import OrderServiceError
from .repositories import OrderStore
from .schemas import (
    ActionResult,
    ApplyCouponRequest,
    BlockIpRequest,
    HealthCheckResponse,
    InvoiceQueryParams,
    InvoicesListResponse,
    OrderCreationResult,
    OrderQueryParams,
    OrderSummaryStats,
    OrdersListResponse,
    ProductQueryParams,
    ProductsListResponse,
    RefundOrderRequest,
    RootResponse,
    UpdateOrderStatusRequest,
)
from .services import coupons, invoices, order_creation, order_lifecycle, order_queries, products, rate_limit
from .utils import clock
from .utils.dependencies import get_client_ip, get_current_user, invoice_query_params, order_query_params

settings = get_settings()

# Setup logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description=settings.app_description,
    version=settings.app_version,
    lifespan=lifespan
)


def envelope_response(result: Union[ActionResult, OrderCreationResult]) -> JSONResponse:
    """Answer with the envelope as body and its status code."""
    return JSONResponse(status_code=result.status_code, content=jsonable_encoder(result))


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError) -> JSONResponse:
    """Map errors raised on read paths to JSON responses."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "error_type": type(exc).__name__},
    )


# API Endpoints

@app.get("/", response_model=RootResponse, tags=["Root"])
async def root():
    """Root endpoint - Always accessible"""
    return RootResponse(
        message=f"Welcome to {settings.app_name}",
        version=settings.app_version,
        docs="/docs",
        health="/health",
        status="running",
        timestamp=clock.utcnow().isoformat()
    )


@app.get("/health", response_model=HealthCheckResponse, tags=["Health"])
async def health_check(manager: StoreManager = Depends(get_store_manager)):
    """Health check endpoint - Always accessible"""
    try:
        if manager.is_connected() and await manager.get_store().ping():
            db_status = "connected"
        else:
            db_status = "disconnected"
    except Exception as e:
        db_status = f"error: {str(e)}"

    return HealthCheckResponse(
        status="healthy",
        database=db_status,
        timestamp=clock.utcnow().isoformat(),
        version=settings.app_version
    )


# Products

@app.post("/products", status_code=201, tags=["Products"])
async def create_product(payload: Dict[str, Any] = Body(...), store: OrderStore = Depends(get_store)):
    """Create a catalog product"""
    return envelope_response(await products.create_product(store, payload))


@app.get("/products", response_model=ProductsListResponse, tags=["Products"])
async def list_products(
    name: Optional[str] = Query(None, description="Filter by product name (supports partial matching)"),
    in_stock: Optional[bool] = Query(None, description="Filter products in stock"),
    limit: int = Query(10, ge=1, le=100, description="Number of products to return"),
    offset: int = Query(0, ge=0, description="Number of products to skip"),
    store: OrderStore = Depends(get_store)
):
    """List products with optional filtering and pagination"""
    query = ProductQueryParams(name=name, in_stock=in_stock, limit=limit, offset=offset)
    return await products.list_products(store, query)


@app.get("/products/{product_id}", tags=["Products"])
async def get_product(product_id: str, store: OrderStore = Depends(get_store)):
    """Get a specific product by ID"""
    return await products.get_product(store, product_id)


# Coupons

@app.post("/coupons", status_code=201, tags=["Coupons"])
async def create_coupon(payload: Dict[str, Any] = Body(...), store: OrderStore = Depends(get_store)):
    """Create a coupon"""
    return envelope_response(await coupons.create_coupon(store, payload))


@app.post("/coupons/apply", tags=["Coupons"])
async def apply_coupon(request: ApplyCouponRequest, store: OrderStore = Depends(get_store)):
    """Preview the discount of a coupon on a cart subtotal"""
    return envelope_response(await coupons.apply_coupon(store, request.code, request.subtotal))


# Orders

@app.post("/orders", status_code=201, tags=["Orders"])
async def create_order(
    payload: Dict[str, Any] = Body(...),
    user_id: Optional[str] = Depends(get_current_user),
    client_ip: str = Depends(get_client_ip),
    store: OrderStore = Depends(get_store)
):
    """Create an order on behalf of a customer (admin entry)"""
    return envelope_response(await order_creation.create_order(store, payload, user_id, client_ip))


@app.post("/checkout", status_code=201, tags=["Orders"])
async def checkout(
    payload: Dict[str, Any] = Body(...),
    client_ip: str = Depends(get_client_ip),
    store: OrderStore = Depends(get_store)
):
    """Place an order from a storefront cart"""
    result = await order_creation.checkout_from_cart(
        store,
        payload.get("cart_items") or [],
        payload.get("customer") or {},
        coupon_code=payload.get("coupon_code"),
        client_ip=client_ip,
    )
    return envelope_response(result)


@app.get("/orders", response_model=OrdersListResponse, tags=["Orders"])
async def list_orders(
    query: OrderQueryParams = Depends(order_query_params),
    store: OrderStore = Depends(get_store)
):
    """List orders with filtering, sorting and pagination"""
    return await order_queries.list_orders(store, query)


@app.get("/orders/stats", response_model=OrderSummaryStats, tags=["Orders"])
async def order_stats(store: OrderStore = Depends(get_store)):
    """Order counts and value over all orders"""
    return await order_queries.get_order_stats(store)


@app.get("/orders/{order_id}", tags=["Orders"])
async def get_order(order_id: str, store: OrderStore = Depends(get_store)):
    """Get a specific order by ID"""
    return await order_queries.get_order(store, order_id)


@app.get("/customers/{customer_id}/orders", response_model=List[Dict[str, Any]], tags=["Orders"])
async def get_customer_orders(
    customer_id: str,
    only_paid: bool = Query(False, description="Only orders that were paid"),
    store: OrderStore = Depends(get_store)
):
    """Order history of a customer, newest first"""
    return await order_queries.get_order_history(store, customer_id, only_paid)


@app.put("/orders/{order_id}", tags=["Orders"])
async def update_order(order_id: str, form: Dict[str, Any] = Body(...), store: OrderStore = Depends(get_store)):
    """Edit an order from the admin form"""
    return envelope_response(await order_lifecycle.update_order(store, order_id, form))


@app.patch("/orders/{order_id}/status", tags=["Orders"])
async def update_order_status(
    order_id: str,
    status_update: UpdateOrderStatusRequest,
    store: OrderStore = Depends(get_store)
):
    """Move an order to another status"""
    result = await order_lifecycle.update_order_status(store, order_id, status_update.status, status_update.reason)
    return envelope_response(result)


@app.post("/orders/{order_id}/refund", tags=["Orders"])
async def refund_order(order_id: str, refund: RefundOrderRequest, store: OrderStore = Depends(get_store)):
    """Refund a paid order and restock its items"""
    return envelope_response(await order_creation.refund_order(store, order_id, refund.reason))


@app.post("/orders/{order_id}/invoice", status_code=201, tags=["Invoices"])
async def create_invoice_for_order(
    order_id: str,
    user_id: Optional[str] = Depends(get_current_user),
    client_ip: str = Depends(get_client_ip),
    store: OrderStore = Depends(get_store)
):
    """Issue the invoice of an order"""
    return envelope_response(await invoices.create_invoice_from_order(store, order_id, user_id, client_ip))


# Invoices

@app.post("/invoices", status_code=201, tags=["Invoices"])
async def create_invoice(
    payload: Dict[str, Any] = Body(...),
    user_id: Optional[str] = Depends(get_current_user),
    client_ip: str = Depends(get_client_ip),
    store: OrderStore = Depends(get_store)
):
    """Create an invoice by hand"""
    return envelope_response(await invoices.create_invoice(store, payload, user_id, client_ip))


@app.get("/invoices", response_model=InvoicesListResponse, tags=["Invoices"])
async def list_invoices(
    query: InvoiceQueryParams = Depends(invoice_query_params),
    store: OrderStore = Depends(get_store)
):
    """List invoices with filtering, sorting and pagination"""
    return await invoices.list_invoices(store, query)


@app.get("/invoices/{invoice_id}", tags=["Invoices"])
async def get_invoice(invoice_id: str, store: OrderStore = Depends(get_store)):
    """Get a specific invoice by ID"""
    return await invoices.get_invoice(store, invoice_id)


@app.put("/invoices/{invoice_id}", tags=["Invoices"])
async def update_invoice(
    invoice_id: str,
    payload: Dict[str, Any] = Body(...),
    user_id: Optional[str] = Depends(get_current_user),
    client_ip: str = Depends(get_client_ip),
    store: OrderStore = Depends(get_store)
):
    """Replace the contents of an invoice"""
    return envelope_response(await invoices.update_invoice(store, invoice_id, payload, user_id, client_ip))


@app.delete("/invoices/{invoice_id}", tags=["Invoices"])
async def delete_invoice(
    invoice_id: str,
    user_id: Optional[str] = Depends(get_current_user),
    client_ip: str = Depends(get_client_ip),
    store: OrderStore = Depends(get_store)
):
    """Delete an invoice"""
    return envelope_response(await invoices.delete_invoice(store, invoice_id, user_id, client_ip))


# Security

@app.post("/security/blocked-ips", status_code=201, tags=["Security"])
async def block_ip(
    request: BlockIpRequest,
    user_id: Optional[str] = Depends(get_current_user),
    client_ip: str = Depends(get_client_ip),
    store: OrderStore = Depends(get_store)
):
    """Block a network address from mutating endpoints"""
    return envelope_response(
        await rate_limit.block_ip(
            store, request.ip, user_id, request.reason, request.duration_seconds, client_ip=client_ip
        )
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
