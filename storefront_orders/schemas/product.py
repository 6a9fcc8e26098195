"""
Product API schemas for request/response validation.
These models define the structure of data sent to and from the API.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from ..models.product import ProductVariant


# Request Schemas

class CreateProductRequest(BaseModel):
    """Request schema for creating a catalog product."""
    id: Optional[str] = Field(None, min_length=1, description="Explicit product ID, generated when omitted")
    name: str = Field(..., min_length=1, max_length=200, description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: float = Field(..., ge=0, description="Product price")
    sku: Optional[str] = Field(None, max_length=100, description="Product SKU")
    variants: List[ProductVariant] = Field(default_factory=list, description="Product variants")
    stock: int = Field(0, ge=0, description="Stock quantity")
    sales: int = Field(0, ge=0, description="Units already sold")

    @field_validator("variants")
    @classmethod
    def validate_variants(cls, v):
        ids = [variant.id for variant in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Variant IDs must be unique")
        return v


class ProductQueryParams(BaseModel):
    """Query parameters for product filtering and pagination."""
    name: Optional[str] = Field(None, description="Filter by product name (supports partial matching)")
    in_stock: Optional[bool] = Field(None, description="Only products with stock left")
    limit: int = Field(10, ge=1, le=100, description="Number of products to return")
    offset: int = Field(0, ge=0, description="Number of products to skip")


# Response Schemas

class ProductsListResponse(BaseModel):
    """Response schema for product list with pagination."""
    products: List[Dict[str, Any]] = Field(..., description="List of products")
    total: int = Field(..., description="Total number of products matching filters")
    limit: int = Field(..., description="Number of products returned")
    offset: int = Field(..., description="Number of products skipped")
    has_more: bool = Field(..., description="Whether there are more products available")
