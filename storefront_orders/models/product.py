"""
Product data models for database documents.
Products belong to the catalog; the order services only read names and SKUs
and adjust ``stock`` and ``sales``.
"""
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class ProductVariant(BaseModel):
    """Product variant, embedded in the product."""
    id: str = Field(..., min_length=1, description="Variant ID")
    name: str = Field(..., min_length=1, description="Variant name, e.g. 'Red / XL'")
    sku: Optional[str] = Field(None, description="Variant SKU")
    price_modifier: float = Field(0, description="Added to the product price")
    stock: int = Field(0, ge=0, description="Variant stock")


class ProductDocument(BaseModel):
    """
    Product document model representing the MongoDB document structure.
    This matches how products are stored in the database.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, alias="_id", description="Product ID")
    name: str = Field(..., min_length=1, max_length=200, description="Product name")
    description: Optional[str] = Field(None, description="Product description")
    price: float = Field(..., ge=0, description="Product price")
    sku: Optional[str] = Field(None, description="Product SKU")
    variants: List[ProductVariant] = Field(default_factory=list, description="Product variants")

    stock: int = Field(0, ge=0, description="Available stock")
    sales: int = Field(0, ge=0, description="Cumulative units sold")

    # Timestamps
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    def to_document(self) -> dict:
        document = self.model_dump(exclude={"id"})
        if self.id:
            document["_id"] = self.id
        return document
