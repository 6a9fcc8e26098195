"""
Common schemas used across the API.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class HealthCheckResponse(BaseModel):
    """Response schema for health check endpoint."""
    status: str = Field(..., description="Application health status")
    database: str = Field(..., description="Database connection status")
    timestamp: str = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")


class RootResponse(BaseModel):
    """Response schema for root endpoint."""
    message: str = Field(..., description="Welcome message")
    version: str = Field(..., description="API version")
    docs: str = Field(..., description="Documentation URL")
    health: str = Field(..., description="Health check URL")
    status: str = Field(..., description="Application status")
    timestamp: str = Field(..., description="Response timestamp")


class PaginationMeta(BaseModel):
    """Pagination metadata for list responses."""
    page: int = Field(..., description="Current page number")
    limit: int = Field(..., description="Items per page")
    total: int = Field(..., description="Total number of items")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool = Field(..., description="Whether a next page exists")
    has_prev: bool = Field(..., description="Whether a previous page exists")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        total_pages = (total + limit - 1) // limit if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page * limit < total,
            has_prev=page > 1,
        )


class ActionResult(BaseModel):
    """
    Uniform envelope returned by every mutating entry point.
    Callers branch on ``success``; ``errors`` is keyed by field name.
    """
    success: bool = Field(..., description="Operation success status")
    message: str = Field(..., description="Human-readable outcome")
    data: Optional[Any] = Field(None, description="Resulting document")
    errors: Optional[Dict[str, List[str]]] = Field(None, description="Field-keyed validation errors")
    status_code: int = Field(200, exclude=True)

    @classmethod
    def ok(cls, message: str, data: Any = None, status_code: int = 200) -> "ActionResult":
        return cls(success=True, message=message, data=data, status_code=status_code)

    @classmethod
    def failure(
        cls,
        message: str,
        errors: Optional[Dict[str, List[str]]] = None,
        status_code: int = 400,
    ) -> "ActionResult":
        return cls(success=False, message=message, errors=errors, status_code=status_code)


class OrderCreationResult(BaseModel):
    """Envelope returned by the order creation entry points."""
    success: bool = Field(..., description="Whether the order was created")
    order: Optional[Dict[str, Any]] = Field(None, description="Created order")
    error: Optional[str] = Field(None, description="Failure reason")
    errors: Optional[Dict[str, List[str]]] = Field(None, description="Field-keyed validation errors")
    status_code: int = Field(201, exclude=True)

    @classmethod
    def ok(cls, order: Dict[str, Any], status_code: int = 201) -> "OrderCreationResult":
        return cls(success=True, order=order, status_code=status_code)

    @classmethod
    def failure(
        cls,
        message: str,
        errors: Optional[Dict[str, List[str]]] = None,
        status_code: int = 400,
    ) -> "OrderCreationResult":
        return cls(success=False, error=message, errors=errors, status_code=status_code)
