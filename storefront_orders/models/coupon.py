from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class CouponDocument(BaseModel):
    """Coupon document. ``used_count`` never exceeds ``max_usage`` when a cap is set."""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    id: Optional[str] = Field(None, alias="_id", description="Coupon ID")
    code: str = Field(..., min_length=1, max_length=50, description="Unique coupon code")
    description: Optional[str] = None
    discount_type: DiscountType = Field(..., description="PERCENTAGE or FIXED")
    discount_value: float = Field(..., ge=0)
    max_usage: Optional[int] = Field(None, ge=0, description="Usage cap, unlimited when unset")
    used_count: int = Field(0, ge=0)
    min_order_value: Optional[float] = Field(None, ge=0)
    expires_at: Optional[datetime] = None
    active: bool = True

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_document(self) -> dict:
        return self.model_dump(exclude={"id"})
