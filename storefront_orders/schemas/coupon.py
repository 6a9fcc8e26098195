from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from ..models.coupon import DiscountType


class CreateCouponRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=500)
    discount_type: DiscountType
    discount_value: float = Field(..., ge=0)
    max_usage: Optional[int] = Field(None, ge=0)
    min_order_value: Optional[float] = Field(None, ge=0)
    expires_at: Optional[datetime] = None
    active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("discount_value")
    @classmethod
    def validate_percentage(cls, v, info):
        if info.data.get("discount_type") == DiscountType.PERCENTAGE and v > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return v


class ApplyCouponRequest(BaseModel):
    code: str = Field(..., min_length=1)
    subtotal: float = Field(..., ge=0)
