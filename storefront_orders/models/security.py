from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class RateLimitRecord(BaseModel):
    """Request counter for one actor or network address."""
    key: str = Field(..., min_length=1, description="Actor ID or IP address")
    count: int = Field(..., ge=0, description="Requests seen in the current window")
    last_request: int = Field(..., description="Epoch milliseconds of the last counted request")


class BlockedIp(BaseModel):
    ip: str = Field(..., min_length=1)
    reason: Optional[str] = None
    expires_at: Optional[datetime] = Field(None, description="Block lifts at this time; permanent when unset")
