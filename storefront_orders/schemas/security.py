from typing import Optional
from pydantic import BaseModel, Field


class BlockIpRequest(BaseModel):
    ip: str = Field(..., min_length=1, max_length=64, description="IP address to block")
    reason: Optional[str] = Field(None, max_length=500)
    duration_seconds: Optional[int] = Field(None, gt=0, description="Permanent when omitted")
