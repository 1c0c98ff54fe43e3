from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.config import DEFAULT_EXPIRY_DAYS

CouponStatus = Literal["available", "claimed", "disabled"]


class CouponRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    status: CouponStatus
    claimed_by: Optional[str] = None
    claimed_at: Optional[datetime] = None
    expires_at: datetime
    created_at: datetime


class CouponCreatePayload(BaseModel):
    expiry_days: int = Field(DEFAULT_EXPIRY_DAYS, ge=1)


class CouponMutationResponse(BaseModel):
    message: str
    coupon: CouponRead


class ClaimRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    coupon_id: Optional[int] = None
    coupon_code: str
    ip_address: str
    session_id: str
    created_at: datetime
    coupon: Optional[CouponRead] = None


class ClaimCouponResponse(BaseModel):
    message: str
    code: str
    expires_at: datetime
    claimed_at: datetime


class ClaimStatusResponse(BaseModel):
    session_id: str
    can_claim: bool
    minutes_remaining: int
    wait_message: str
