from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from storefront.schemas.base import BaseResponseSchema


class ReferrerInfo(BaseResponseSchema):
    id: UUID
    name: str
    role: str


class ReferralValidationResponse(BaseModel):
    valid: bool = True
    referrer: ReferrerInfo


class ReferredUserResponse(BaseResponseSchema):
    id: UUID
    name: str
    email: str
    is_active: bool
    created_at: datetime


class ReferralListResponse(BaseModel):
    items: List[ReferredUserResponse]
    total: int
    page: int
    size: int
    pages: int


class ReferralLinkResponse(BaseModel):
    referral_code: str
    referral_link: str
    message: Optional[str] = None
