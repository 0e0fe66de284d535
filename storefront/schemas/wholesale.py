from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, HttpUrl

from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema


class BusinessAddress(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    province: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = "Canada"


class WholesaleApplicationCreate(BaseCreateSchema):
    company_name: str = Field(..., min_length=1, max_length=200)
    tax_id: str = Field(..., min_length=1, max_length=50)
    business_type: str = Field(..., min_length=1, max_length=100)
    address: BusinessAddress
    phone: str = Field(..., min_length=1, max_length=30)
    website: Optional[HttpUrl] = None
    notes: Optional[str] = None


class WholesaleApplyResponse(BaseModel):
    success: bool = True
    message: str
    application_id: UUID


class WholesaleApplicationResponse(BaseResponseSchema):
    id: UUID
    user_id: UUID
    company_name: str
    tax_id: str
    business_type: str
    address: dict
    phone: str
    website: Optional[str] = None
    notes: Optional[str] = None
    status: str
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    reviewer_notes: Optional[str] = None
    created_at: datetime


class WholesaleApplicationListResponse(BaseModel):
    items: List[WholesaleApplicationResponse]
    total: int
    page: int
    size: int
    pages: int


class WholesaleApproveRequest(BaseModel):
    notes: Optional[str] = None


class WholesaleRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, description="Shown to the applicant")
