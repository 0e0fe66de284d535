from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from storefront.schemas.base import BaseResponseSchema


class CommissionResponse(BaseResponseSchema):
    id: UUID
    user_id: UUID
    commission_type: str
    status: str
    amount: Decimal
    rate: Optional[Decimal] = None
    order_amount: Optional[Decimal] = None
    related_entity_type: str
    related_id: UUID
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    payment_reference: Optional[str] = None
    created_at: datetime


class CommissionListResponse(BaseModel):
    items: List[CommissionResponse]
    total: int
    page: int
    size: int
    pages: int


class PendingCommissionsResponse(CommissionListResponse):
    total_amount: Decimal


class CommissionAccrualResult(BaseModel):
    """Outcome of one accrual path (referral or fulfillment)."""
    commission_type: str
    created: bool
    commission_id: Optional[UUID] = None
    amount: Optional[Decimal] = None
    status: Optional[str] = None
    message: str


class CommissionCalculationResponse(BaseModel):
    message: str
    commission_id: Optional[UUID] = None
    amount: Optional[Decimal] = None
    status: Optional[str] = None
    results: List[CommissionAccrualResult] = []


class CommissionPayoutRequest(BaseModel):
    commission_ids: List[UUID] = Field(..., min_length=1)
    payment_reference: str = Field(..., min_length=1, max_length=255)


class CommissionPayoutResponse(BaseModel):
    paid: List[UUID]
    skipped: List[UUID]
    total_paid: Decimal
    message: str


class CommissionSummary(BaseModel):
    pending_amount: Decimal
    approved_amount: Decimal
    paid_amount: Decimal
    cancelled_amount: Decimal
    total_earned: Decimal


class MyCommissionsResponse(BaseModel):
    summary: CommissionSummary
    items: List[CommissionResponse]
