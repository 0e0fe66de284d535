from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from storefront.models.discount_code import DiscountType
from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class DiscountApplyRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    order_id: UUID


class DiscountApplyResponse(BaseModel):
    success: bool
    discount_amount_applied: Decimal
    new_total_amount: Decimal
    message: str


class DiscountValidateResponse(BaseModel):
    """Storefront preview. Always returned with 200; check ``valid``."""
    valid: bool
    code: str
    discount_amount: Decimal = Decimal("0.00")
    message: str


class DiscountCodeCreate(BaseCreateSchema):
    code: str = Field(..., min_length=3, max_length=50)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    min_order_amount: Decimal = Field(Decimal("0.00"), ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("discount_type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class DiscountCodeUpdate(BaseUpdateSchema):
    """Partial update. The code itself cannot be changed."""
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    min_order_amount: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None

    @field_validator("discount_type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class DiscountCodeResponse(BaseResponseSchema):
    id: UUID
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: Decimal
    max_discount_amount: Optional[Decimal] = None
    min_order_amount: Decimal
    start_date: datetime
    end_date: Optional[datetime] = None
    usage_limit: Optional[int] = None
    times_used: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class DiscountCodeListResponse(BaseModel):
    items: List[DiscountCodeResponse]
    total: int
    page: int
    size: int
    pages: int
