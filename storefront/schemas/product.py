from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


class ProductCreate(BaseCreateSchema):
    sku: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    flavor: Optional[str] = Field(None, max_length=100)
    strength_mg: Optional[int] = Field(None, ge=0)
    price: Decimal = Field(..., gt=0, decimal_places=2)
    is_active: bool = True


class ProductUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    flavor: Optional[str] = Field(None, max_length=100)
    strength_mg: Optional[int] = Field(None, ge=0)
    price: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    is_active: Optional[bool] = None


class ProductResponse(BaseResponseSchema):
    id: UUID
    sku: str
    name: str
    description: Optional[str] = None
    flavor: Optional[str] = None
    strength_mg: Optional[int] = None
    price: Decimal
    is_active: bool
    created_at: datetime


class ProductListResponse(BaseModel):
    items: List[ProductResponse]
    total: int
    page: int
    size: int
    pages: int
