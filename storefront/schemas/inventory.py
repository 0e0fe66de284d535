"""Inventory schemas for API requests/responses."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from storefront.schemas.base import BaseResponseSchema


class InventoryResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    location: str
    quantity: int
    updated_at: Optional[datetime] = None


class InventoryListResponse(BaseModel):
    items: List[InventoryResponse]
    total: int
    page: int
    size: int
    pages: int


class InventoryAdjustRequest(BaseModel):
    """Manual stock correction. ``quantity_change`` is signed."""
    product_id: UUID
    location: Optional[str] = Field(None, max_length=100)
    quantity_change: int
    notes: Optional[str] = None

    @model_validator(mode="after")
    def non_zero(self):
        if self.quantity_change == 0:
            raise ValueError("quantity_change must not be zero")
        return self


class InventoryTransferRequest(BaseModel):
    product_id: UUID
    from_location: str = Field(..., min_length=1, max_length=100)
    to_location: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., ge=1)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def distinct_locations(self):
        if self.from_location == self.to_location:
            raise ValueError("Source and destination locations must differ")
        return self


class StockMovementResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    location: str
    quantity_change: int
    movement_type: str
    reference_type: Optional[str] = None
    reference_id: Optional[UUID] = None
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: datetime


class StockMovementListResponse(BaseModel):
    items: List[StockMovementResponse]
    total: int
    page: int
    size: int
    pages: int
