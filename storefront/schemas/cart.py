from decimal import Decimal
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema
from storefront.schemas.product import ProductResponse


class CartItemAdd(BaseCreateSchema):
    product_id: UUID
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1)


class CartItemResponse(BaseResponseSchema):
    id: UUID
    product_id: UUID
    quantity: int
    product: ProductResponse


class CartResponse(BaseModel):
    """Cart contents priced the same way checkout will price them."""
    items: List[CartItemResponse]
    subtotal: Decimal
    shipping: Decimal
    taxes: Decimal
    total: Decimal
