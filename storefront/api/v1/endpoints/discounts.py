"""
Discount code endpoints.

Storefront: preview a code against a cart subtotal and apply a code to an
order awaiting payment. Admin: discount code CRUD.
"""
from decimal import Decimal
from typing import Optional
import uuid

from fastapi import APIRouter, Query, status

from storefront.api.deps import DB, AdminAuth, CurrentAuth, page_count
from storefront.schemas.base import MessageResponse
from storefront.schemas.discount import (
    DiscountApplyRequest,
    DiscountApplyResponse,
    DiscountCodeCreate,
    DiscountCodeListResponse,
    DiscountCodeResponse,
    DiscountCodeUpdate,
    DiscountValidateResponse,
)
from storefront.services.discount_service import DiscountService

router = APIRouter(tags=["Discounts"])


# ==================== Storefront ====================

@router.get("/discount/validate", response_model=DiscountValidateResponse)
async def validate_discount(
    db: DB,
    code: str = Query(..., min_length=1, max_length=50),
    subtotal: Decimal = Query(..., ge=0),
):
    """Check a code before checkout. Invalid codes still return 200 with ``valid: false``."""
    valid, amount, message = await DiscountService(db).validate_for_subtotal(code, subtotal)
    return DiscountValidateResponse(
        valid=valid,
        code=code.strip().upper(),
        discount_amount=amount,
        message=message,
    )


@router.post("/discount/apply", response_model=DiscountApplyResponse)
async def apply_discount(data: DiscountApplyRequest, auth: CurrentAuth, db: DB):
    """Apply a code to one of the caller's orders that is still awaiting payment."""
    order, amount = await DiscountService(db).apply_discount(auth, data.code, data.order_id)
    return DiscountApplyResponse(
        success=True,
        discount_amount_applied=amount,
        new_total_amount=order.total_amount,
        message=f"Discount code {order.discount_code} applied",
    )


# ==================== Admin ====================

@router.get("/admin/discount-codes", response_model=DiscountCodeListResponse)
async def list_discount_codes(
    auth: AdminAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
):
    items, total = await DiscountService(db).list_codes(
        is_active=is_active, search=search, skip=(page - 1) * limit, limit=limit
    )
    return DiscountCodeListResponse(
        items=[DiscountCodeResponse.model_validate(d) for d in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )


@router.get("/admin/discount-codes/{code_id}", response_model=DiscountCodeResponse)
async def get_discount_code(code_id: uuid.UUID, auth: AdminAuth, db: DB):
    discount = await DiscountService(db).get_code(code_id)
    return DiscountCodeResponse.model_validate(discount)


@router.post("/admin/discount-codes", response_model=DiscountCodeResponse, status_code=status.HTTP_201_CREATED)
async def create_discount_code(data: DiscountCodeCreate, auth: AdminAuth, db: DB):
    discount = await DiscountService(db).create_code(data.model_dump(), created_by=auth.user_id)
    return DiscountCodeResponse.model_validate(discount)


@router.put("/admin/discount-codes/{code_id}", response_model=DiscountCodeResponse)
async def update_discount_code(code_id: uuid.UUID, data: DiscountCodeUpdate, auth: AdminAuth, db: DB):
    discount = await DiscountService(db).update_code(code_id, data.model_dump(exclude_unset=True))
    return DiscountCodeResponse.model_validate(discount)


@router.delete("/admin/discount-codes/{code_id}", response_model=MessageResponse)
async def delete_discount_code(code_id: uuid.UUID, auth: AdminAuth, db: DB):
    await DiscountService(db).delete_code(code_id)
    return MessageResponse(message="Discount code deleted")
