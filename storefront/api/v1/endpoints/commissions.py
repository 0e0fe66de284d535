from decimal import Decimal
from typing import Optional
import uuid

from fastapi import APIRouter, Query

from storefront.api.deps import DB, AdminAuth, page_count
from storefront.core.enum_utils import get_enum_value
from storefront.models.commission import CommissionStatus, CommissionType
from storefront.schemas.commission import (
    CommissionListResponse,
    CommissionPayoutRequest,
    CommissionPayoutResponse,
    CommissionResponse,
    PendingCommissionsResponse,
)
from storefront.services.commission_service import CommissionService

router = APIRouter(prefix="/admin/commissions", tags=["Commissions"])


@router.get("", response_model=CommissionListResponse)
async def list_commissions(
    auth: AdminAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[CommissionStatus] = None,
    commission_type: Optional[CommissionType] = None,
    user_id: Optional[uuid.UUID] = None,
    order_id: Optional[uuid.UUID] = None,
):
    items, total = await CommissionService(db).list_commissions(
        status=get_enum_value(status),
        user_id=user_id,
        commission_type=get_enum_value(commission_type),
        related_id=order_id,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return CommissionListResponse(
        items=[CommissionResponse.model_validate(c) for c in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )


@router.get("/pending", response_model=PendingCommissionsResponse)
async def list_pending_commissions(
    auth: AdminAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user_id: Optional[uuid.UUID] = None,
):
    """Payout queue: PENDING and APPROVED commissions, oldest first."""
    items, total, total_amount = await CommissionService(db).list_pending_payouts(
        user_id=user_id,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return PendingCommissionsResponse(
        items=[CommissionResponse.model_validate(c) for c in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
        total_amount=total_amount,
    )


@router.post("/payout", response_model=CommissionPayoutResponse)
async def payout_commissions(data: CommissionPayoutRequest, auth: AdminAuth, db: DB):
    """Mark pending/approved commissions as paid under one payment reference."""
    paid, skipped = await CommissionService(db).payout(data.commission_ids, data.payment_reference)
    total_paid = sum((c.amount for c in paid), Decimal("0.00"))
    return CommissionPayoutResponse(
        paid=[c.id for c in paid],
        skipped=skipped,
        total_paid=total_paid,
        message=f"Paid {len(paid)} commission(s), skipped {len(skipped)}",
    )
