from typing import Optional
import uuid

from fastapi import APIRouter, Query, status

from storefront.api.deps import DB, AdminAuth, CurrentAuth, page_count
from storefront.core.enum_utils import get_enum_value
from storefront.models.wholesale import WholesaleApplicationStatus
from storefront.schemas.wholesale import (
    WholesaleApplicationCreate,
    WholesaleApplicationListResponse,
    WholesaleApplicationResponse,
    WholesaleApplyResponse,
    WholesaleApproveRequest,
    WholesaleRejectRequest,
)
from storefront.services.wholesale_service import WholesaleService

router = APIRouter(tags=["Wholesale"])


@router.post("/wholesale/apply", response_model=WholesaleApplyResponse, status_code=status.HTTP_201_CREATED)
async def apply_for_wholesale(data: WholesaleApplicationCreate, auth: CurrentAuth, db: DB):
    application = await WholesaleService(db).apply(auth, data.model_dump())
    return WholesaleApplyResponse(
        message="Application submitted successfully. We will review your application shortly.",
        application_id=application.id,
    )


# ==================== Admin ====================

@router.get("/admin/wholesale/applications", response_model=WholesaleApplicationListResponse)
async def list_applications(
    auth: AdminAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[WholesaleApplicationStatus] = None,
):
    items, total = await WholesaleService(db).list_applications(
        status=get_enum_value(status), skip=(page - 1) * limit, limit=limit
    )
    return WholesaleApplicationListResponse(
        items=[WholesaleApplicationResponse.model_validate(a) for a in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )


@router.get("/admin/wholesale/applications/{application_id}", response_model=WholesaleApplicationResponse)
async def get_application(application_id: uuid.UUID, auth: AdminAuth, db: DB):
    application = await WholesaleService(db).get_application(application_id)
    return WholesaleApplicationResponse.model_validate(application)


@router.post("/admin/wholesale/applications/{application_id}/approve", response_model=WholesaleApplicationResponse)
async def approve_application(
    application_id: uuid.UUID,
    auth: AdminAuth,
    db: DB,
    data: Optional[WholesaleApproveRequest] = None,
):
    """Approve and promote the applicant to WHOLESALE_BUYER."""
    application = await WholesaleService(db).approve(application_id, auth.user_id, data.notes if data else None)
    return WholesaleApplicationResponse.model_validate(application)


@router.post("/admin/wholesale/applications/{application_id}/reject", response_model=WholesaleApplicationResponse)
async def reject_application(application_id: uuid.UUID, data: WholesaleRejectRequest, auth: AdminAuth, db: DB):
    application = await WholesaleService(db).reject(application_id, auth.user_id, data.reason)
    return WholesaleApplicationResponse.model_validate(application)
