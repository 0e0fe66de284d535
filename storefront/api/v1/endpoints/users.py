from typing import List

from fastapi import APIRouter, Query

from storefront.api.deps import DB, CurrentAuth, CurrentUser, page_count
from storefront.schemas.auth import UserResponse
from storefront.schemas.referral import ReferralLinkResponse, ReferralListResponse, ReferredUserResponse
from storefront.schemas.commission import CommissionResponse, CommissionSummary, MyCommissionsResponse
from storefront.schemas.task import TaskResponse
from storefront.services.commission_service import CommissionService
from storefront.services.task_service import TaskService
from storefront.services.user_service import UserService, build_referral_link

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_me(user: CurrentUser):
    return UserResponse.model_validate(user)


@router.get("/me/tasks", response_model=List[TaskResponse])
async def get_my_tasks(auth: CurrentAuth, db: DB, include_closed: bool = False):
    """Tasks assigned to the caller, soonest due first."""
    tasks = await TaskService(db).list_user_tasks(auth.user_id, include_closed=include_closed)
    return [TaskResponse.model_validate(t) for t in tasks]


@router.get("/me/commissions", response_model=MyCommissionsResponse)
async def get_my_commissions(auth: CurrentAuth, db: DB):
    """Commissions earned by the caller, with totals per status."""
    service = CommissionService(db)
    items, _ = await service.list_commissions(user_id=auth.user_id, limit=500)
    summary = await service.get_summary(auth.user_id)
    return MyCommissionsResponse(
        summary=CommissionSummary(**summary),
        items=[CommissionResponse.model_validate(c) for c in items],
    )


@router.get("/me/referrals", response_model=ReferralListResponse)
async def get_my_referrals(
    auth: CurrentAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    """Customers who signed up with the caller's referral code."""
    items, total = await UserService(db).list_referrals(auth.user_id, skip=(page - 1) * limit, limit=limit)
    return ReferralListResponse(
        items=[ReferredUserResponse.model_validate(u) for u in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )


@router.get("/me/referral-link", response_model=ReferralLinkResponse)
async def get_my_referral_link(user: CurrentUser):
    return ReferralLinkResponse(
        referral_code=user.referral_code,
        referral_link=build_referral_link(user.referral_code),
    )


@router.post("/me/referral-link", response_model=ReferralLinkResponse)
async def regenerate_my_referral_link(user: CurrentUser, db: DB):
    """Replace the caller's referral code. Links shared earlier stop working."""
    user = await UserService(db).regenerate_referral_code(user.id)
    return ReferralLinkResponse(
        referral_code=user.referral_code,
        referral_link=build_referral_link(user.referral_code),
        message="Referral code regenerated successfully",
    )
