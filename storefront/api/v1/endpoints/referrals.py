from typing import Optional

from fastapi import APIRouter

from storefront.api.deps import DB
from storefront.schemas.referral import ReferralValidationResponse, ReferrerInfo
from storefront.services.user_service import UserService

router = APIRouter(prefix="/referrals", tags=["Referrals"])


@router.get("/validate", response_model=ReferralValidationResponse)
async def validate_referral_code(db: DB, code: Optional[str] = None):
    """Public check used by the sign-up form before an account exists."""
    referrer = await UserService(db).validate_referral_code(code)
    return ReferralValidationResponse(referrer=ReferrerInfo.model_validate(referrer))
