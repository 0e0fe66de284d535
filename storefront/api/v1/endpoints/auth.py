import logging

from fastapi import APIRouter, status

from storefront.api.deps import DB
from storefront.config import settings
from storefront.core.security import create_access_token
from storefront.schemas.auth import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from storefront.services.auth_service import AuthService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, db: DB):
    """Create a customer account. An optional referral code links the new user to their referrer."""
    user = await AuthService(db).register(
        email=data.email,
        password=data.password,
        name=data.name,
        referral_code=data.referral_code,
    )
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: DB):
    """Authenticate with email and password and get an access token."""
    user = await AuthService(db).authenticate(data.email, data.password)
    token = create_access_token(user.id, user.role)
    logger.info(f"User logged in: {user.email}")
    return TokenResponse(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
