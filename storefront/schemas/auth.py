from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from storefront.models.user import ADMIN_ROLES
from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema


class AuthContext(BaseModel):
    """
    Request-scoped identity resolved once from the bearer token.

    Services receive this instead of reading request headers, so they can
    be called directly in tests.
    """
    model_config = ConfigDict(frozen=True)

    user_id: UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class RegisterRequest(BaseCreateSchema):
    """Customer self-registration."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=8, description="User password")
    name: str = Field(..., min_length=1, max_length=200)
    referral_code: Optional[str] = Field(None, max_length=20, description="Referral code of an existing user")


class LoginRequest(BaseModel):
    """Login request schema."""
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class TokenResponse(BaseModel):
    """Token response schema."""
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration in seconds")


class UserResponse(BaseResponseSchema):
    id: UUID
    email: str
    name: str
    role: str
    referral_code: str
    referred_by_id: Optional[UUID] = None
    commission_rate: Optional[Decimal] = None
    is_active: bool
    created_at: datetime
