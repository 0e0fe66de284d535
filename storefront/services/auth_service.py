from datetime import datetime, timezone
from typing import Optional
import secrets
import string
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import AuthenticationError, ConflictError, PermissionDeniedError
from storefront.core.security import get_password_hash, verify_password
from storefront.models.user import User, UserRole

logger = logging.getLogger(__name__)

REFERRAL_CODE_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 8


class AuthService:
    """Registration and credential checks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.strip().lower())
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_user_by_referral_code(self, code: str) -> Optional[User]:
        stmt = select(User).where(User.referral_code == code.strip().upper())
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def generate_referral_code(self) -> str:
        """Random unused 8-character code."""
        while True:
            code = "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))
            if not await self.get_user_by_referral_code(code):
                return code

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        referral_code: Optional[str] = None,
        role: UserRole = UserRole.CUSTOMER,
    ) -> User:
        email = email.strip().lower()
        if await self.get_user_by_email(email):
            raise ConflictError("An account with this email already exists")

        referred_by_id = None
        if referral_code:
            referrer = await self.get_user_by_referral_code(referral_code)
            if referrer and referrer.is_active:
                referred_by_id = referrer.id
            else:
                logger.info(f"Unknown referral code at registration: {referral_code}")

        user = User(
            email=email,
            password_hash=get_password_hash(password),
            name=name.strip(),
            role=role.value,
            referral_code=await self.generate_referral_code(),
            referred_by_id=referred_by_id,
        )
        self.db.add(user)
        await self.db.flush()

        logger.info(f"User registered: {email} ({role.value}), referred_by={referred_by_id}")
        return user

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {email}")
            raise AuthenticationError("Incorrect email or password")
        if not user.is_active:
            raise PermissionDeniedError("User account is deactivated")

        user.last_login_at = datetime.now(timezone.utc)
        await self.db.flush()
        return user

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)
