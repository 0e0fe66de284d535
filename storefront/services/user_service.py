"""Account administration and the referral program."""
from typing import List, Optional, Tuple
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.models.user import User
from storefront.services.auth_service import AuthService

logger = logging.getLogger(__name__)


def build_referral_link(referral_code: str) -> str:
    return f"{settings.REFERRAL_BASE_URL.rstrip('/')}/ref/{referral_code}"


class UserService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: uuid.UUID) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    # ==================== REFERRALS ====================

    async def validate_referral_code(self, code: Optional[str]) -> User:
        """
        Resolve a referral code to its owner.

        Raises:
            ValidationError: code missing, or its owner is suspended
            NotFoundError: no user has this code
        """
        if not code or not code.strip():
            raise ValidationError("Referral code is required")

        referrer = await AuthService(self.db).get_user_by_referral_code(code)
        if not referrer:
            raise NotFoundError("Invalid referral code")
        if not referrer.is_active:
            raise ValidationError("This referral code is no longer active")
        return referrer

    async def list_referrals(
        self,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[User], int]:
        """Users who signed up with this user's code, newest first."""
        count_stmt = select(func.count(User.id)).where(User.referred_by_id == user_id)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(User)
            .where(User.referred_by_id == user_id)
            .order_by(User.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def regenerate_referral_code(self, user_id: uuid.UUID) -> User:
        """
        Issue a fresh referral code. The old code stops resolving; customers
        already linked keep their referrer.
        """
        user = await self.get_user(user_id)
        old_code = user.referral_code
        user.referral_code = await AuthService(self.db).generate_referral_code()
        await self.db.flush()

        logger.info(f"Referral code for {user.email} regenerated: {old_code} -> {user.referral_code}")
        return user

    # ==================== ADMIN ====================

    async def set_active(self, user_id: uuid.UUID, is_active: bool, admin_id: uuid.UUID) -> User:
        """Suspend or reactivate an account."""
        if user_id == admin_id and not is_active:
            raise ValidationError("You cannot suspend your own account")

        user = await self.get_user(user_id)
        if user.is_active == is_active:
            raise ValidationError(f"User is already {'active' if is_active else 'suspended'}")

        user.is_active = is_active
        await self.db.flush()

        logger.info(f"User {user.email} {'activated' if is_active else 'suspended'} by {admin_id}")
        return user
