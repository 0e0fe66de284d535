import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database import Base
from storefront.db_types import UUIDType


class UserRole(str, Enum):
    """Role enumeration. Stored as VARCHAR in UPPERCASE."""
    CUSTOMER = "CUSTOMER"
    WHOLESALE_BUYER = "WHOLESALE_BUYER"
    DISTRIBUTOR = "DISTRIBUTOR"
    ADMIN = "ADMIN"
    OWNER = "OWNER"


ADMIN_ROLES = (UserRole.ADMIN.value, UserRole.OWNER.value)


class User(Base):
    """
    Storefront account.

    Customers may be referred by another user (``referred_by_id``); the
    referrer's ``commission_rate`` drives referral commissions. Distributors
    use the same column for fulfillment commissions.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Basic info
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    role: Mapped[str] = mapped_column(
        String(50),
        default="CUSTOMER",
        nullable=False,
        index=True,
        comment="CUSTOMER, WHOLESALE_BUYER, DISTRIBUTOR, ADMIN, OWNER"
    )

    # Referral program
    referral_code: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="Code this user shares with new customers"
    )
    referred_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    commission_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2),
        nullable=True,
        comment="Commission percentage earned on referred/fulfilled orders"
    )

    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    referred_by: Mapped[Optional["User"]] = relationship(
        "User",
        remote_side=[id],
        foreign_keys=[referred_by_id],
    )

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self) -> str:
        return f"<User(email='{self.email}', role='{self.role}')>"
