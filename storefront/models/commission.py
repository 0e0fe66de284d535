"""Commission models for referrers and distributors.

Supports:
- Order referral commissions (customer's referrer earns a share)
- Distributor fulfillment commissions
- Payout tracking
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Text, Numeric
from sqlalchemy import UniqueConstraint, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database import Base
from storefront.db_types import UUIDType

if TYPE_CHECKING:
    from storefront.models.user import User


class CommissionType(str, Enum):
    """Commission type enumeration."""
    NEW_REFERRAL = "NEW_REFERRAL"                      # Sign-up bonus for a referred user
    ORDER_REFERRAL = "ORDER_REFERRAL"                  # Share of a referred customer's order
    DISTRIBUTOR_FULFILLMENT = "DISTRIBUTOR_FULFILLMENT"  # Distributor shipped the order


class CommissionStatus(str, Enum):
    """Commission transaction status."""
    PENDING = "PENDING"       # Awaiting admin approval
    APPROVED = "APPROVED"     # Approved for payout
    PAID = "PAID"             # Paid out
    CANCELLED = "CANCELLED"   # Order cancelled/refunded


# Commissions that can still be cancelled or paid out
OPEN_COMMISSION_STATUSES = (CommissionStatus.PENDING.value, CommissionStatus.APPROVED.value)


class RelatedEntityType(str, Enum):
    """What a commission or task points at."""
    ORDER = "ORDER"
    USER = "USER"
    COMMISSION = "COMMISSION"
    WHOLESALE_APPLICATION = "WHOLESALE_APPLICATION"


class Commission(Base):
    """
    Commission earned by a user.
    One row per (related entity, commission type).
    """
    __tablename__ = "commissions"
    __table_args__ = (
        UniqueConstraint(
            "related_entity_type", "related_id", "commission_type",
            name="uq_commission_related_type"
        ),
        Index("ix_commission_user_status", "user_id", "status"),
        CheckConstraint("amount >= 0", name="ck_commission_amount_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Recipient
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    commission_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="NEW_REFERRAL, ORDER_REFERRAL, DISTRIBUTOR_FULFILLMENT"
    )
    status: Mapped[str] = mapped_column(
        String(50),
        default="PENDING",
        nullable=False,
        index=True,
        comment="PENDING, APPROVED, PAID, CANCELLED"
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2),
        nullable=True,
        comment="Commission rate snapshot at time of calculation"
    )
    order_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        comment="Order total the commission was calculated from"
    )

    related_entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="ORDER",
        comment="ORDER, USER"
    )
    related_id: Mapped[uuid.UUID] = mapped_column(UUIDType, nullable=False, index=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Payout
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

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

    user: Mapped["User"] = relationship("User")

    def __repr__(self) -> str:
        return f"<Commission(type='{self.commission_type}', amount={self.amount}, status='{self.status}')>"
