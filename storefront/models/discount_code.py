"""
Discount Code Model for the storefront

Percentage or fixed-amount codes with a validity window and optional usage cap.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, Integer, Text, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database import Base
from storefront.db_types import UUIDType


class DiscountType(str, Enum):
    """Discount type enumeration."""
    PERCENTAGE = "PERCENTAGE"  # e.g., 10% off
    FIXED_AMOUNT = "FIXED_AMOUNT"  # e.g., $15 off


class DiscountCode(Base):
    """
    Discount/promo code applied to a single order.
    """
    __tablename__ = "discount_codes"
    __table_args__ = (
        CheckConstraint("discount_value > 0", name="ck_discount_value_positive"),
        CheckConstraint("times_used >= 0", name="ck_discount_times_used_non_negative"),
        CheckConstraint(
            "usage_limit IS NULL OR times_used <= usage_limit",
            name="ck_discount_times_used_within_limit"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Unique code, stored upper-case"
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Discount Type & Value
    discount_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="PERCENTAGE",
        comment="PERCENTAGE, FIXED_AMOUNT"
    )
    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Discount value (percentage or amount)"
    )
    max_discount_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Cap on discount for PERCENTAGE type"
    )
    min_order_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Minimum order total to apply code"
    )

    # Validity Period
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Expiry date (null = never expires)"
    )

    # Usage Limits
    usage_limit: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Total times this code can be used"
    )
    times_used: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of times code has been used"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True
    )

    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

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

    def __repr__(self) -> str:
        return f"<DiscountCode(code='{self.code}', type='{self.discount_type}', value={self.discount_value})>"
