import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from storefront.database import Base
from storefront.db_types import UUIDType


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    DEFERRED = "DEFERRED"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


# Sort rank used when listing tasks (lower first)
TASK_PRIORITY_RANK = {
    TaskPriority.URGENT.value: 1,
    TaskPriority.HIGH.value: 2,
    TaskPriority.MEDIUM.value: 3,
    TaskPriority.LOW.value: 4,
}


class TaskCategory(str, Enum):
    ORDER_REVIEW = "ORDER_REVIEW"
    PAYMENT = "PAYMENT"
    FULFILLMENT = "FULFILLMENT"
    PAYOUT = "PAYOUT"
    REFUND = "REFUND"
    RECONCILIATION = "RECONCILIATION"  # Failed order side effect that needs a manual retry
    WHOLESALE_REVIEW = "WHOLESALE_REVIEW"
    OTHER = "OTHER"


class Task(Base):
    """
    Admin work queue item.

    Created by order lifecycle events (payment confirmation, refunds,
    commission payouts) and manually by admins.
    """
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_task_related", "related_entity_type", "related_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="ORDER_REVIEW, PAYMENT, FULFILLMENT, PAYOUT, REFUND, RECONCILIATION, WHOLESALE_REVIEW, OTHER"
    )
    status: Mapped[str] = mapped_column(
        String(50),
        default="PENDING",
        nullable=False,
        index=True,
        comment="PENDING, IN_PROGRESS, COMPLETED, DEFERRED, CANCELLED"
    )
    priority: Mapped[str] = mapped_column(
        String(20),
        default="MEDIUM",
        nullable=False,
        comment="LOW, MEDIUM, HIGH, URGENT"
    )

    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    related_entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    related_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUIDType, nullable=True)

    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Task(title='{self.title}', status='{self.status}')>"
