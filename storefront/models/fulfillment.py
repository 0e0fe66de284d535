"""Distributor fulfillment assignments.

An admin hands a paid order to a distributor, who ships it from their own
stock and records tracking details. A COMPLETED assignment entitles the
distributor to a fulfillment commission once the order ships.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database import Base
from storefront.db_types import UUIDType

if TYPE_CHECKING:
    from storefront.models.order import Order
    from storefront.models.user import User


class AssignmentStatus(str, Enum):
    """Distributor assignment status."""
    ASSIGNED = "ASSIGNED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DistributorAssignment(Base):
    __tablename__ = "distributor_assignments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    distributor_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    assigned_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    status: Mapped[str] = mapped_column(
        String(50),
        default="ASSIGNED",
        nullable=False,
        index=True,
        comment="ASSIGNED, COMPLETED, CANCELLED"
    )

    # Fulfillment details recorded by the distributor
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    carrier: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    fulfillment_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    order: Mapped["Order"] = relationship("Order")
    distributor: Mapped["User"] = relationship("User", foreign_keys=[distributor_id])

    def __repr__(self) -> str:
        return f"<DistributorAssignment(order='{self.order_id}', status='{self.status}')>"
