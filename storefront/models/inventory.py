"""Inventory models for stock management."""
from enum import Enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, ForeignKey, Integer, DateTime
from sqlalchemy import UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
import uuid

from storefront.database import Base
from storefront.db_types import UUIDType


class MovementType(str, Enum):
    """Stock movement type enum."""
    RESTOCK = "RESTOCK"  # Returned to stock from a cancelled order
    ADJUSTMENT = "ADJUSTMENT"  # Manual admin correction
    TRANSFER_OUT = "TRANSFER_OUT"
    TRANSFER_IN = "TRANSFER_IN"


class Inventory(Base):
    """Stock level per product per location."""

    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("product_id", "location", name="uq_inventory_product_location"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id = Column(UUIDType, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    location = Column(String(100), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    product = relationship("Product")

    def __repr__(self):
        return f"<Inventory {self.product_id}@{self.location}: {self.quantity}>"


class StockMovement(Base):
    """Ledger of every inventory change."""

    __tablename__ = "stock_movements"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4)
    product_id = Column(UUIDType, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    location = Column(String(100), nullable=False)
    quantity_change = Column(Integer, nullable=False)  # Signed delta
    movement_type = Column(String(50), nullable=False, comment="RESTOCK, ADJUSTMENT, TRANSFER_OUT, TRANSFER_IN")

    reference_type = Column(String(50))  # e.g. ORDER
    reference_id = Column(UUIDType)
    notes = Column(Text)
    created_by = Column(UUIDType, ForeignKey("users.id", ondelete="SET NULL"))

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<StockMovement {self.movement_type} {self.quantity_change:+d}>"
