import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Numeric, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database import Base
from storefront.db_types import UUIDType, JSONType

if TYPE_CHECKING:
    from storefront.models.product import Product
    from storefront.models.user import User


class OrderStatus(str, Enum):
    """Order status enumeration."""
    CREATED = "CREATED"                  # Order row written at checkout
    PENDING_PAYMENT = "PENDING_PAYMENT"  # Awaiting payment confirmation
    PROCESSING = "PROCESSING"            # Paid, being prepared
    SHIPPED = "SHIPPED"                  # Handed to carrier
    DELIVERED = "DELIVERED"              # Carrier confirmed delivery
    COMPLETED = "COMPLETED"              # Closed out by admin
    CANCELLED = "CANCELLED"              # Cancelled before shipping
    REFUNDED = "REFUNDED"                # Money returned to customer


# Allowed next states per current state. Terminal states map to an empty set.
ORDER_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.CREATED.value: frozenset({
        OrderStatus.PENDING_PAYMENT.value,
        OrderStatus.PROCESSING.value,
        OrderStatus.CANCELLED.value,
    }),
    OrderStatus.PENDING_PAYMENT.value: frozenset({
        OrderStatus.PROCESSING.value,
        OrderStatus.CANCELLED.value,
    }),
    OrderStatus.PROCESSING.value: frozenset({
        OrderStatus.SHIPPED.value,
        OrderStatus.CANCELLED.value,
        OrderStatus.REFUNDED.value,
    }),
    OrderStatus.SHIPPED.value: frozenset({
        OrderStatus.DELIVERED.value,
        OrderStatus.COMPLETED.value,
        OrderStatus.REFUNDED.value,
    }),
    OrderStatus.DELIVERED.value: frozenset({
        OrderStatus.COMPLETED.value,
        OrderStatus.REFUNDED.value,
    }),
    OrderStatus.COMPLETED.value: frozenset({
        OrderStatus.REFUNDED.value,
    }),
    OrderStatus.CANCELLED.value: frozenset(),
    OrderStatus.REFUNDED.value: frozenset(),
}

# Orders that may still receive a discount code
DISCOUNTABLE_STATUSES = frozenset({
    OrderStatus.CREATED.value,
    OrderStatus.PENDING_PAYMENT.value,
})

# Orders that qualify for commission accrual
COMMISSIONABLE_STATUSES = frozenset({
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.COMPLETED.value,
})


def can_transition(current_status: str, new_status: str) -> bool:
    """Check the transition table for current -> new."""
    return new_status in ORDER_STATUS_TRANSITIONS.get(current_status, frozenset())


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    """Payment method enumeration."""
    CREDIT_CARD = "CREDIT_CARD"
    E_TRANSFER = "E_TRANSFER"
    BITCOIN = "BITCOIN"


class Order(Base):
    """
    Customer order.

    Invariant: total_amount = subtotal + shipping_amount + tax_amount - discount_amount,
    never negative. Orders are never deleted; they move to CANCELLED/REFUNDED.
    """
    __tablename__ = "orders"
    __table_args__ = (
        Index('ix_order_status_created', 'status', 'created_at'),
        Index('ix_order_user_created', 'user_id', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Order Identification
    order_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True
    )

    # Customer
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(50),
        default="PENDING_PAYMENT",
        nullable=False,
        index=True,
        comment="CREATED, PENDING_PAYMENT, PROCESSING, SHIPPED, DELIVERED, COMPLETED, CANCELLED, REFUNDED"
    )

    # Pricing
    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Sum of item totals before tax"
    )
    shipping_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0.00"),
        nullable=False
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0.00"),
        nullable=False
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0.00"),
        nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Final amount to be paid"
    )

    # Discount
    discount_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Referral code entered at checkout (informational)
    referral_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Payment
    payment_method: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="CREDIT_CARD, E_TRANSFER, BITCOIN"
    )
    payment_status: Mapped[str] = mapped_column(
        String(50),
        default="PENDING",
        nullable=False,
        comment="PENDING, COMPLETED, FAILED, REFUNDED"
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Addresses (stored as JSON for historical record)
    shipping_address: Mapped[dict] = mapped_column(JSONType, nullable=False)
    billing_address: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan"
    )
    status_history: Mapped[List["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.created_at"
    )

    @property
    def item_count(self) -> int:
        """Get total number of items."""
        return sum(item.quantity for item in self.items)

    def __repr__(self) -> str:
        return f"<Order(number='{self.order_number}', status='{self.status}')>"


class OrderItem(Base):
    """Order line item model."""
    __tablename__ = "order_items"

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
    product_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )

    # Product snapshot (stored for historical record)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_sku: Mapped[str] = mapped_column(String(50), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="items")
    product: Mapped["Product"] = relationship("Product")

    def __repr__(self) -> str:
        return f"<OrderItem(product='{self.product_name}', qty={self.quantity})>"


class OrderStatusHistory(Base):
    """Order status change history."""
    __tablename__ = "order_status_history"

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

    from_status: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True
    )
    to_status: Mapped[str] = mapped_column(
        String(50),
        nullable=False
    )

    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<OrderStatusHistory(from='{self.from_status}', to='{self.to_status}')>"
