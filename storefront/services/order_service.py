from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple
from datetime import datetime, timezone
import uuid
import logging

from sqlalchemy import select, func, and_, or_, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.enum_utils import get_enum_value, parse_enum
from storefront.core.exceptions import ConflictError, NotFoundError, ValidationError
from storefront.models.cart import CartItem
from storefront.models.commission import RelatedEntityType
from storefront.models.order import (
    Order, OrderItem, OrderStatus, OrderStatusHistory,
    PaymentStatus, PaymentMethod, can_transition,
)
from storefront.models.task import TaskCategory, TaskPriority, TaskStatus
from storefront.models.user import User
from storefront.schemas.auth import AuthContext
from storefront.schemas.order import CheckoutRequest
from storefront.services.commission_service import CommissionService
from storefront.services.inventory_service import InventoryService
from storefront.services.pricing_service import LineItem, calculate_order_totals
from storefront.services.task_service import TaskService

logger = logging.getLogger(__name__)

# Fresh numbers tried before checkout gives up on a burst of concurrent orders
ORDER_NUMBER_ATTEMPTS = 5

# Payment methods confirmed by hand, with the admin task title prefix
MANUAL_PAYMENT_TASKS = {
    PaymentMethod.E_TRANSFER.value: "Confirm E-Transfer for Order",
    PaymentMethod.BITCOIN.value: "Confirm Bitcoin Payment for Order",
}

# Timestamp column stamped when an order enters a status
STATUS_TIMESTAMPS = {
    OrderStatus.SHIPPED.value: "shipped_at",
    OrderStatus.DELIVERED.value: "delivered_at",
    OrderStatus.CANCELLED.value: "cancelled_at",
}


class InvalidOrderStatusError(ValidationError):
    def __init__(self, status):
        valid = ", ".join(s.value for s in OrderStatus)
        super().__init__(f"Invalid status '{status}'. Must be one of: {valid}", {"status": str(status)})


class InvalidStatusTransitionError(ValidationError):
    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Cannot change order status from {from_status} to {to_status}",
            {"from_status": from_status, "to_status": to_status}
        )


class OrderStatusConflictError(ConflictError):
    def __init__(self, order_id: uuid.UUID, expected_status: str):
        super().__init__(
            "Order status was changed by another request. Reload and try again.",
            {"order_id": str(order_id), "expected_status": expected_status}
        )


@dataclass
class StatusChangeResult:
    order: Order
    from_status: str
    to_status: str
    side_effect_failures: List[str] = field(default_factory=list)


SideEffect = Callable[[Order, Optional[uuid.UUID]], Awaitable[object]]


class OrderService:
    """Service for checkout, order queries and the order status lifecycle."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tasks = TaskService(db)
        self.commissions = CommissionService(db)
        self.inventory = InventoryService(db)

    # ==================== ORDER NUMBER GENERATION ====================

    async def generate_order_number(self) -> str:
        """Generate unique order number: ORD-YYYYMMDD-XXXX"""
        today = datetime.now(timezone.utc).strftime("%Y%m%d")
        prefix = f"ORD-{today}-"

        stmt = select(func.count(Order.id)).where(
            Order.order_number.like(f"{prefix}%")
        )
        count = (await self.db.execute(stmt)).scalar() or 0

        return f"{prefix}{(count + 1):04d}"

    async def _add_with_order_number(self, order: Order) -> None:
        """Insert a new order under the next free number, retrying when a concurrent checkout takes it first."""
        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            order.order_number = await self.generate_order_number()
            try:
                async with self.db.begin_nested():
                    self.db.add(order)
                return
            except IntegrityError:
                logger.warning(
                    f"Order number {order.order_number} already taken "
                    f"(attempt {attempt}/{ORDER_NUMBER_ATTEMPTS})"
                )
        raise ConflictError("Could not allocate an order number, please retry checkout")

    # ==================== QUERIES ====================

    async def get_order_by_id(
        self,
        order_id: uuid.UUID,
        include_all: bool = False
    ) -> Optional[Order]:
        """Get order by ID."""
        stmt = select(Order).where(Order.id == order_id)

        if include_all:
            stmt = stmt.options(
                selectinload(Order.items),
                selectinload(Order.status_history),
            )

        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def get_user_order(self, auth: AuthContext, order_id: uuid.UUID) -> Order:
        """A customer's own order. Other users' orders look missing."""
        order = await self.get_order_by_id(order_id, include_all=True)
        if not order or order.user_id != auth.user_id:
            raise NotFoundError("Order not found")
        return order

    async def get_orders(
        self,
        user_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Order], int]:
        """Get paginated orders with filters, newest first."""
        filters = []

        if user_id:
            filters.append(Order.user_id == user_id)

        if status:
            filters.append(Order.status == status)

        if payment_status:
            filters.append(Order.payment_status == payment_status)

        if search:
            search_filter = f"%{search}%"
            filters.append(
                or_(
                    Order.order_number.ilike(search_filter),
                    Order.discount_code.ilike(search_filter),
                )
            )

        stmt = select(Order)
        count_stmt = select(func.count(Order.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    # ==================== CHECKOUT ====================

    async def checkout(self, auth: AuthContext, data: CheckoutRequest) -> Order:
        """
        Turn the caller's cart into an order awaiting payment.

        Prices the cart, writes the order with its items and first history
        row, empties the cart and queues the admin review task (plus a
        payment confirmation task for manual payment methods).
        """
        stmt = (
            select(CartItem)
            .options(selectinload(CartItem.product))
            .where(CartItem.user_id == auth.user_id)
            .order_by(CartItem.created_at)
        )
        cart_items = list((await self.db.execute(stmt)).scalars().all())
        if not cart_items:
            raise ValidationError("Cart is empty")

        for cart_item in cart_items:
            if not cart_item.product or not cart_item.product.is_active:
                raise ValidationError(f"Product {cart_item.product_id} is no longer available")

        totals = calculate_order_totals(
            [LineItem(ci.product_id, ci.quantity, ci.product.price) for ci in cart_items],
            shipping_cost=settings.SHIPPING_COST,
            tax_rate=settings.TAX_RATE,
        )

        payment_method = get_enum_value(data.payment_method)
        shipping_address = data.shipping_address.model_dump()
        billing_address = data.billing_address.model_dump() if data.billing_address else shipping_address

        order = Order(
            user_id=auth.user_id,
            status=OrderStatus.PENDING_PAYMENT.value,
            subtotal=totals.subtotal,
            shipping_amount=totals.shipping,
            tax_amount=totals.taxes,
            total_amount=totals.total,
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING.value,
            shipping_address=shipping_address,
            billing_address=billing_address,
            referral_code=data.referral_code,
            notes=data.notes,
        )
        for cart_item in cart_items:
            order.items.append(
                OrderItem(
                    product_id=cart_item.product_id,
                    product_name=cart_item.product.name,
                    product_sku=cart_item.product.sku,
                    quantity=cart_item.quantity,
                    unit_price=cart_item.product.price,
                    total_amount=LineItem(cart_item.product_id, cart_item.quantity, cart_item.product.price).line_total,
                )
            )
        order.status_history.append(
            OrderStatusHistory(
                from_status=None,
                to_status=OrderStatus.PENDING_PAYMENT.value,
                changed_by=auth.user_id,
                notes="Order placed",
            )
        )
        await self._add_with_order_number(order)

        if data.referral_code:
            await self._link_referrer(auth.user_id, data.referral_code)

        await self.db.execute(delete(CartItem).where(CartItem.user_id == auth.user_id))
        await self.db.flush()

        await self.tasks.create_task(
            title=f"Approve Order {order.order_number}",
            description=f"New order for ${order.total_amount} paid by {payment_method}",
            category=TaskCategory.ORDER_REVIEW,
            priority=TaskPriority.HIGH,
            related_entity_type=RelatedEntityType.ORDER.value,
            related_id=order.id,
            due_in_days=settings.ORDER_REVIEW_TASK_DUE_DAYS,
            assign_to_admin=True,
        )
        if payment_method in MANUAL_PAYMENT_TASKS:
            await self.tasks.create_task(
                title=f"{MANUAL_PAYMENT_TASKS[payment_method]} {order.order_number}",
                description=f"Expected amount: ${order.total_amount}",
                category=TaskCategory.PAYMENT,
                priority=TaskPriority.MEDIUM,
                related_entity_type=RelatedEntityType.ORDER.value,
                related_id=order.id,
                due_in_days=settings.PAYMENT_TASK_DUE_DAYS,
                assign_to_admin=True,
            )

        logger.info(
            f"Order {order.order_number} placed by {auth.user_id}: "
            f"{len(cart_items)} line(s), total {order.total_amount} via {payment_method}"
        )
        return order

    async def _link_referrer(self, user_id: uuid.UUID, referral_code: str) -> None:
        """Attach a referrer to a customer who has none yet. Unknown or own codes are ignored."""
        customer = await self.db.get(User, user_id)
        if not customer or customer.referred_by_id:
            return

        stmt = select(User).where(User.referral_code == referral_code.strip().upper())
        referrer = (await self.db.execute(stmt)).scalar_one_or_none()
        if not referrer or referrer.id == customer.id:
            logger.info(f"Ignoring referral code {referral_code} at checkout for {user_id}")
            return

        customer.referred_by_id = referrer.id
        logger.info(f"Customer {user_id} linked to referrer {referrer.id} at checkout")

    # ==================== STATUS LIFECYCLE ====================

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        new_status: OrderStatus | str,
        reason: str,
        changed_by: Optional[uuid.UUID] = None,
    ) -> StatusChangeResult:
        """
        Move an order to a new status, then run that status's side effects.

        The status write is conditional on the status read here, so two
        concurrent identical requests cannot both succeed. It is committed
        before any side effect runs. Side effects are best-effort: each runs
        in its own savepoint, and a failure is logged, recorded as a HIGH
        priority RECONCILIATION task and returned in
        ``side_effect_failures``.

        Raises:
            ValidationError: blank reason or unknown status
            NotFoundError: no such order
            InvalidStatusTransitionError: transition not allowed from the current status
            OrderStatusConflictError: the status changed underneath us
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Reason is required")

        status_enum = parse_enum(OrderStatus, new_status)
        if status_enum is None:
            raise InvalidOrderStatusError(new_status)
        to_status = status_enum.value

        order = await self.get_order_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")

        from_status = order.status
        previous_payment_status = order.payment_status
        if not can_transition(from_status, to_status):
            logger.warning(f"Rejected transition {from_status} -> {to_status} for order {order.order_number}")
            raise InvalidStatusTransitionError(from_status, to_status)

        now = datetime.now(timezone.utc)
        values = {"status": to_status, "updated_at": now}
        if to_status in STATUS_TIMESTAMPS:
            values[STATUS_TIMESTAMPS[to_status]] = now

        result = await self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"Concurrent status change detected for order {order.order_number}")
            raise OrderStatusConflictError(order_id, from_status)

        self.db.add(
            OrderStatusHistory(
                order_id=order_id,
                from_status=from_status,
                to_status=to_status,
                changed_by=changed_by,
                notes=reason,
            )
        )
        await self.db.commit()
        logger.info(f"Order {order.order_number} status {from_status} -> {to_status} by {changed_by}: {reason}")

        order = await self.get_order_by_id(order_id, include_all=True)
        failures = await self._run_side_effects(order, to_status, previous_payment_status, changed_by)

        return StatusChangeResult(
            order=await self.get_order_by_id(order_id, include_all=True),
            from_status=from_status,
            to_status=to_status,
            side_effect_failures=failures,
        )

    def _side_effects_for(self, to_status: str, previous_payment_status: str) -> List[Tuple[str, SideEffect]]:
        effects: List[Tuple[str, SideEffect]] = []

        if to_status == OrderStatus.CANCELLED.value:
            effects.append(("restock", self._restock))
            effects.append(("cancel_commissions", self._cancel_commissions))

        elif to_status == OrderStatus.REFUNDED.value:
            if previous_payment_status == PaymentStatus.COMPLETED.value:
                effects.append(("refund_task", self._queue_refund))
            effects.append(("cancel_commissions", self._cancel_commissions))

        elif to_status == OrderStatus.SHIPPED.value:
            effects.append(("referral_commission", self._accrue_referral))
            effects.append(("fulfillment_commission", self._accrue_fulfillment))

        return effects

    async def _run_side_effects(
        self,
        order: Order,
        to_status: str,
        previous_payment_status: str,
        changed_by: Optional[uuid.UUID],
    ) -> List[str]:
        order_id, order_number = order.id, order.order_number
        failures: List[str] = []

        for name, effect in self._side_effects_for(to_status, previous_payment_status):
            try:
                async with self.db.begin_nested():
                    await effect(order, changed_by)
            except Exception as e:
                # Best-effort: the status change is already committed
                logger.error(f"Side effect '{name}' failed for order {order_number}: {e}", exc_info=True)
                failures.append(f"{name}: {e}")
                await self.tasks.create_task(
                    title=f"Reconcile {name.replace('_', ' ')} for Order {order_number}",
                    description=f"Automatic step '{name}' failed after status change to {to_status}",
                    category=TaskCategory.RECONCILIATION,
                    priority=TaskPriority.HIGH,
                    related_entity_type=RelatedEntityType.ORDER.value,
                    related_id=order_id,
                    notes=str(e),
                    assign_to_admin=True,
                )

        await self.db.commit()
        return failures

    async def _restock(self, order: Order, changed_by: Optional[uuid.UUID]) -> None:
        await self.inventory.restock_order(order, changed_by)

    async def _cancel_commissions(self, order: Order, changed_by: Optional[uuid.UUID]) -> None:
        reason = "order refund" if order.status == OrderStatus.REFUNDED.value else "order cancellation"
        await self.commissions.cancel_commissions_for_order(order.id, reason)

    async def _queue_refund(self, order: Order, changed_by: Optional[uuid.UUID]) -> None:
        await self.tasks.create_task(
            title=f"Process refund for Order {order.order_number}",
            description=f"Refund ${order.total_amount} via {order.payment_method}",
            category=TaskCategory.REFUND,
            priority=TaskPriority.HIGH,
            related_entity_type=RelatedEntityType.ORDER.value,
            related_id=order.id,
            assign_to_admin=True,
        )
        await self.db.execute(
            update(Order)
            .where(Order.id == order.id, Order.payment_status == PaymentStatus.COMPLETED.value)
            .values(payment_status=PaymentStatus.REFUNDED.value)
            .execution_options(synchronize_session=False)
        )

    async def _accrue_referral(self, order: Order, changed_by: Optional[uuid.UUID]) -> None:
        result = await self.commissions.accrue_referral_commission(order)
        logger.info(f"Referral accrual for order {order.order_number}: {result.message}")

    async def _accrue_fulfillment(self, order: Order, changed_by: Optional[uuid.UUID]) -> None:
        result = await self.commissions.accrue_fulfillment_commission(order)
        logger.info(f"Fulfillment accrual for order {order.order_number}: {result.message}")

    # ==================== PAYMENT ====================

    async def confirm_payment(
        self,
        order_id: uuid.UUID,
        confirmed_by: uuid.UUID,
        notes: Optional[str] = None,
    ) -> StatusChangeResult:
        """
        Record a manually confirmed payment and move the order to PROCESSING.

        Closes the order's open payment and review tasks.
        """
        order = await self.get_order_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")

        if order.payment_status == PaymentStatus.COMPLETED.value:
            raise ValidationError("Payment is already confirmed for this order")
        if order.status not in (
            OrderStatus.CREATED.value,
            OrderStatus.PENDING_PAYMENT.value,
            OrderStatus.PROCESSING.value,
        ):
            raise ValidationError(f"Cannot confirm payment for an order in status {order.status}")

        from_status = order.status
        await self.db.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(
                payment_status=PaymentStatus.COMPLETED.value,
                paid_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        for category in (TaskCategory.PAYMENT, TaskCategory.ORDER_REVIEW):
            await self.tasks.close_related_tasks(
                RelatedEntityType.ORDER.value, [order_id], category, TaskStatus.COMPLETED
            )
        logger.info(f"Payment confirmed for order {order.order_number} by {confirmed_by}")

        if from_status == OrderStatus.PROCESSING.value:
            await self.db.commit()
            return StatusChangeResult(
                order=await self.get_order_by_id(order_id, include_all=True),
                from_status=from_status,
                to_status=from_status,
            )

        reason = "Payment confirmed" + (f": {notes}" if notes else "")
        return await self.update_order_status(order_id, OrderStatus.PROCESSING, reason, confirmed_by)
