"""Commission accrual, cancellation and payout.

Two accrual paths share one flow:
- ORDER_REFERRAL: the customer's referrer earns ``referrer.commission_rate``%
- DISTRIBUTOR_FULFILLMENT: the distributor who completed fulfillment earns
  their ``commission_rate``% (or the configured default)

Only SHIPPED, DELIVERED and COMPLETED orders qualify. There is at most one
commission per (order, commission type); the unique constraint on the table
backs the pre-insert lookup, so a concurrent duplicate resolves to the row
that won.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
from datetime import datetime, timezone
from decimal import Decimal
import uuid
import logging

from sqlalchemy import select, func, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.models.commission import (
    Commission, CommissionStatus, CommissionType, RelatedEntityType, OPEN_COMMISSION_STATUSES
)
from storefront.models.fulfillment import DistributorAssignment, AssignmentStatus
from storefront.models.order import Order, COMMISSIONABLE_STATUSES
from storefront.models.task import TaskCategory, TaskPriority, TaskStatus
from storefront.models.user import User
from storefront.services.pricing_service import round_money, ZERO
from storefront.services.task_service import TaskService

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

COMMISSION_LABELS = {
    CommissionType.ORDER_REFERRAL.value: "referral",
    CommissionType.DISTRIBUTOR_FULFILLMENT.value: "fulfillment",
    CommissionType.NEW_REFERRAL.value: "new referral",
}


class CommissionNotEligibleError(ValidationError):
    def __init__(self, order_status: str):
        super().__init__(
            "Commission can only be calculated for shipped, delivered or completed orders",
            {"order_status": order_status}
        )


def calculate_commission_amount(order_total: Decimal, rate_percent: Decimal) -> Decimal:
    """round2(total × rate / 100), half up. 66.50 at 5% → 3.33."""
    return round_money(Decimal(order_total) * Decimal(rate_percent) / HUNDRED)


@dataclass
class AccrualResult:
    commission_type: str
    created: bool
    message: str
    commission: Optional[Commission] = None


class CommissionService:
    """Service for referral and distributor commissions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tasks = TaskService(db)

    # ==================== ACCRUAL ====================

    @staticmethod
    def ensure_eligible(order: Order) -> None:
        if order.status not in COMMISSIONABLE_STATUSES:
            raise CommissionNotEligibleError(order.status)

    async def get_existing(self, order_id: uuid.UUID, commission_type: CommissionType) -> Optional[Commission]:
        stmt = select(Commission).where(
            Commission.related_entity_type == RelatedEntityType.ORDER.value,
            Commission.related_id == order_id,
            Commission.commission_type == commission_type.value,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _create_commission(
        self,
        order: Order,
        recipient_id: uuid.UUID,
        commission_type: CommissionType,
        rate: Decimal,
        amount: Decimal,
    ) -> AccrualResult:
        label = COMMISSION_LABELS[commission_type.value]
        commission = Commission(
            user_id=recipient_id,
            commission_type=commission_type.value,
            status=CommissionStatus.PENDING.value,
            amount=amount,
            rate=rate,
            order_amount=order.total_amount,
            related_entity_type=RelatedEntityType.ORDER.value,
            related_id=order.id,
            notes=f"{label.capitalize()} commission for order {order.order_number}",
        )
        try:
            async with self.db.begin_nested():
                self.db.add(commission)
        except IntegrityError:
            # Lost the race against a concurrent accrual for the same order
            existing = await self.get_existing(order.id, commission_type)
            logger.info(f"Concurrent {label} commission for order {order.order_number}, using {existing.id}")
            return AccrualResult(commission_type.value, False, "Commission already calculated for this order", existing)

        await self.tasks.create_task(
            title=f"Approve {label} commission payout for Order {order.order_number}",
            description=f"${amount} ({rate}%) on order total ${order.total_amount}",
            category=TaskCategory.PAYOUT,
            priority=TaskPriority.MEDIUM,
            related_entity_type=RelatedEntityType.COMMISSION.value,
            related_id=commission.id,
            assign_to_admin=True,
        )

        logger.info(
            f"Commission created for user {recipient_id}: "
            f"Order {order.order_number}, Amount: {amount} (Rate: {rate}%, Type: {commission_type.value})"
        )
        return AccrualResult(commission_type.value, True, "Commission calculated", commission)

    async def accrue_referral_commission(self, order: Order) -> AccrualResult:
        """Accrue the referrer's share of a shipped order. No-ops are reported, not raised."""
        self.ensure_eligible(order)
        commission_type = CommissionType.ORDER_REFERRAL

        existing = await self.get_existing(order.id, commission_type)
        if existing:
            logger.info(f"Referral commission already calculated for order {order.order_number}")
            return AccrualResult(commission_type.value, False, "Commission already calculated for this order", existing)

        customer = await self.db.get(User, order.user_id)
        if not customer or not customer.referred_by_id:
            return AccrualResult(commission_type.value, False, "Customer has no referrer")

        referrer = await self.db.get(User, customer.referred_by_id)
        if not referrer or referrer.commission_rate is None:
            return AccrualResult(commission_type.value, False, "Referrer has no commission rate configured")

        amount = calculate_commission_amount(order.total_amount, referrer.commission_rate)
        if amount <= ZERO:
            return AccrualResult(commission_type.value, False, "Calculated commission is zero")

        return await self._create_commission(order, referrer.id, commission_type, referrer.commission_rate, amount)

    async def accrue_fulfillment_commission(self, order: Order) -> AccrualResult:
        """Accrue the commission of the distributor who completed fulfillment."""
        self.ensure_eligible(order)
        commission_type = CommissionType.DISTRIBUTOR_FULFILLMENT

        existing = await self.get_existing(order.id, commission_type)
        if existing:
            logger.info(f"Fulfillment commission already calculated for order {order.order_number}")
            return AccrualResult(commission_type.value, False, "Commission already calculated for this order", existing)

        stmt = (
            select(DistributorAssignment)
            .where(
                DistributorAssignment.order_id == order.id,
                DistributorAssignment.status == AssignmentStatus.COMPLETED.value,
            )
            .order_by(DistributorAssignment.completed_at.desc())
            .limit(1)
        )
        assignment = (await self.db.execute(stmt)).scalar_one_or_none()
        if not assignment:
            return AccrualResult(commission_type.value, False, "No completed distributor assignment")

        distributor = await self.db.get(User, assignment.distributor_id)
        rate = distributor.commission_rate if distributor and distributor.commission_rate is not None \
            else settings.DEFAULT_DISTRIBUTOR_COMMISSION_RATE

        amount = calculate_commission_amount(order.total_amount, rate)
        if amount <= ZERO:
            return AccrualResult(commission_type.value, False, "Calculated commission is zero")

        return await self._create_commission(order, assignment.distributor_id, commission_type, rate, amount)

    async def calculate_for_order(self, order_id: uuid.UUID) -> List[AccrualResult]:
        """Run both accrual paths for an order (admin-triggered)."""
        order = await self.db.get(Order, order_id)
        if not order:
            raise NotFoundError("Order not found")
        self.ensure_eligible(order)

        return [
            await self.accrue_referral_commission(order),
            await self.accrue_fulfillment_commission(order),
        ]

    # ==================== CANCELLATION / PAYOUT ====================

    async def cancel_commissions_for_order(self, order_id: uuid.UUID, reason: str = "order cancellation") -> int:
        """
        Cancel open commissions for an order and their pending payout tasks.

        Paid commissions are left alone.

        Returns:
            Number of commissions cancelled
        """
        stmt = select(Commission).where(
            Commission.related_entity_type == RelatedEntityType.ORDER.value,
            Commission.related_id == order_id,
            Commission.status.in_(OPEN_COMMISSION_STATUSES),
        )
        commissions = list((await self.db.execute(stmt)).scalars().all())
        if not commissions:
            return 0

        note = f"Cancelled due to {reason}"
        for commission in commissions:
            commission.status = CommissionStatus.CANCELLED.value
            commission.notes = f"{commission.notes} | {note}" if commission.notes else note

        await self.tasks.close_related_tasks(
            RelatedEntityType.COMMISSION.value,
            [c.id for c in commissions],
            TaskCategory.PAYOUT,
            TaskStatus.CANCELLED,
        )
        await self.db.flush()

        logger.info(f"Cancelled {len(commissions)} commission(s) for order {order_id}: {reason}")
        return len(commissions)

    async def payout(
        self,
        commission_ids: Sequence[uuid.UUID],
        payment_reference: str,
    ) -> Tuple[List[Commission], List[uuid.UUID]]:
        """
        Mark open commissions as paid.

        Returns:
            (paid commissions, ids skipped because missing or not open)
        """
        stmt = select(Commission).where(Commission.id.in_(list(commission_ids)))
        found = {c.id: c for c in (await self.db.execute(stmt)).scalars().all()}

        paid: List[Commission] = []
        skipped: List[uuid.UUID] = []
        now = datetime.now(timezone.utc)
        for commission_id in commission_ids:
            commission = found.get(commission_id)
            if not commission or commission.status not in OPEN_COMMISSION_STATUSES:
                skipped.append(commission_id)
                continue
            commission.status = CommissionStatus.PAID.value
            commission.paid_at = now
            commission.payment_reference = payment_reference
            paid.append(commission)

        await self.tasks.close_related_tasks(
            RelatedEntityType.COMMISSION.value,
            [c.id for c in paid],
            TaskCategory.PAYOUT,
            TaskStatus.COMPLETED,
        )
        await self.db.flush()

        if skipped:
            logger.warning(f"Payout {payment_reference}: skipped {len(skipped)} commission(s) not open for payout")
        logger.info(f"Payout {payment_reference}: paid {len(paid)} commission(s)")
        return paid, skipped

    # ==================== QUERIES ====================

    async def list_commissions(
        self,
        status: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
        commission_type: Optional[str] = None,
        related_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Commission], int]:
        filters = []
        if status:
            filters.append(Commission.status == status)
        if user_id:
            filters.append(Commission.user_id == user_id)
        if commission_type:
            filters.append(Commission.commission_type == commission_type)
        if related_id:
            filters.append(Commission.related_id == related_id)

        count_stmt = select(func.count(Commission.id))
        stmt = select(Commission)
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
            stmt = stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        stmt = stmt.order_by(Commission.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def list_pending_payouts(
        self,
        user_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Commission], int, Decimal]:
        """
        Commissions still awaiting payout (PENDING or APPROVED), oldest first.

        Returns:
            (page of commissions, total count, total amount across all pages)
        """
        filters = [Commission.status.in_(OPEN_COMMISSION_STATUSES)]
        if user_id:
            filters.append(Commission.user_id == user_id)

        count_stmt = select(func.count(Commission.id), func.coalesce(func.sum(Commission.amount), 0)).where(*filters)
        total, amount = (await self.db.execute(count_stmt)).one()

        stmt = select(Commission).where(*filters).order_by(Commission.created_at.asc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total or 0, round_money(Decimal(str(amount)))

    async def get_summary(self, user_id: uuid.UUID) -> Dict[str, Decimal]:
        """Totals per status for one user."""
        stmt = (
            select(Commission.status, func.coalesce(func.sum(Commission.amount), 0))
            .where(Commission.user_id == user_id)
            .group_by(Commission.status)
        )
        totals = {status: round_money(Decimal(str(amount))) for status, amount in (await self.db.execute(stmt)).all()}

        summary = {
            "pending_amount": totals.get(CommissionStatus.PENDING.value, ZERO),
            "approved_amount": totals.get(CommissionStatus.APPROVED.value, ZERO),
            "paid_amount": totals.get(CommissionStatus.PAID.value, ZERO),
            "cancelled_amount": totals.get(CommissionStatus.CANCELLED.value, ZERO),
        }
        summary["total_earned"] = summary["pending_amount"] + summary["approved_amount"] + summary["paid_amount"]
        return summary
