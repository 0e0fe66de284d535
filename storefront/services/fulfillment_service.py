"""Distributor fulfillment.

Flow:
1. Admin assigns a PROCESSING order to a distributor ("Fulfill Order X" task)
2. Distributor ships from their own stock and records tracking details
3. Admin verifies and marks the order SHIPPED, which accrues the
   distributor's fulfillment commission
"""
from typing import List, Optional
from datetime import datetime, timezone
import uuid
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.models.commission import RelatedEntityType
from storefront.models.fulfillment import DistributorAssignment, AssignmentStatus
from storefront.models.order import Order, OrderStatus
from storefront.models.task import TaskCategory, TaskPriority, TaskStatus
from storefront.models.user import User, UserRole
from storefront.services.task_service import TaskService

logger = logging.getLogger(__name__)


class FulfillmentService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tasks = TaskService(db)

    async def assign_distributor(
        self,
        order_id: uuid.UUID,
        distributor_id: uuid.UUID,
        assigned_by: uuid.UUID,
        notes: Optional[str] = None,
    ) -> DistributorAssignment:
        """Assign (or reassign) a paid order to a distributor."""
        order = await self.db.get(Order, order_id)
        if not order:
            raise NotFoundError("Order not found")
        if order.status != OrderStatus.PROCESSING.value:
            raise ValidationError(f"Only PROCESSING orders can be assigned, order is {order.status}")

        distributor = await self.db.get(User, distributor_id)
        if not distributor or distributor.role != UserRole.DISTRIBUTOR.value or not distributor.is_active:
            raise ValidationError("Selected user is not an active distributor")

        # Reassignment replaces any open assignment
        await self.db.execute(
            update(DistributorAssignment)
            .where(
                DistributorAssignment.order_id == order_id,
                DistributorAssignment.status == AssignmentStatus.ASSIGNED.value,
            )
            .values(status=AssignmentStatus.CANCELLED.value)
            .execution_options(synchronize_session=False)
        )
        await self.tasks.close_related_tasks(
            RelatedEntityType.ORDER.value, [order_id], TaskCategory.FULFILLMENT, TaskStatus.CANCELLED
        )

        assignment = DistributorAssignment(
            order_id=order_id,
            distributor_id=distributor_id,
            assigned_by=assigned_by,
            status=AssignmentStatus.ASSIGNED.value,
            fulfillment_notes=notes,
        )
        self.db.add(assignment)
        await self.db.flush()

        await self.tasks.create_task(
            title=f"Fulfill Order {order.order_number}",
            category=TaskCategory.FULFILLMENT,
            priority=TaskPriority.HIGH,
            assigned_to=distributor_id,
            related_entity_type=RelatedEntityType.ORDER.value,
            related_id=order_id,
            due_in_days=2,
            notes=notes,
        )

        logger.info(f"Order {order.order_number} assigned to distributor {distributor_id} by {assigned_by}")
        return assignment

    async def list_distributor_orders(
        self,
        distributor_id: uuid.UUID,
        status: Optional[str] = None,
    ) -> List[DistributorAssignment]:
        stmt = (
            select(DistributorAssignment)
            .options(
                selectinload(DistributorAssignment.order).selectinload(Order.items),
                selectinload(DistributorAssignment.order).selectinload(Order.status_history),
            )
            .where(DistributorAssignment.distributor_id == distributor_id)
        )
        if status:
            stmt = stmt.where(DistributorAssignment.status == status)
        else:
            stmt = stmt.where(DistributorAssignment.status != AssignmentStatus.CANCELLED.value)
        stmt = stmt.order_by(DistributorAssignment.created_at.desc())

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def fulfill_order(
        self,
        order_id: uuid.UUID,
        distributor_id: uuid.UUID,
        tracking_number: str,
        carrier: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> DistributorAssignment:
        """Distributor records that the order has left their hands."""
        stmt = select(DistributorAssignment).where(
            DistributorAssignment.order_id == order_id,
            DistributorAssignment.distributor_id == distributor_id,
            DistributorAssignment.status == AssignmentStatus.ASSIGNED.value,
        )
        assignment = (await self.db.execute(stmt)).scalar_one_or_none()
        if not assignment:
            raise NotFoundError("No open assignment for this order")

        order = await self.db.get(Order, order_id)
        if order.status != OrderStatus.PROCESSING.value:
            raise ValidationError(f"Order is {order.status} and can no longer be fulfilled")

        assignment.status = AssignmentStatus.COMPLETED.value
        assignment.tracking_number = tracking_number
        assignment.carrier = carrier
        if notes:
            assignment.fulfillment_notes = notes
        assignment.completed_at = datetime.now(timezone.utc)

        await self.tasks.close_related_tasks(
            RelatedEntityType.ORDER.value, [order_id], TaskCategory.FULFILLMENT, TaskStatus.COMPLETED
        )
        await self.tasks.create_task(
            title=f"Verify fulfillment and ship Order {order.order_number}",
            description=f"Tracking: {tracking_number}" + (f" ({carrier})" if carrier else ""),
            category=TaskCategory.FULFILLMENT,
            priority=TaskPriority.MEDIUM,
            related_entity_type=RelatedEntityType.ORDER.value,
            related_id=order_id,
            due_in_days=1,
            assign_to_admin=True,
        )
        await self.db.flush()

        logger.info(f"Order {order.order_number} fulfilled by distributor {distributor_id}, tracking {tracking_number}")
        return assignment
