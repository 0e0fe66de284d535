"""Admin task queue.

Tasks are created by order lifecycle events (order review, payment
confirmation, refunds, commission payouts, failed side effects) and by
admins directly.
"""
from typing import List, Optional, Sequence, Tuple
from datetime import datetime, timedelta, timezone
import uuid
import logging

from sqlalchemy import select, func, and_, or_, case, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.enum_utils import get_enum_value
from storefront.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from storefront.models.task import Task, TaskCategory, TaskPriority, TaskStatus, TASK_PRIORITY_RANK
from storefront.models.user import User, ADMIN_ROLES
from storefront.schemas.auth import AuthContext

logger = logging.getLogger(__name__)

CLOSED_TASK_STATUSES = (TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value)
OPEN_TASK_STATUSES = (TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value)


class TaskService:
    """Service for creating and managing admin tasks."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_default_assignee(self) -> Optional[uuid.UUID]:
        """First active admin by signup date, or None when there is no admin."""
        stmt = (
            select(User.id)
            .where(User.role.in_(ADMIN_ROLES), User.is_active == True)  # noqa: E712
            .order_by(User.created_at.asc())
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def create_task(
        self,
        title: str,
        category: TaskCategory | str,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        description: Optional[str] = None,
        assigned_to: Optional[uuid.UUID] = None,
        related_entity_type: Optional[str] = None,
        related_id: Optional[uuid.UUID] = None,
        due_in_days: Optional[int] = None,
        due_date: Optional[datetime] = None,
        notes: Optional[str] = None,
        assign_to_admin: bool = False,
    ) -> Task:
        """
        Create a task.

        Args:
            assign_to_admin: When no assignee is given, assign the first admin.
            due_in_days: Convenience for ``due_date = now + N days``.
        """
        if assigned_to is None and assign_to_admin:
            assigned_to = await self.get_default_assignee()

        if due_date is None and due_in_days is not None:
            due_date = datetime.now(timezone.utc) + timedelta(days=due_in_days)

        task = Task(
            title=title,
            description=description,
            category=get_enum_value(category),
            priority=get_enum_value(priority),
            status=TaskStatus.PENDING.value,
            assigned_to=assigned_to,
            related_entity_type=related_entity_type,
            related_id=related_id,
            due_date=due_date,
            notes=notes,
        )
        self.db.add(task)
        await self.db.flush()

        logger.info(f"Task created: '{title}' ({task.category}/{task.priority}) assigned to {assigned_to}")
        return task

    async def get_task(self, task_id: uuid.UUID) -> Task:
        task = await self.db.get(Task, task_id)
        if not task:
            raise NotFoundError("Task not found")
        return task

    async def list_tasks(
        self,
        status: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Task], int]:
        """List tasks ordered by priority, then due date (soonest first), then newest."""
        filters = []
        if status:
            filters.append(Task.status == status)
        if category:
            filters.append(Task.category == category)
        if priority:
            filters.append(Task.priority == priority)
        if assigned_to:
            filters.append(Task.assigned_to == assigned_to)

        count_stmt = select(func.count(Task.id))
        stmt = select(Task)
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
            stmt = stmt.where(and_(*filters))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        priority_rank = case(TASK_PRIORITY_RANK, value=Task.priority, else_=len(TASK_PRIORITY_RANK) + 1)
        stmt = (
            stmt.order_by(
                priority_rank.asc(),
                Task.due_date.is_(None),
                Task.due_date.asc(),
                Task.created_at.desc(),
            )
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def update_task(self, task_id: uuid.UUID, data: dict) -> Task:
        task = await self.get_task(task_id)

        if "assigned_to" in data and data["assigned_to"] is not None:
            assignee = await self.db.get(User, data["assigned_to"])
            if not assignee or not assignee.is_active:
                raise ValidationError("Assignee not found")

        for field, value in data.items():
            if field in ("status", "priority"):
                value = get_enum_value(value)
            setattr(task, field, value)

        if task.status == TaskStatus.COMPLETED.value and task.completed_at is None:
            task.completed_at = datetime.now(timezone.utc)
        elif task.status != TaskStatus.COMPLETED.value:
            task.completed_at = None

        await self.db.flush()
        logger.info(f"Task {task_id} updated: {sorted(data.keys())}")
        return task

    async def complete_task(self, task_id: uuid.UUID, auth: AuthContext, notes: Optional[str] = None) -> Task:
        """Mark a task completed. Only the assignee or an admin may do this."""
        task = await self.get_task(task_id)

        if not auth.is_admin and task.assigned_to != auth.user_id:
            raise PermissionDeniedError("Only the assignee or an admin can complete this task")

        if task.status in CLOSED_TASK_STATUSES:
            raise ValidationError(f"Task is already {task.status.lower()}")

        task.status = TaskStatus.COMPLETED.value
        task.completed_at = datetime.now(timezone.utc)
        if notes:
            task.notes = f"{task.notes} | {notes}" if task.notes else notes

        await self.db.flush()
        logger.info(f"Task {task_id} completed by {auth.user_id}")
        return task

    async def list_user_tasks(self, user_id: uuid.UUID, include_closed: bool = False) -> List[Task]:
        stmt = select(Task).where(Task.assigned_to == user_id)
        if not include_closed:
            stmt = stmt.where(Task.status.notin_(CLOSED_TASK_STATUSES))
        stmt = stmt.order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.created_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_pending_tasks(self, admin_id: uuid.UUID) -> List[Task]:
        """Open tasks on an admin's plate: their own plus unassigned ones, in priority order."""
        priority_rank = case(TASK_PRIORITY_RANK, value=Task.priority, else_=len(TASK_PRIORITY_RANK) + 1)
        stmt = (
            select(Task)
            .where(
                Task.status.in_(OPEN_TASK_STATUSES),
                or_(Task.assigned_to == admin_id, Task.assigned_to.is_(None)),
            )
            .order_by(
                priority_rank.asc(),
                Task.due_date.is_(None),
                Task.due_date.asc(),
                Task.created_at.asc(),
            )
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def close_related_tasks(
        self,
        related_entity_type: str,
        related_ids: Sequence[uuid.UUID],
        category: TaskCategory | str,
        new_status: TaskStatus,
    ) -> int:
        """
        Close still-pending tasks pointing at the given entities.

        Returns:
            Number of tasks updated
        """
        if not related_ids:
            return 0

        values = {"status": new_status.value}
        if new_status == TaskStatus.COMPLETED:
            values["completed_at"] = datetime.now(timezone.utc)

        stmt = (
            update(Task)
            .where(
                Task.related_entity_type == related_entity_type,
                Task.related_id.in_(list(related_ids)),
                Task.category == get_enum_value(category),
                Task.status.in_(OPEN_TASK_STATUSES),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0
