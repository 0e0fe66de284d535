"""Wholesale applications.

Flow:
1. Customer applies with business details ("Review wholesale application" task)
2. Admin approves, promoting the applicant to WHOLESALE_BUYER, or rejects
   with a reason
3. The review task is closed either way

A customer holds at most one PENDING application. The new role shows up in
tokens issued after the approval.
"""
from typing import List, Optional, Tuple
from datetime import datetime, timezone
import uuid
import logging

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import ConflictError, NotFoundError, ValidationError
from storefront.models.commission import RelatedEntityType
from storefront.models.task import TaskCategory, TaskPriority, TaskStatus
from storefront.models.user import User, UserRole
from storefront.models.wholesale import WholesaleApplication, WholesaleApplicationStatus
from storefront.schemas.auth import AuthContext
from storefront.services.task_service import TaskService

logger = logging.getLogger(__name__)


class WholesaleService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.tasks = TaskService(db)

    async def apply(self, auth: AuthContext, data: dict) -> WholesaleApplication:
        """
        Submit a wholesale application for the caller.

        Raises:
            ValidationError: caller is not a customer
            ConflictError: already wholesale, or an application is pending
        """
        user = await self.db.get(User, auth.user_id)
        if not user:
            raise NotFoundError("User not found")
        if user.role == UserRole.WHOLESALE_BUYER.value:
            raise ConflictError("Your account already has wholesale access")
        if user.role != UserRole.CUSTOMER.value:
            raise ValidationError("Only customer accounts can apply for wholesale")

        pending = await self.db.execute(
            select(func.count(WholesaleApplication.id)).where(
                WholesaleApplication.user_id == user.id,
                WholesaleApplication.status == WholesaleApplicationStatus.PENDING.value,
            )
        )
        if pending.scalar():
            raise ConflictError("You already have a pending wholesale application")

        application = WholesaleApplication(
            user_id=user.id,
            company_name=data["company_name"].strip(),
            tax_id=data["tax_id"].strip(),
            business_type=data["business_type"].strip(),
            address=data["address"],
            phone=data["phone"].strip(),
            website=str(data["website"]) if data.get("website") else None,
            notes=data.get("notes"),
            status=WholesaleApplicationStatus.PENDING.value,
        )
        self.db.add(application)
        await self.db.flush()

        await self.tasks.create_task(
            title=f"Review wholesale application from {application.company_name}",
            description=f"{user.name} <{user.email}>, {application.business_type}",
            category=TaskCategory.WHOLESALE_REVIEW,
            priority=TaskPriority.MEDIUM,
            related_entity_type=RelatedEntityType.WHOLESALE_APPLICATION.value,
            related_id=application.id,
            assign_to_admin=True,
        )

        logger.info(f"Wholesale application {application.id} submitted by {user.email}")
        return application

    async def list_applications(
        self,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[WholesaleApplication], int]:
        count_stmt = select(func.count(WholesaleApplication.id))
        stmt = select(WholesaleApplication)
        if status:
            count_stmt = count_stmt.where(WholesaleApplication.status == status)
            stmt = stmt.where(WholesaleApplication.status == status)

        total = (await self.db.execute(count_stmt)).scalar() or 0
        stmt = stmt.order_by(WholesaleApplication.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_application(self, application_id: uuid.UUID) -> WholesaleApplication:
        application = await self.db.get(WholesaleApplication, application_id)
        if not application:
            raise NotFoundError("Wholesale application not found")
        return application

    async def approve(
        self,
        application_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        notes: Optional[str] = None,
    ) -> WholesaleApplication:
        """Approve a pending application and promote the applicant."""
        application = await self._review(
            application_id, reviewer_id, WholesaleApplicationStatus.APPROVED, notes
        )

        applicant = await self.db.get(User, application.user_id)
        if applicant.role == UserRole.CUSTOMER.value:
            applicant.role = UserRole.WHOLESALE_BUYER.value
            await self.db.flush()

        logger.info(f"Wholesale application {application_id} approved by {reviewer_id}; {applicant.email} promoted")
        return application

    async def reject(self, application_id: uuid.UUID, reviewer_id: uuid.UUID, reason: str) -> WholesaleApplication:
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")

        application = await self._review(
            application_id, reviewer_id, WholesaleApplicationStatus.REJECTED, reason.strip()
        )
        logger.info(f"Wholesale application {application_id} rejected by {reviewer_id}: {reason.strip()}")
        return application

    async def _review(
        self,
        application_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        new_status: WholesaleApplicationStatus,
        notes: Optional[str],
    ) -> WholesaleApplication:
        application = await self.get_application(application_id)

        # Only one review wins
        result = await self.db.execute(
            update(WholesaleApplication)
            .where(
                WholesaleApplication.id == application_id,
                WholesaleApplication.status == WholesaleApplicationStatus.PENDING.value,
            )
            .values(
                status=new_status.value,
                reviewed_by=reviewer_id,
                reviewed_at=datetime.now(timezone.utc),
                reviewer_notes=notes,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.refresh(application)
            raise ConflictError(f"Application has already been {application.status.lower()}")

        await self.tasks.close_related_tasks(
            RelatedEntityType.WHOLESALE_APPLICATION.value,
            [application_id],
            TaskCategory.WHOLESALE_REVIEW,
            TaskStatus.COMPLETED,
        )
        await self.db.refresh(application)
        return application
