from typing import List, Optional
import uuid

from fastapi import APIRouter, Query, status

from storefront.api.deps import DB, AdminAuth, CurrentAuth, page_count
from storefront.core.enum_utils import get_enum_value
from storefront.models.task import TaskCategory, TaskPriority, TaskStatus
from storefront.schemas.task import TaskCompleteRequest, TaskCreate, TaskListResponse, TaskResponse, TaskUpdate
from storefront.services.task_service import TaskService

router = APIRouter(tags=["Tasks"])


@router.get("/admin/tasks", response_model=TaskListResponse)
async def list_tasks(
    auth: AdminAuth,
    db: DB,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[TaskStatus] = None,
    category: Optional[TaskCategory] = None,
    priority: Optional[TaskPriority] = None,
    assigned_to: Optional[uuid.UUID] = None,
):
    items, total = await TaskService(db).list_tasks(
        status=get_enum_value(status),
        category=get_enum_value(category),
        priority=get_enum_value(priority),
        assigned_to=assigned_to,
        skip=(page - 1) * limit,
        limit=limit,
    )
    return TaskListResponse(
        items=[TaskResponse.model_validate(t) for t in items],
        total=total,
        page=page,
        size=limit,
        pages=page_count(total, limit),
    )


@router.get("/admin/tasks/pending", response_model=List[TaskResponse])
async def list_pending_tasks(auth: AdminAuth, db: DB):
    """Open tasks assigned to the calling admin or to nobody."""
    tasks = await TaskService(db).list_pending_tasks(auth.user_id)
    return [TaskResponse.model_validate(t) for t in tasks]


@router.post("/admin/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(data: TaskCreate, auth: AdminAuth, db: DB):
    task = await TaskService(db).create_task(**data.model_dump())
    return TaskResponse.model_validate(task)


@router.patch("/admin/tasks/{task_id}", response_model=TaskResponse)
async def update_task(task_id: uuid.UUID, data: TaskUpdate, auth: AdminAuth, db: DB):
    task = await TaskService(db).update_task(task_id, data.model_dump(exclude_unset=True))
    return TaskResponse.model_validate(task)


@router.post("/tasks/{task_id}/complete", response_model=TaskResponse)
async def complete_task(
    task_id: uuid.UUID,
    auth: CurrentAuth,
    db: DB,
    data: Optional[TaskCompleteRequest] = None,
):
    """Complete a task. Allowed for its assignee and for admins."""
    task = await TaskService(db).complete_task(task_id, auth, data.notes if data else None)
    return TaskResponse.model_validate(task)
