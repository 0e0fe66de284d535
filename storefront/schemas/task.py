from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from storefront.models.task import TaskCategory, TaskPriority, TaskStatus
from storefront.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


def _upper(v):
    if isinstance(v, str):
        return v.strip().upper()
    return v


class TaskCreate(BaseCreateSchema):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: TaskCategory = TaskCategory.OTHER
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: Optional[UUID] = None
    related_entity_type: Optional[str] = Field(None, max_length=50)
    related_id: Optional[UUID] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("category", "priority", mode="before")
    @classmethod
    def normalize_enums(cls, v):
        return _upper(v)


class TaskUpdate(BaseUpdateSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[UUID] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("status", "priority", mode="before")
    @classmethod
    def normalize_enums(cls, v):
        return _upper(v)


class TaskCompleteRequest(BaseModel):
    notes: Optional[str] = None


class TaskResponse(BaseResponseSchema):
    id: UUID
    title: str
    description: Optional[str] = None
    category: str
    status: str
    priority: str
    assigned_to: Optional[UUID] = None
    related_entity_type: Optional[str] = None
    related_id: Optional[UUID] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class TaskListResponse(BaseModel):
    items: List[TaskResponse]
    total: int
    page: int
    size: int
    pages: int
