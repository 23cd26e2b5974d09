import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from docbox.tasks.models import TaskStatus, TaskType


class TaskCreate(BaseModel):
    box_id: uuid.UUID | None = None
    task_type: TaskType = TaskType.GENERAL_DOC
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    assignee_id: uuid.UUID | None = None
    due_date: date | None = None


class TaskUpdate(BaseModel):
    task_type: TaskType | None = None
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    assignee_id: uuid.UUID | None = None
    due_date: date | None = None
    status: TaskStatus | None = None


class TaskCancel(BaseModel):
    reason: str | None = Field(None, max_length=2000)


class TaskResponse(BaseModel):
    id: uuid.UUID
    box_id: uuid.UUID | None
    task_type: TaskType
    status: TaskStatus
    title: str
    description: str | None
    assignee_id: uuid.UUID | None
    due_date: date | None
    escalation_level: int
    reminder_count: int
    completed_at: datetime | None
    cancel_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TaskFilter(BaseModel):
    status: TaskStatus | None = None
    task_type: TaskType | None = None
    box_id: uuid.UUID | None = None
    assignee_id: uuid.UUID | None = None
    overdue_only: bool = False
