# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from app.models.enums import TaskPriority, TaskStatus


class CreateTaskRequest(BaseModel):
    """Request body for assigning a task."""

    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    assigned_to: uuid.UUID
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: date | None = None


class UpdateTaskStatusRequest(BaseModel):
    status: TaskStatus


class TaskResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    title: str
    description: str | None
    assigned_to: uuid.UUID
    assigned_by: uuid.UUID
    priority: TaskPriority
    due_date: date | None
    status: TaskStatus
    completed_at: datetime | None
    created_at: datetime


class TaskListResponse(BaseModel):
    """Paginated list of tasks."""

    items: list[TaskResponse]
    total: int


class TaskSummaryResponse(BaseModel):
    """Task counts per status for one employee."""

    employee_id: uuid.UUID
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0
    total: int = 0
