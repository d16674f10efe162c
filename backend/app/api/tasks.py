# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import AuthDep, validate_company_scope
from app.db import SessionDep
from app.schemas.task import (
    CreateTaskRequest,
    TaskListResponse,
    TaskResponse,
    TaskSummaryResponse,
    UpdateTaskStatusRequest,
)
from app.services import task as task_service

tasks_router = APIRouter(
    prefix="/companies/{company_id}",
    tags=["tasks"],
    dependencies=[Depends(validate_company_scope)],
)


@tasks_router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def assign_task(
    payload: CreateTaskRequest,
    session: SessionDep,
    auth: AuthDep,
) -> TaskResponse:
    """Assign a task (HR, management or the assignee's line manager)."""
    return await task_service.assign_task(session, auth, payload)


@tasks_router.patch("/tasks/{task_id}/status", response_model=TaskResponse)
async def update_task_status(
    task_id: uuid.UUID,
    payload: UpdateTaskStatusRequest,
    session: SessionDep,
    auth: AuthDep,
) -> TaskResponse:
    return await task_service.update_task_status(session, auth, task_id, payload)


@tasks_router.get("/employees/{employee_id}/tasks", response_model=TaskListResponse)
async def list_employee_tasks(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    direction: Literal["assigned_to", "assigned_by"] = Query(default="assigned_to"),
    status_filter: str | None = Query(default=None, alias="status"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> TaskListResponse:
    """Tasks assigned to an employee, or assigned by them with ``direction=assigned_by``."""
    return await task_service.list_tasks(session, auth, employee_id, direction, status_filter, offset, limit)


@tasks_router.get("/employees/{employee_id}/tasks/summary", response_model=TaskSummaryResponse)
async def get_task_summary(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> TaskSummaryResponse:
    return await task_service.get_task_summary(session, auth, employee_id)
