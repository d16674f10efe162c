# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Literal

from sqlalchemy import func, select
from sqlmodel import col

from app.exceptions import AppError
from app.models.base import now_utc
from app.models.enums import AuditAction, AuditEntityType, NotificationType, TaskPriority, TaskStatus, UserRole
from app.models.task import Task
from app.schemas.task import TaskListResponse, TaskResponse, TaskSummaryResponse
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.employee import ensure_can_view_employee, get_employee_or_404, is_line_manager_of
from app.services.notification import queue_notification

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.task import CreateTaskRequest, UpdateTaskStatusRequest

logger = logging.getLogger(__name__)


def _build_task_response(task: Task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        company_id=task.company_id,
        title=task.title,
        description=task.description,
        assigned_to=task.assigned_to,
        assigned_by=task.assigned_by,
        priority=TaskPriority(task.priority),
        due_date=task.due_date,
        status=TaskStatus(task.status),
        completed_at=task.completed_at,
        created_at=task.created_at,
    )


async def _get_task_or_404(session: AsyncSession, company_id: uuid.UUID, task_id: uuid.UUID) -> Task:
    result = await session.execute(
        select(Task).where(
            col(Task.id) == task_id,
            col(Task.company_id) == company_id,
        )
    )
    task = result.scalar_one_or_none()
    if task is None:
        raise AppError("Task not found", status_code=404)
    return task


async def assign_task(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateTaskRequest,
) -> TaskResponse:
    """Assign a task and notify the assignee.

    Admin, HR and management may assign to anyone; other callers only to
    employees they line-manage.
    """
    assignee = await get_employee_or_404(session, auth.company_id, payload.assigned_to)
    if not auth.has_role(UserRole.HR, UserRole.MANAGEMENT) and not await is_line_manager_of(session, auth, assignee):
        raise AppError("Only HR, management or the line manager can assign tasks", status_code=403)

    task = Task(
        company_id=auth.company_id,
        title=payload.title,
        description=payload.description,
        assigned_to=assignee.id,
        assigned_by=auth.employee_id or auth.user_id,
        priority=payload.priority.value,
        due_date=payload.due_date,
    )
    session.add(task)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.TASK,
        entity_id=task.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(task),
    )
    due = f" Due {task.due_date.isoformat()}." if task.due_date else ""
    queue_notification(
        session,
        company_id=auth.company_id,
        notification_type=NotificationType.TASK_ASSIGNED,
        recipient=assignee,
        subject=f"New task: {task.title}",
        body=f"You have been assigned a {task.priority.lower()} priority task: {task.title}.{due}",
        metadata={"task_id": task.id},
    )

    await session.commit()
    await session.refresh(task)
    logger.info("Task %s assigned to %s by %s", task.id, assignee.id, task.assigned_by)
    return _build_task_response(task)


async def list_tasks(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    direction: Literal["assigned_to", "assigned_by"] = "assigned_to",
    status_filter: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> TaskListResponse:
    """Tasks assigned to (or by) an employee, soonest due first."""
    ensure_can_view_employee(auth, employee_id)
    column = col(Task.assigned_to) if direction == "assigned_to" else col(Task.assigned_by)
    base_filters = [col(Task.company_id) == auth.company_id, column == employee_id]
    if status_filter is not None:
        base_filters.append(col(Task.status) == status_filter)

    count_result = await session.execute(select(func.count()).select_from(Task).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(Task)
        .where(*base_filters)
        .order_by(col(Task.due_date).asc().nulls_last(), col(Task.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return TaskListResponse(items=[_build_task_response(t) for t in result.scalars().all()], total=total)


async def update_task_status(
    session: AsyncSession,
    auth: AuthContext,
    task_id: uuid.UUID,
    payload: UpdateTaskStatusRequest,
) -> TaskResponse:
    """Move a task to a new status. ``completed_at`` is kept only while COMPLETED."""
    task = await _get_task_or_404(session, auth.company_id, task_id)
    parties = (task.assigned_to, task.assigned_by)
    is_party = auth.user_id in parties or (auth.employee_id is not None and auth.employee_id in parties)
    if not auth.is_admin and not is_party:
        raise AppError("Only the assignee, the assigner or an admin can update this task", status_code=403)

    before = model_to_audit_dict(task)
    now = now_utc()
    task.status = payload.status.value
    task.completed_at = now if payload.status == TaskStatus.COMPLETED else None
    task.updated_at = now
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.TASK,
        entity_id=task.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(task),
    )

    await session.commit()
    await session.refresh(task)
    return _build_task_response(task)


async def get_task_summary(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
) -> TaskSummaryResponse:
    """Count of tasks assigned to an employee, per status."""
    ensure_can_view_employee(auth, employee_id)
    result = await session.execute(
        select(col(Task.status), func.count())
        .where(col(Task.company_id) == auth.company_id, col(Task.assigned_to) == employee_id)
        .group_by(col(Task.status))
    )
    counts = {status: count for status, count in result.all()}
    return TaskSummaryResponse(
        employee_id=employee_id,
        pending=counts.get(TaskStatus.PENDING, 0),
        in_progress=counts.get(TaskStatus.IN_PROGRESS, 0),
        completed=counts.get(TaskStatus.COMPLETED, 0),
        cancelled=counts.get(TaskStatus.CANCELLED, 0),
        total=sum(counts.values()),
    )
