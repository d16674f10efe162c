# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UUIDBase
from app.models.enums import TaskPriority, TaskStatus


class Task(UUIDBase, TimestampMixin, table=True):
    """Work assigned by one employee to another."""

    __tablename__ = "task"
    __table_args__ = (sa.Index("ix_task_company_assignee", "company_id", "assigned_to"),)

    company_id: uuid.UUID = Field(index=True)
    title: str = Field(max_length=255)
    description: str | None = None
    assigned_to: uuid.UUID
    assigned_by: uuid.UUID
    priority: str = Field(default=TaskPriority.MEDIUM, max_length=20)
    due_date: date | None = None
    status: str = Field(default=TaskStatus.PENDING, max_length=20, sa_column_kwargs={"server_default": "PENDING"})
    completed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    updated_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
