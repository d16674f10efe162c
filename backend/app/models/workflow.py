# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UUIDBase
from app.models.enums import ApprovalStatus


class WorkflowDefinition(UUIDBase, TimestampMixin, table=True):
    """Company-configured approval steps for one entity type."""

    __tablename__ = "workflow_definition"
    __table_args__ = (sa.Index("ix_workflow_company_entity", "company_id", "entity_type"),)

    company_id: uuid.UUID = Field(index=True)
    entity_type: str = Field(max_length=50)
    name: str = Field(max_length=255)
    steps_json: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
    updated_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]


class ApprovalRequest(UUIDBase, TimestampMixin, table=True):
    """One pass of an entity through its approval steps.

    ``steps_json`` is a snapshot taken when the request opens.
    """

    __tablename__ = "approval_request"
    __table_args__ = (
        sa.Index("ix_approval_entity", "entity_type", "entity_id"),
        sa.Index("ix_approval_company_status", "company_id", "status"),
    )

    company_id: uuid.UUID = Field(index=True)
    entity_type: str = Field(max_length=50)
    entity_id: uuid.UUID
    requester_id: uuid.UUID
    submitted_by: uuid.UUID
    steps_json: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)
    current_step: int
    status: str = Field(default=ApprovalStatus.PENDING, max_length=50, sa_column_kwargs={"server_default": "PENDING"})
    metadata_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    updated_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]


class ApprovalAction(UUIDBase, TimestampMixin, table=True):
    """An approve or reject decision recorded against a step."""

    __tablename__ = "approval_action"

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("approval_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    step_number: int
    step_role: str = Field(max_length=50)
    approver_id: uuid.UUID
    approver_employee_id: uuid.UUID | None = None
    action: str = Field(max_length=50)
    comments: str | None = None
