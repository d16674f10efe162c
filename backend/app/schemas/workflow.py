# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Self

from pydantic import BaseModel, Field, model_validator

from app.models.enums import ApprovalDecision, ApprovalStatus, ApproverRole, WorkflowEntityType

# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


class WorkflowStep(BaseModel):
    """One approval stage: who must act and in which order."""

    order: int = Field(gt=0)
    role: ApproverRole
    name: str = Field(min_length=1, max_length=255)
    required: bool = True


class UpdateWorkflowRequest(BaseModel):
    """Replace the active workflow for an entity type."""

    name: str | None = Field(default=None, max_length=255)
    steps: list[WorkflowStep] = Field(min_length=1)

    @model_validator(mode="after")
    def _validate_steps(self) -> Self:
        orders = [s.order for s in self.steps]
        if len(orders) != len(set(orders)):
            msg = "Step orders must be unique"
            raise ValueError(msg)
        self.steps = sorted(self.steps, key=lambda s: s.order)
        return self


class WorkflowDefinitionResponse(BaseModel):
    """Effective workflow for an entity type. ``id`` is None for built-in defaults."""

    id: uuid.UUID | None
    company_id: uuid.UUID
    entity_type: WorkflowEntityType
    name: str
    steps: list[WorkflowStep]
    is_active: bool
    is_default: bool


class WorkflowDefinitionListResponse(BaseModel):
    items: list[WorkflowDefinitionResponse]
    total: int


# ---------------------------------------------------------------------------
# Approval requests
# ---------------------------------------------------------------------------


class ProcessApprovalPayload(BaseModel):
    """Approve or reject the current step."""

    action: ApprovalDecision
    comments: str | None = Field(default=None, max_length=2000)


class ApprovalActionResponse(BaseModel):
    id: uuid.UUID
    request_id: uuid.UUID
    step_number: int
    step_role: ApproverRole
    approver_id: uuid.UUID
    approver_employee_id: uuid.UUID | None
    action: ApprovalDecision
    comments: str | None
    created_at: datetime


class ApprovalRequestResponse(BaseModel):
    """Response schema for an approval request and its snapshotted steps."""

    id: uuid.UUID
    company_id: uuid.UUID
    entity_type: WorkflowEntityType
    entity_id: uuid.UUID
    requester_id: uuid.UUID
    submitted_by: uuid.UUID
    steps: list[WorkflowStep]
    current_step: int
    current_step_role: ApproverRole | None
    status: ApprovalStatus
    metadata_json: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime | None


class ApprovalRequestListResponse(BaseModel):
    items: list[ApprovalRequestResponse]
    total: int


class ApprovalStatusResponse(BaseModel):
    """Latest approval request for an entity, with the actions taken on it."""

    request: ApprovalRequestResponse | None
    actions: list[ApprovalActionResponse]


class ApprovalHistoryResponse(BaseModel):
    items: list[ApprovalActionResponse]
    total: int
