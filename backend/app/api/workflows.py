# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from app.api.deps import AdminDep, AuthDep, validate_company_scope
from app.db import SessionDep
from app.models.enums import WorkflowEntityType
from app.schemas.workflow import (
    ApprovalHistoryResponse,
    ApprovalRequestListResponse,
    ApprovalRequestResponse,
    ApprovalStatusResponse,
    ProcessApprovalPayload,
    UpdateWorkflowRequest,
    WorkflowDefinitionListResponse,
    WorkflowDefinitionResponse,
)
from app.services import workflow as workflow_service

workflows_router = APIRouter(
    prefix="/companies/{company_id}/workflows",
    tags=["workflows"],
    dependencies=[Depends(validate_company_scope)],
)

approvals_router = APIRouter(
    prefix="/companies/{company_id}/approvals",
    tags=["approvals"],
    dependencies=[Depends(validate_company_scope)],
)


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


@workflows_router.get("", response_model=WorkflowDefinitionListResponse)
async def list_workflows(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> WorkflowDefinitionListResponse:
    """Effective workflow for every entity type, defaults included."""
    return await workflow_service.list_workflows(session, company_id)


@workflows_router.get("/{entity_type}", response_model=WorkflowDefinitionResponse)
async def get_workflow(
    company_id: uuid.UUID,
    entity_type: WorkflowEntityType,
    session: SessionDep,
    auth: AuthDep,
) -> WorkflowDefinitionResponse:
    return await workflow_service.get_workflow(session, company_id, entity_type)


@workflows_router.put("/{entity_type}", response_model=WorkflowDefinitionResponse)
async def update_workflow(
    entity_type: WorkflowEntityType,
    payload: UpdateWorkflowRequest,
    session: SessionDep,
    auth: AdminDep,
) -> WorkflowDefinitionResponse:
    """Replace the workflow steps for an entity type (admin only)."""
    return await workflow_service.update_workflow(session, auth, entity_type, payload)


# ---------------------------------------------------------------------------
# Approvals
# ---------------------------------------------------------------------------


@approvals_router.get("/pending", response_model=ApprovalRequestListResponse)
async def list_pending_approvals(
    session: SessionDep,
    auth: AuthDep,
    entity_type: WorkflowEntityType | None = Query(default=None),
) -> ApprovalRequestListResponse:
    """Requests waiting on the caller."""
    return await workflow_service.list_pending_for_user(session, auth, entity_type)


@approvals_router.get("/entities/{entity_type}/{entity_id}", response_model=ApprovalStatusResponse)
async def get_approval_status(
    entity_type: WorkflowEntityType,
    entity_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApprovalStatusResponse:
    """Latest approval request for a record and its actions."""
    return await workflow_service.get_approval_status(session, auth, entity_type, entity_id)


@approvals_router.get("/entities/{entity_type}/{entity_id}/history", response_model=ApprovalHistoryResponse)
async def get_approval_history(
    entity_type: WorkflowEntityType,
    entity_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApprovalHistoryResponse:
    return await workflow_service.get_approval_history(session, auth, entity_type, entity_id)


@approvals_router.get("/{request_id}", response_model=ApprovalRequestResponse)
async def get_approval_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApprovalRequestResponse:
    return await workflow_service.get_approval_request(session, auth, request_id)


@approvals_router.post("/{request_id}/process", response_model=ApprovalRequestResponse)
async def process_approval(
    request_id: uuid.UUID,
    payload: ProcessApprovalPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ApprovalRequestResponse:
    """Approve or reject the current step of a pending request."""
    return await workflow_service.process_approval(session, auth, request_id, payload)


@approvals_router.post("/{request_id}/cancel", response_model=ApprovalRequestResponse)
async def cancel_approval_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApprovalRequestResponse:
    """Withdraw a pending request (submitter or admin)."""
    return await workflow_service.cancel_approval_request(session, auth, request_id)
