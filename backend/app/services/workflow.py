# ruff: noqa: TC003
"""Approval workflow engine.

Leave requests, per diem claims, payroll runs and promotions move through a
sequence of approval steps. Each pass is an ``ApprovalRequest`` holding a
snapshot of the steps; the entity's ``status`` mirrors the step it waits on.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from app.exceptions import AppError
from app.models.employee import Employee
from app.models.enums import (
    ApprovalDecision,
    ApprovalStatus,
    ApproverRole,
    AuditAction,
    AuditEntityType,
    EntityStatus,
    NotificationType,
    UserRole,
    WorkflowEntityType,
)
from app.models.leave import LeaveRequest
from app.models.payroll import PayrollRun
from app.models.per_diem import PerDiemRequest
from app.models.promotion import PromotionRequest
from app.models.workflow import ApprovalAction, ApprovalRequest, WorkflowDefinition
from app.schemas.workflow import (
    ApprovalActionResponse,
    ApprovalHistoryResponse,
    ApprovalRequestListResponse,
    ApprovalRequestResponse,
    ApprovalStatusResponse,
    WorkflowDefinitionListResponse,
    WorkflowDefinitionResponse,
    WorkflowStep,
)
from app.services.audit import model_to_audit_dict, to_json_safe, write_audit_log
from app.services.employee import resolve_line_manager_id
from app.services.notification import find_employees_with_role, queue_notification

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.models.base import ApprovableMixin
    from app.schemas.auth import AuthContext
    from app.schemas.workflow import ProcessApprovalPayload, UpdateWorkflowRequest

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOWS: dict[WorkflowEntityType, list[WorkflowStep]] = {
    WorkflowEntityType.LEAVE: [
        WorkflowStep(order=1, role=ApproverRole.LINE_MANAGER, name="Line manager approval"),
        WorkflowStep(order=2, role=ApproverRole.HR, name="HR approval"),
    ],
    WorkflowEntityType.PER_DIEM: [
        WorkflowStep(order=1, role=ApproverRole.LINE_MANAGER, name="Line manager approval"),
        WorkflowStep(order=2, role=ApproverRole.FINANCE, name="Finance approval"),
        WorkflowStep(order=3, role=ApproverRole.MANAGEMENT, name="Management approval"),
    ],
    WorkflowEntityType.PAYROLL: [
        WorkflowStep(order=1, role=ApproverRole.FINANCE, name="Finance review"),
        WorkflowStep(order=2, role=ApproverRole.MANAGEMENT, name="Management approval"),
    ],
    WorkflowEntityType.PROMOTION: [
        WorkflowStep(order=1, role=ApproverRole.LINE_MANAGER, name="Line manager recommendation"),
        WorkflowStep(order=2, role=ApproverRole.HR, name="HR review"),
        WorkflowStep(order=3, role=ApproverRole.MANAGEMENT, name="Management approval"),
    ],
}

_ENTITY_MODELS: dict[WorkflowEntityType, type[Any]] = {
    WorkflowEntityType.LEAVE: LeaveRequest,
    WorkflowEntityType.PER_DIEM: PerDiemRequest,
    WorkflowEntityType.PAYROLL: PayrollRun,
    WorkflowEntityType.PROMOTION: PromotionRequest,
}

_AUDIT_ENTITY_TYPES: dict[WorkflowEntityType, AuditEntityType] = {
    WorkflowEntityType.LEAVE: AuditEntityType.LEAVE_REQUEST,
    WorkflowEntityType.PER_DIEM: AuditEntityType.PER_DIEM_REQUEST,
    WorkflowEntityType.PAYROLL: AuditEntityType.PAYROLL_RUN,
    WorkflowEntityType.PROMOTION: AuditEntityType.PROMOTION_REQUEST,
}

_ENTITY_LABELS: dict[WorkflowEntityType, str] = {
    WorkflowEntityType.LEAVE: "leave request",
    WorkflowEntityType.PER_DIEM: "per diem request",
    WorkflowEntityType.PAYROLL: "payroll run",
    WorkflowEntityType.PROMOTION: "promotion request",
}


# ---------------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------------


def parse_steps(steps_json: list[dict[str, Any]] | None) -> list[WorkflowStep]:
    """Validate stored steps and return them sorted by order."""
    steps = [WorkflowStep.model_validate(s) for s in steps_json or []]
    return sorted(steps, key=lambda s: s.order)


def find_step(steps: list[WorkflowStep], order: int) -> WorkflowStep | None:
    return next((s for s in steps if s.order == order), None)


def next_step(steps: list[WorkflowStep], current_order: int) -> WorkflowStep | None:
    """The step that follows ``current_order``, or None when the workflow is complete.

    The workflow continues only while a required step remains after the
    current one; trailing optional steps are skipped.
    """
    remaining = [s for s in steps if s.order > current_order]
    if not any(s.required for s in remaining):
        return None
    return remaining[0]


def is_own_request(request: ApprovalRequest, auth: AuthContext) -> bool:
    """True when the caller is the person the request is for."""
    if auth.user_id == request.requester_id:
        return True
    return auth.employee_id is not None and auth.employee_id == request.requester_id


def can_user_approve(
    request: ApprovalRequest,
    auth: AuthContext,
    requester_line_manager_id: uuid.UUID | None,
) -> bool:
    """Whether ``auth`` may act on the request's current step.

    Admins may act on any pending step. Everyone else needs a role match, or
    for line manager steps to be the requester's resolved line manager, and
    may never act on their own requests.
    """
    if request.status != ApprovalStatus.PENDING:
        return False
    step = find_step(parse_steps(request.steps_json), request.current_step)
    if step is None:
        return False
    if auth.is_admin:
        return True
    if is_own_request(request, auth):
        return False
    if step.role.value == auth.role.value:
        return True
    if step.role == ApproverRole.LINE_MANAGER:
        return auth.employee_id is not None and requester_line_manager_id == auth.employee_id
    return False


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(UTC)


def _dump_steps(steps: list[WorkflowStep]) -> list[dict[str, Any]]:
    return [s.model_dump(mode="json") for s in steps]


def _build_request_response(request: ApprovalRequest) -> ApprovalRequestResponse:
    """Map an approval request model to its response schema."""
    steps = parse_steps(request.steps_json)
    step = find_step(steps, request.current_step)
    return ApprovalRequestResponse(
        id=request.id,
        company_id=request.company_id,
        entity_type=WorkflowEntityType(request.entity_type),
        entity_id=request.entity_id,
        requester_id=request.requester_id,
        submitted_by=request.submitted_by,
        steps=steps,
        current_step=request.current_step,
        current_step_role=step.role if step else None,
        status=ApprovalStatus(request.status),
        metadata_json=request.metadata_json,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


def _build_action_response(action: ApprovalAction) -> ApprovalActionResponse:
    return ApprovalActionResponse(
        id=action.id,
        request_id=action.request_id,
        step_number=action.step_number,
        step_role=ApproverRole(action.step_role),
        approver_id=action.approver_id,
        approver_employee_id=action.approver_employee_id,
        action=ApprovalDecision(action.action),
        comments=action.comments,
        created_at=action.created_at,
    )


def _build_definition_response(
    company_id: uuid.UUID,
    entity_type: WorkflowEntityType,
    definition: WorkflowDefinition | None,
) -> WorkflowDefinitionResponse:
    if definition is None:
        return WorkflowDefinitionResponse(
            id=None,
            company_id=company_id,
            entity_type=entity_type,
            name=f"Default {_ENTITY_LABELS[entity_type]} workflow",
            steps=DEFAULT_WORKFLOWS[entity_type],
            is_active=True,
            is_default=True,
        )
    return WorkflowDefinitionResponse(
        id=definition.id,
        company_id=definition.company_id,
        entity_type=entity_type,
        name=definition.name,
        steps=parse_steps(definition.steps_json),
        is_active=definition.is_active,
        is_default=False,
    )


async def _get_active_definition(
    session: AsyncSession,
    company_id: uuid.UUID,
    entity_type: WorkflowEntityType,
) -> WorkflowDefinition | None:
    result = await session.execute(
        select(WorkflowDefinition)
        .where(
            col(WorkflowDefinition.company_id) == company_id,
            col(WorkflowDefinition.entity_type) == entity_type.value,
            col(WorkflowDefinition.is_active).is_(True),
        )
        .order_by(col(WorkflowDefinition.created_at).desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_effective_steps(
    session: AsyncSession,
    company_id: uuid.UUID,
    entity_type: WorkflowEntityType,
) -> list[WorkflowStep]:
    """The company's active steps for ``entity_type``, or the built-in default."""
    definition = await _get_active_definition(session, company_id, entity_type)
    if definition is None:
        return list(DEFAULT_WORKFLOWS[entity_type])
    return parse_steps(definition.steps_json)


async def _get_request_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
) -> ApprovalRequest:
    """Fetch an approval request scoped to company. Raises 404 if not found."""
    result = await session.execute(
        select(ApprovalRequest).where(
            col(ApprovalRequest.id) == request_id,
            col(ApprovalRequest.company_id) == company_id,
        )
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise AppError("Approval request not found", status_code=404)
    return request


async def _get_entity(session: AsyncSession, request: ApprovalRequest) -> ApprovableMixin:
    model = _ENTITY_MODELS[WorkflowEntityType(request.entity_type)]
    result = await session.execute(
        select(model).where(
            col(model.id) == request.entity_id,
            col(model.company_id) == request.company_id,
        )
    )
    entity = result.scalar_one_or_none()
    if entity is None:
        raise AppError("Approval target no longer exists", status_code=404)
    return entity


async def _load_employee(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID | None,
) -> Employee | None:
    if employee_id is None:
        return None
    result = await session.execute(
        select(Employee).where(
            col(Employee.id) == employee_id,
            col(Employee.company_id) == company_id,
        )
    )
    return result.scalar_one_or_none()


async def _requester_line_manager_id(session: AsyncSession, request: ApprovalRequest) -> uuid.UUID | None:
    requester = await _load_employee(session, request.company_id, request.requester_id)
    if requester is None:
        return None
    return await resolve_line_manager_id(session, requester)


async def get_pending_request_for_entity(
    session: AsyncSession,
    company_id: uuid.UUID,
    entity_type: WorkflowEntityType,
    entity_id: uuid.UUID,
) -> ApprovalRequest | None:
    result = await session.execute(
        select(ApprovalRequest).where(
            col(ApprovalRequest.company_id) == company_id,
            col(ApprovalRequest.entity_type) == entity_type.value,
            col(ApprovalRequest.entity_id) == entity_id,
            col(ApprovalRequest.status) == ApprovalStatus.PENDING,
        )
    )
    return result.scalars().first()


async def _notify_step_approvers(
    session: AsyncSession,
    request: ApprovalRequest,
    step: WorkflowStep,
    requester: Employee | None,
) -> None:
    entity_type = WorkflowEntityType(request.entity_type)
    if step.role == ApproverRole.LINE_MANAGER:
        manager_id = await resolve_line_manager_id(session, requester) if requester else None
        manager = await _load_employee(session, request.company_id, manager_id)
        recipients = [manager] if manager else []
    else:
        recipients = await find_employees_with_role(session, request.company_id, step.role.value)

    requester_name = requester.full_name if requester else "A colleague"
    label = _ENTITY_LABELS[entity_type]
    for recipient in recipients:
        if requester is not None and recipient.id == requester.id:
            continue
        queue_notification(
            session,
            company_id=request.company_id,
            notification_type=NotificationType.APPROVAL_PENDING,
            recipient=recipient,
            subject=f"Approval needed: {label}",
            body=f"{requester_name}'s {label} is waiting for your approval ({step.name}).",
            metadata={
                "approval_request_id": request.id,
                "entity_type": entity_type.value,
                "entity_id": request.entity_id,
                "step": step.order,
            },
        )


async def _notify_requester(
    session: AsyncSession,
    request: ApprovalRequest,
    decision: ApprovalDecision,
    comments: str | None,
) -> None:
    requester = await _load_employee(session, request.company_id, request.requester_id)
    entity_type = WorkflowEntityType(request.entity_type)
    label = _ENTITY_LABELS[entity_type]
    if decision == ApprovalDecision.APPROVED:
        notification_type = NotificationType.REQUEST_APPROVED
        subject = f"Your {label} was approved"
        body = f"Your {label} has completed all approval steps."
    else:
        notification_type = NotificationType.REQUEST_REJECTED
        subject = f"Your {label} was rejected"
        body = f"Your {label} was rejected." + (f" Reason: {comments}" if comments else "")
    queue_notification(
        session,
        company_id=request.company_id,
        notification_type=notification_type,
        recipient=requester,
        subject=subject,
        body=body,
        metadata={"approval_request_id": request.id, "entity_type": entity_type.value, "entity_id": request.entity_id},
    )


async def _apply_outcome(
    session: AsyncSession,
    entity: ApprovableMixin,
    outcome: EntityStatus,
    auth: AuthContext,
) -> None:
    """Run entity-specific side effects once a request completes, is rejected or cancelled."""
    if isinstance(entity, LeaveRequest):
        from app.services.leave import apply_leave_outcome

        await apply_leave_outcome(session, entity, outcome)
    elif isinstance(entity, PromotionRequest) and outcome == EntityStatus.APPROVED:
        from app.services.promotion import apply_promotion

        await apply_promotion(session, auth, entity)


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


async def get_workflow(
    session: AsyncSession,
    company_id: uuid.UUID,
    entity_type: WorkflowEntityType,
) -> WorkflowDefinitionResponse:
    """Effective workflow for one entity type."""
    definition = await _get_active_definition(session, company_id, entity_type)
    return _build_definition_response(company_id, entity_type, definition)


async def list_workflows(session: AsyncSession, company_id: uuid.UUID) -> WorkflowDefinitionListResponse:
    items = [await get_workflow(session, company_id, entity_type) for entity_type in WorkflowEntityType]
    return WorkflowDefinitionListResponse(items=items, total=len(items))


async def update_workflow(
    session: AsyncSession,
    auth: AuthContext,
    entity_type: WorkflowEntityType,
    payload: UpdateWorkflowRequest,
) -> WorkflowDefinitionResponse:
    """Replace the active workflow for an entity type.

    Previous definitions are deactivated. Requests already in flight keep
    the steps they were opened with.
    """
    previous = await _get_active_definition(session, auth.company_id, entity_type)
    before = model_to_audit_dict(previous) if previous else None

    result = await session.execute(
        select(WorkflowDefinition).where(
            col(WorkflowDefinition.company_id) == auth.company_id,
            col(WorkflowDefinition.entity_type) == entity_type.value,
            col(WorkflowDefinition.is_active).is_(True),
        )
    )
    for old in result.scalars().all():
        old.is_active = False
        old.updated_at = _now()

    definition = WorkflowDefinition(
        company_id=auth.company_id,
        entity_type=entity_type.value,
        name=payload.name or f"{_ENTITY_LABELS[entity_type].capitalize()} workflow",
        steps_json=_dump_steps(payload.steps),
        is_active=True,
    )
    session.add(definition)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.WORKFLOW_DEFINITION,
        entity_id=definition.id,
        action=AuditAction.UPDATE if previous else AuditAction.CREATE,
        before_json=before,
        after_json=model_to_audit_dict(definition),
    )

    await session.commit()
    await session.refresh(definition)
    logger.info("Workflow for %s replaced in company %s", entity_type, auth.company_id)
    return _build_definition_response(auth.company_id, entity_type, definition)


# ---------------------------------------------------------------------------
# Request lifecycle
# ---------------------------------------------------------------------------


async def open_approval_request(
    session: AsyncSession,
    auth: AuthContext,
    *,
    entity_type: WorkflowEntityType,
    entity: ApprovableMixin,
    requester_id: uuid.UUID,
    metadata: dict[str, Any] | None = None,
) -> ApprovalRequest:
    """Start an approval pass for ``entity`` inside the caller's transaction.

    Raises 409 when a pending request already exists for the entity. The
    caller commits.
    """
    entity_id: uuid.UUID = entity.id  # type: ignore[attr-defined]
    existing = await get_pending_request_for_entity(session, auth.company_id, entity_type, entity_id)
    if existing is not None:
        raise AppError("An approval request is already pending for this record", status_code=409)

    steps = await get_effective_steps(session, auth.company_id, entity_type)
    if not steps:
        raise AppError("Workflow has no steps", status_code=400)
    first = steps[0]

    before = model_to_audit_dict(entity)  # type: ignore[arg-type]
    request = ApprovalRequest(
        company_id=auth.company_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        requester_id=requester_id,
        submitted_by=auth.user_id,
        steps_json=_dump_steps(steps),
        current_step=first.order,
        status=ApprovalStatus.PENDING.value,
        metadata_json=to_json_safe(metadata) if metadata else None,
    )
    session.add(request)

    entity.status = EntityStatus.pending_for(first.role).value
    entity.rejection_reason = None
    entity.updated_at = _now()
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=_AUDIT_ENTITY_TYPES[entity_type],
        entity_id=entity_id,
        action=AuditAction.SUBMIT,
        before_json=before,
        after_json=model_to_audit_dict(entity),  # type: ignore[arg-type]
    )

    requester = await _load_employee(session, auth.company_id, requester_id)
    await _notify_step_approvers(session, request, first, requester)
    logger.info("Opened %s approval %s for %s", entity_type, request.id, entity_id)
    return request


async def process_approval(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: ProcessApprovalPayload,
) -> ApprovalRequestResponse:
    """Approve or reject the current step of a pending request."""
    request = await _get_request_or_404(session, auth.company_id, request_id)
    if request.status != ApprovalStatus.PENDING:
        raise AppError("Only pending requests can be processed", status_code=400)

    line_manager_id = await _requester_line_manager_id(session, request)
    if not can_user_approve(request, auth, line_manager_id):
        raise AppError("Not authorized to act on this approval step", status_code=403)

    entity_type = WorkflowEntityType(request.entity_type)
    entity = await _get_entity(session, request)
    before = model_to_audit_dict(entity)  # type: ignore[arg-type]

    steps = parse_steps(request.steps_json)
    step = find_step(steps, request.current_step)
    if step is None:
        raise AppError("Approval request has no current step", status_code=400)
    now = _now()

    session.add(
        ApprovalAction(
            request_id=request.id,
            step_number=step.order,
            step_role=step.role.value,
            approver_id=auth.user_id,
            approver_employee_id=auth.employee_id,
            action=payload.action.value,
            comments=payload.comments,
        )
    )

    if payload.action == ApprovalDecision.REJECTED:
        request.status = ApprovalStatus.REJECTED.value
        entity.status = EntityStatus.rejected_for(step.role).value
        entity.rejection_reason = payload.comments
        audit_action = AuditAction.REJECT
        await _apply_outcome(session, entity, EntityStatus(entity.status), auth)
        await _notify_requester(session, request, payload.action, payload.comments)
    else:
        audit_action = AuditAction.APPROVE
        following = next_step(steps, step.order)
        if following is not None:
            request.current_step = following.order
            entity.status = EntityStatus.pending_for(following.role).value
            requester = await _load_employee(session, request.company_id, request.requester_id)
            await _notify_step_approvers(session, request, following, requester)
        else:
            request.status = ApprovalStatus.APPROVED.value
            entity.status = EntityStatus.APPROVED.value
            entity.approved_by = auth.user_id
            entity.approved_at = now
            await _apply_outcome(session, entity, EntityStatus.APPROVED, auth)
            await _notify_requester(session, request, payload.action, payload.comments)

    request.updated_at = now
    entity.updated_at = now
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=_AUDIT_ENTITY_TYPES[entity_type],
        entity_id=request.entity_id,
        action=audit_action,
        before_json=before,
        after_json=model_to_audit_dict(entity),  # type: ignore[arg-type]
    )

    await session.commit()
    await session.refresh(request)
    logger.info(
        "Approval %s step %d %s by %s -> %s", request.id, step.order, payload.action, auth.user_id, entity.status
    )
    return _build_request_response(request)


async def cancel_request(
    session: AsyncSession,
    auth: AuthContext,
    request: ApprovalRequest,
) -> ApprovalRequest:
    """Withdraw a pending request. Only its submitter or an admin may cancel.

    Does not commit.
    """
    if request.status != ApprovalStatus.PENDING:
        raise AppError("Only pending requests can be cancelled", status_code=400)
    if not auth.is_admin and auth.user_id != request.submitted_by:
        raise AppError("Not authorized to cancel this request", status_code=403)

    entity_type = WorkflowEntityType(request.entity_type)
    entity = await _get_entity(session, request)
    before = model_to_audit_dict(entity)  # type: ignore[arg-type]
    now = _now()

    request.status = ApprovalStatus.CANCELLED.value
    request.updated_at = now
    entity.status = EntityStatus.CANCELLED.value
    entity.updated_at = now
    await _apply_outcome(session, entity, EntityStatus.CANCELLED, auth)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=_AUDIT_ENTITY_TYPES[entity_type],
        entity_id=request.entity_id,
        action=AuditAction.CANCEL,
        before_json=before,
        after_json=model_to_audit_dict(entity),  # type: ignore[arg-type]
    )
    logger.info("Approval %s cancelled by %s", request.id, auth.user_id)
    return request


async def cancel_approval_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> ApprovalRequestResponse:
    request = await _get_request_or_404(session, auth.company_id, request_id)
    await cancel_request(session, auth, request)
    await session.commit()
    await session.refresh(request)
    return _build_request_response(request)


async def cancel_entity_request(
    session: AsyncSession,
    auth: AuthContext,
    entity_type: WorkflowEntityType,
    entity_id: uuid.UUID,
) -> None:
    """Cancel the pending request for an entity. Does not commit."""
    request = await get_pending_request_for_entity(session, auth.company_id, entity_type, entity_id)
    if request is None:
        raise AppError("No pending approval for this record", status_code=400)
    await cancel_request(session, auth, request)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def _ensure_can_view(
    session: AsyncSession,
    auth: AuthContext,
    requests: list[ApprovalRequest],
    actions: list[ApprovalAction],
) -> None:
    """Raise 403 unless the caller is a party to one of ``requests``.

    Parties are the requester, the submitter, anyone who has acted on the
    request and anyone who may act on its current step. HR, finance and
    management see every request.
    """
    if auth.has_role(UserRole.HR, UserRole.FINANCE, UserRole.MANAGEMENT):
        return
    for action in actions:
        if action.approver_id == auth.user_id:
            return
        if auth.employee_id is not None and action.approver_employee_id == auth.employee_id:
            return
    for request in requests:
        if is_own_request(request, auth) or request.submitted_by == auth.user_id:
            return
        if request.status == ApprovalStatus.PENDING:
            line_manager_id = await _requester_line_manager_id(session, request)
            if can_user_approve(request, auth, line_manager_id):
                return
    raise AppError("Not authorized to view this approval", status_code=403)


async def get_approval_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> ApprovalRequestResponse:
    request = await _get_request_or_404(session, auth.company_id, request_id)
    actions = await _list_actions(session, [request.id])
    await _ensure_can_view(session, auth, [request], actions)
    return _build_request_response(request)


async def list_pending_for_user(
    session: AsyncSession,
    auth: AuthContext,
    entity_type: WorkflowEntityType | None = None,
) -> ApprovalRequestListResponse:
    """Pending requests whose current step the caller may act on, newest first."""
    query = select(ApprovalRequest).where(
        col(ApprovalRequest.company_id) == auth.company_id,
        col(ApprovalRequest.status) == ApprovalStatus.PENDING,
    )
    if entity_type is not None:
        query = query.where(col(ApprovalRequest.entity_type) == entity_type.value)
    result = await session.execute(query.order_by(col(ApprovalRequest.created_at).desc()))

    items: list[ApprovalRequestResponse] = []
    for request in result.scalars().all():
        step = find_step(parse_steps(request.steps_json), request.current_step)
        line_manager_id = None
        if step is not None and step.role == ApproverRole.LINE_MANAGER:
            line_manager_id = await _requester_line_manager_id(session, request)
        if can_user_approve(request, auth, line_manager_id):
            items.append(_build_request_response(request))
    return ApprovalRequestListResponse(items=items, total=len(items))


async def _list_actions(session: AsyncSession, request_ids: list[uuid.UUID]) -> list[ApprovalAction]:
    if not request_ids:
        return []
    result = await session.execute(
        select(ApprovalAction)
        .where(col(ApprovalAction.request_id).in_(request_ids))
        .order_by(col(ApprovalAction.created_at).asc(), col(ApprovalAction.step_number).asc())
    )
    return list(result.scalars().all())


async def get_approval_status(
    session: AsyncSession,
    auth: AuthContext,
    entity_type: WorkflowEntityType,
    entity_id: uuid.UUID,
) -> ApprovalStatusResponse:
    """Latest approval request for an entity and the actions taken on it."""
    result = await session.execute(
        select(ApprovalRequest)
        .where(
            col(ApprovalRequest.company_id) == auth.company_id,
            col(ApprovalRequest.entity_type) == entity_type.value,
            col(ApprovalRequest.entity_id) == entity_id,
        )
        .order_by(col(ApprovalRequest.created_at).desc())
        .limit(1)
    )
    request = result.scalar_one_or_none()
    if request is None:
        return ApprovalStatusResponse(request=None, actions=[])
    actions = await _list_actions(session, [request.id])
    await _ensure_can_view(session, auth, [request], actions)
    return ApprovalStatusResponse(
        request=_build_request_response(request),
        actions=[_build_action_response(a) for a in actions],
    )


async def get_approval_history(
    session: AsyncSession,
    auth: AuthContext,
    entity_type: WorkflowEntityType,
    entity_id: uuid.UUID,
) -> ApprovalHistoryResponse:
    """Every action taken on an entity across all its approval passes, oldest first."""
    result = await session.execute(
        select(ApprovalRequest).where(
            col(ApprovalRequest.company_id) == auth.company_id,
            col(ApprovalRequest.entity_type) == entity_type.value,
            col(ApprovalRequest.entity_id) == entity_id,
        )
    )
    requests = list(result.scalars().all())
    actions = await _list_actions(session, [r.id for r in requests])
    if requests:
        await _ensure_can_view(session, auth, requests, actions)
    return ApprovalHistoryResponse(
        items=[_build_action_response(a) for a in actions],
        total=len(actions),
    )

