# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from app.exceptions import AppError
from app.models.enums import AuditAction, AuditEntityType, EntityStatus, UserRole, WorkflowEntityType
from app.models.leave import LeaveBalance, LeaveRequest, LeaveType
from app.schemas.leave import (
    LeaveBalanceListResponse,
    LeaveBalanceResponse,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    LeaveTypeListResponse,
    LeaveTypeResponse,
)
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.duration import calculate_working_days
from app.services.employee import ensure_can_view_employee, get_employee_or_404
from app.services.workflow import cancel_entity_request, open_approval_request

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.leave import CreateLeaveRequestPayload, CreateLeaveTypeRequest, UpdateLeaveTypeRequest

logger = logging.getLogger(__name__)

ACTIVE_LEAVE_STATUSES = [s.value for s in EntityStatus if s.is_pending] + [EntityStatus.APPROVED.value]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse(
        id=leave_type.id,
        company_id=leave_type.company_id,
        name=leave_type.name,
        description=leave_type.description,
        days_per_year=leave_type.days_per_year,
        is_paid=leave_type.is_paid,
        is_active=leave_type.is_active,
    )


def _build_balance_response(balance: LeaveBalance, leave_type: LeaveType) -> LeaveBalanceResponse:
    return LeaveBalanceResponse(
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        leave_type_name=leave_type.name,
        year=balance.year,
        entitled_days=balance.entitled_days,
        used_days=balance.used_days,
        pending_days=balance.pending_days,
        available_days=balance.available_days,
    )


def _build_request_response(request: LeaveRequest) -> LeaveRequestResponse:
    """Map a leave request model to its response schema."""
    return LeaveRequestResponse(
        id=request.id,
        company_id=request.company_id,
        employee_id=request.employee_id,
        leave_type_id=request.leave_type_id,
        start_date=request.start_date,
        end_date=request.end_date,
        days_requested=request.days_requested,
        reason=request.reason,
        status=EntityStatus(request.status),
        approved_by=request.approved_by,
        approved_at=request.approved_at,
        rejection_reason=request.rejection_reason,
        created_at=request.created_at,
    )


async def _get_leave_type_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeaveType:
    result = await session.execute(
        select(LeaveType).where(
            col(LeaveType.id) == leave_type_id,
            col(LeaveType.company_id) == company_id,
        )
    )
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise AppError("Leave type not found", status_code=404)
    return leave_type


async def _get_request_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
) -> LeaveRequest:
    result = await session.execute(
        select(LeaveRequest).where(
            col(LeaveRequest.id) == request_id,
            col(LeaveRequest.company_id) == company_id,
        )
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise AppError("Leave request not found", status_code=404)
    return request


async def _ensure_leave_type_name_available(
    session: AsyncSession,
    company_id: uuid.UUID,
    name: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    query = select(col(LeaveType.id)).where(
        col(LeaveType.company_id) == company_id,
        func.lower(col(LeaveType.name)) == name.lower(),
    )
    if exclude_id is not None:
        query = query.where(col(LeaveType.id) != exclude_id)
    result = await session.execute(query)
    if result.first() is not None:
        raise AppError("Leave type with this name already exists", status_code=409)


async def get_or_create_balance(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    year: int,
) -> LeaveBalance:
    """Fetch the balance row, creating it from the leave type's yearly entitlement."""
    result = await session.execute(
        select(LeaveBalance).where(
            col(LeaveBalance.company_id) == company_id,
            col(LeaveBalance.employee_id) == employee_id,
            col(LeaveBalance.leave_type_id) == leave_type.id,
            col(LeaveBalance.year) == year,
        )
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        balance = LeaveBalance(
            company_id=company_id,
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            year=year,
            entitled_days=leave_type.days_per_year,
        )
        session.add(balance)
        await session.flush()
    return balance


async def _check_overlap(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    payload: CreateLeaveRequestPayload,
) -> None:
    """Raise 409 if a pending or approved request overlaps the given dates."""
    result = await session.execute(
        select(col(LeaveRequest.id)).where(
            col(LeaveRequest.company_id) == company_id,
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.status).in_(ACTIVE_LEAVE_STATUSES),
            col(LeaveRequest.start_date) <= payload.end_date,
            col(LeaveRequest.end_date) >= payload.start_date,
        )
    )
    if result.first() is not None:
        raise AppError("Request overlaps with an existing pending or approved leave request", status_code=409)


async def apply_leave_outcome(session: AsyncSession, request: LeaveRequest, outcome: EntityStatus) -> None:
    """Move held days once the workflow finishes.

    Approval converts pending days to used days; rejection and cancellation
    release them.
    """
    leave_type = await _get_leave_type_or_404(session, request.company_id, request.leave_type_id)
    balance = await get_or_create_balance(
        session, request.company_id, request.employee_id, leave_type, request.start_date.year
    )
    days = request.days_requested
    balance.pending_days = max(Decimal("0"), balance.pending_days - days)
    if outcome == EntityStatus.APPROVED:
        balance.used_days += days


# ---------------------------------------------------------------------------
# Leave types
# ---------------------------------------------------------------------------


async def create_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveTypeRequest,
) -> LeaveTypeResponse:
    await _ensure_leave_type_name_available(session, auth.company_id, payload.name)
    leave_type = LeaveType(company_id=auth.company_id, **payload.model_dump())
    session.add(leave_type)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    return _build_leave_type_response(leave_type)


async def list_leave_types(
    session: AsyncSession,
    company_id: uuid.UUID,
    include_inactive: bool = False,
) -> LeaveTypeListResponse:
    query = select(LeaveType).where(col(LeaveType.company_id) == company_id)
    if not include_inactive:
        query = query.where(col(LeaveType.is_active).is_(True))
    result = await session.execute(query.order_by(col(LeaveType.name)))
    leave_types = list(result.scalars().all())
    return LeaveTypeListResponse(items=[_build_leave_type_response(t) for t in leave_types], total=len(leave_types))


async def update_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Partial update. Existing balances keep the entitlement they were created with."""
    leave_type = await _get_leave_type_or_404(session, auth.company_id, leave_type_id)
    before = model_to_audit_dict(leave_type)

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "description"}
    if "name" in changes:
        await _ensure_leave_type_name_available(session, auth.company_id, changes["name"], exclude_id=leave_type.id)
    for key, value in changes.items():
        setattr(leave_type, key, value)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    return _build_leave_type_response(leave_type)


async def delete_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
) -> None:
    """Delete an unused leave type. Types with requests must be deactivated instead."""
    leave_type = await _get_leave_type_or_404(session, auth.company_id, leave_type_id)
    used = await session.execute(select(col(LeaveRequest.id)).where(col(LeaveRequest.leave_type_id) == leave_type.id))
    if used.first() is not None:
        raise AppError("Leave type has requests; deactivate it instead", status_code=409)

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(leave_type),
    )
    balances = await session.execute(select(LeaveBalance).where(col(LeaveBalance.leave_type_id) == leave_type.id))
    for balance in balances.scalars().all():
        await session.delete(balance)
    await session.delete(leave_type)
    await session.commit()


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


async def list_balances(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    year: int,
) -> LeaveBalanceListResponse:
    """Balances for every active leave type, created on first access."""
    ensure_can_view_employee(auth, employee_id)
    await get_employee_or_404(session, auth.company_id, employee_id)

    result = await session.execute(
        select(LeaveType)
        .where(col(LeaveType.company_id) == auth.company_id, col(LeaveType.is_active).is_(True))
        .order_by(col(LeaveType.name))
    )
    items = []
    for leave_type in result.scalars().all():
        balance = await get_or_create_balance(session, auth.company_id, employee_id, leave_type, year)
        items.append(_build_balance_response(balance, leave_type))
    await session.commit()
    return LeaveBalanceListResponse(items=items, total=len(items))


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


async def create_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveRequestPayload,
) -> LeaveRequestResponse:
    """Create a leave request and open its approval workflow.

    Flow:
    1. Resolve the employee (the caller unless HR files on their behalf)
    2. Count working days, excluding weekends and holidays
    3. Reject overlaps with pending or approved requests
    4. Check the available balance for the start year
    5. Hold the days as pending and open the LEAVE workflow
    """
    employee_id = payload.employee_id or auth.employee_id
    if employee_id is None:
        raise AppError("employee_id is required", status_code=400)
    if employee_id != auth.employee_id and not auth.has_role(UserRole.HR):
        raise AppError("Only HR can request leave on behalf of another employee", status_code=403)

    employee = await get_employee_or_404(session, auth.company_id, employee_id)
    leave_type = await _get_leave_type_or_404(session, auth.company_id, payload.leave_type_id)
    if not leave_type.is_active:
        raise AppError("Leave type is inactive", status_code=400)

    days = Decimal(await calculate_working_days(session, auth.company_id, payload.start_date, payload.end_date))
    await _check_overlap(session, auth.company_id, employee.id, payload)

    balance = await get_or_create_balance(session, auth.company_id, employee.id, leave_type, payload.start_date.year)
    if days > balance.available_days:
        raise AppError(
            f"Insufficient leave balance: {balance.available_days} days available, {days} requested",
            status_code=400,
        )

    leave_request = LeaveRequest(
        company_id=auth.company_id,
        employee_id=employee.id,
        leave_type_id=leave_type.id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days_requested=days,
        reason=payload.reason,
        created_by=auth.user_id,
    )
    session.add(leave_request)
    balance.pending_days += days
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=leave_request.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(leave_request),
    )
    await open_approval_request(
        session,
        auth,
        entity_type=WorkflowEntityType.LEAVE,
        entity=leave_request,
        requester_id=employee.id,
        metadata={
            "employee_name": employee.full_name,
            "leave_type": leave_type.name,
            "start_date": leave_request.start_date,
            "end_date": leave_request.end_date,
            "days": days,
        },
    )

    await session.commit()
    await session.refresh(leave_request)
    logger.info("Leave request %s created for employee %s (%s days)", leave_request.id, employee.id, days)
    return _build_request_response(leave_request)


async def cancel_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    leave_request = await _get_request_or_404(session, auth.company_id, request_id)
    await cancel_entity_request(session, auth, WorkflowEntityType.LEAVE, leave_request.id)
    await session.commit()
    await session.refresh(leave_request)
    return _build_request_response(leave_request)


async def get_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> LeaveRequestResponse:
    leave_request = await _get_request_or_404(session, auth.company_id, request_id)
    ensure_can_view_employee(auth, leave_request.employee_id)
    return _build_request_response(leave_request)


async def list_leave_requests(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: str | None = None,
    employee_id: uuid.UUID | None = None,
    leave_type_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LeaveRequestListResponse:
    """List leave requests, newest first. Employees only see their own."""
    if auth.role == UserRole.EMPLOYEE:
        if auth.employee_id is None:
            return LeaveRequestListResponse(items=[], total=0)
        employee_id = auth.employee_id

    base_filters = [col(LeaveRequest.company_id) == auth.company_id]
    if status_filter is not None:
        base_filters.append(col(LeaveRequest.status) == status_filter)
    if employee_id is not None:
        base_filters.append(col(LeaveRequest.employee_id) == employee_id)
    if leave_type_id is not None:
        base_filters.append(col(LeaveRequest.leave_type_id) == leave_type_id)

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*base_filters)
        .order_by(col(LeaveRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())

    return LeaveRequestListResponse(
        items=[_build_request_response(r) for r in requests],
        total=total,
    )
