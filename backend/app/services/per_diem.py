# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from app.config import get_settings
from app.exceptions import AppError
from app.models.enums import AuditAction, AuditEntityType, EntityStatus, UserRole, WorkflowEntityType
from app.models.per_diem import PerDiemRate, PerDiemRequest
from app.schemas.per_diem import (
    PerDiemRateListResponse,
    PerDiemRateResponse,
    PerDiemRequestListResponse,
    PerDiemRequestResponse,
)
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.calculations import to_cents
from app.services.employee import ensure_can_view_employee, get_employee_or_404
from app.services.workflow import cancel_entity_request, open_approval_request

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.per_diem import CreatePerDiemRateRequest, CreatePerDiemRequestPayload

logger = logging.getLogger(__name__)


def _build_rate_response(rate: PerDiemRate) -> PerDiemRateResponse:
    return PerDiemRateResponse(
        id=rate.id,
        company_id=rate.company_id,
        name=rate.name,
        destination=rate.destination,
        daily_rate=rate.daily_rate,
        currency=rate.currency,
        is_active=rate.is_active,
    )


def _build_request_response(request: PerDiemRequest) -> PerDiemRequestResponse:
    return PerDiemRequestResponse(
        id=request.id,
        company_id=request.company_id,
        employee_id=request.employee_id,
        rate_id=request.rate_id,
        destination=request.destination,
        purpose=request.purpose,
        start_date=request.start_date,
        end_date=request.end_date,
        days=request.days,
        daily_rate=request.daily_rate,
        accommodation_amount=request.accommodation_amount,
        transport_amount=request.transport_amount,
        total_amount=request.total_amount,
        currency=request.currency,
        status=EntityStatus(request.status),
        approved_by=request.approved_by,
        approved_at=request.approved_at,
        rejection_reason=request.rejection_reason,
        created_at=request.created_at,
    )


async def _get_rate_or_404(session: AsyncSession, company_id: uuid.UUID, rate_id: uuid.UUID) -> PerDiemRate:
    result = await session.execute(
        select(PerDiemRate).where(
            col(PerDiemRate.id) == rate_id,
            col(PerDiemRate.company_id) == company_id,
        )
    )
    rate = result.scalar_one_or_none()
    if rate is None:
        raise AppError("Per diem rate not found", status_code=404)
    return rate


async def _get_request_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    request_id: uuid.UUID,
) -> PerDiemRequest:
    result = await session.execute(
        select(PerDiemRequest).where(
            col(PerDiemRequest.id) == request_id,
            col(PerDiemRequest.company_id) == company_id,
        )
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise AppError("Per diem request not found", status_code=404)
    return request


# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------


async def create_rate(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreatePerDiemRateRequest,
) -> PerDiemRateResponse:
    values = payload.model_dump()
    values["currency"] = (values["currency"] or get_settings().currency).upper()
    rate = PerDiemRate(company_id=auth.company_id, **values)
    session.add(rate)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.PER_DIEM_RATE,
        entity_id=rate.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(rate),
    )

    await session.commit()
    await session.refresh(rate)
    return _build_rate_response(rate)


async def list_rates(
    session: AsyncSession,
    company_id: uuid.UUID,
    include_inactive: bool = False,
) -> PerDiemRateListResponse:
    query = select(PerDiemRate).where(col(PerDiemRate.company_id) == company_id)
    if not include_inactive:
        query = query.where(col(PerDiemRate.is_active).is_(True))
    result = await session.execute(query.order_by(col(PerDiemRate.name)))
    rates = list(result.scalars().all())
    return PerDiemRateListResponse(items=[_build_rate_response(r) for r in rates], total=len(rates))


async def deactivate_rate(
    session: AsyncSession,
    auth: AuthContext,
    rate_id: uuid.UUID,
) -> PerDiemRateResponse:
    """Retire a rate. Claims already made keep the amounts they copied."""
    rate = await _get_rate_or_404(session, auth.company_id, rate_id)
    if not rate.is_active:
        raise AppError("Per diem rate is already inactive", status_code=400)

    before = model_to_audit_dict(rate)
    rate.is_active = False
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.PER_DIEM_RATE,
        entity_id=rate.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(rate),
    )

    await session.commit()
    await session.refresh(rate)
    return _build_rate_response(rate)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


async def create_per_diem_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreatePerDiemRequestPayload,
) -> PerDiemRequestResponse:
    """Create a per diem claim and open the PER_DIEM workflow.

    ``days`` counts calendar days inclusive of both ends. The daily rate is
    copied from the rate so later rate changes do not alter the claim.
    """
    employee_id = payload.employee_id or auth.employee_id
    if employee_id is None:
        raise AppError("employee_id is required", status_code=400)
    if employee_id != auth.employee_id and not auth.has_role(UserRole.HR, UserRole.FINANCE):
        raise AppError("Only HR or finance can claim per diem on behalf of another employee", status_code=403)
    if payload.end_date < payload.start_date:
        raise AppError("end_date must be on or after start_date", status_code=400)

    employee = await get_employee_or_404(session, auth.company_id, employee_id)
    rate = await _get_rate_or_404(session, auth.company_id, payload.rate_id)
    if not rate.is_active:
        raise AppError("Per diem rate is inactive", status_code=400)

    days = (payload.end_date - payload.start_date).days + 1
    total = to_cents(Decimal(days) * rate.daily_rate + payload.accommodation_amount + payload.transport_amount)

    request = PerDiemRequest(
        company_id=auth.company_id,
        employee_id=employee.id,
        rate_id=rate.id,
        destination=payload.destination,
        purpose=payload.purpose,
        start_date=payload.start_date,
        end_date=payload.end_date,
        days=days,
        daily_rate=rate.daily_rate,
        accommodation_amount=payload.accommodation_amount,
        transport_amount=payload.transport_amount,
        total_amount=total,
        currency=rate.currency,
        created_by=auth.user_id,
    )
    session.add(request)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.PER_DIEM_REQUEST,
        entity_id=request.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(request),
    )
    await open_approval_request(
        session,
        auth,
        entity_type=WorkflowEntityType.PER_DIEM,
        entity=request,
        requester_id=employee.id,
        metadata={
            "employee_name": employee.full_name,
            "destination": request.destination,
            "days": days,
            "total_amount": total,
            "currency": request.currency,
        },
    )

    await session.commit()
    await session.refresh(request)
    logger.info("Per diem request %s created for employee %s total=%s", request.id, employee.id, total)
    return _build_request_response(request)


async def cancel_per_diem_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> PerDiemRequestResponse:
    request = await _get_request_or_404(session, auth.company_id, request_id)
    await cancel_entity_request(session, auth, WorkflowEntityType.PER_DIEM, request.id)
    await session.commit()
    await session.refresh(request)
    return _build_request_response(request)


async def get_per_diem_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> PerDiemRequestResponse:
    request = await _get_request_or_404(session, auth.company_id, request_id)
    ensure_can_view_employee(auth, request.employee_id)
    return _build_request_response(request)


async def list_per_diem_requests(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: str | None = None,
    employee_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> PerDiemRequestListResponse:
    """List per diem claims, newest first. Employees only see their own."""
    if auth.role == UserRole.EMPLOYEE:
        if auth.employee_id is None:
            return PerDiemRequestListResponse(items=[], total=0)
        employee_id = auth.employee_id

    base_filters = [col(PerDiemRequest.company_id) == auth.company_id]
    if status_filter is not None:
        base_filters.append(col(PerDiemRequest.status) == status_filter)
    if employee_id is not None:
        base_filters.append(col(PerDiemRequest.employee_id) == employee_id)

    count_result = await session.execute(select(func.count()).select_from(PerDiemRequest).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(PerDiemRequest)
        .where(*base_filters)
        .order_by(col(PerDiemRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return PerDiemRequestListResponse(
        items=[_build_request_response(r) for r in result.scalars().all()],
        total=total,
    )
