# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from app.exceptions import AppError
from app.models.base import ZERO, now_utc
from app.models.enums import AuditAction, AuditEntityType, EntityStatus, UserRole, WorkflowEntityType
from app.models.payroll import SalaryStructure
from app.models.promotion import PromotionRequest
from app.schemas.promotion import PromotionRequestListResponse, PromotionRequestResponse
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.employee import ensure_can_view_employee, get_employee_or_404, is_line_manager_of
from app.services.payroll import get_current_salary_structure
from app.services.workflow import cancel_entity_request, open_approval_request

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.promotion import CreatePromotionRequestPayload

logger = logging.getLogger(__name__)


def _build_promotion_response(promotion: PromotionRequest) -> PromotionRequestResponse:
    return PromotionRequestResponse(
        id=promotion.id,
        company_id=promotion.company_id,
        employee_id=promotion.employee_id,
        current_position=promotion.current_position,
        proposed_position=promotion.proposed_position,
        current_salary=promotion.current_salary,
        proposed_salary=promotion.proposed_salary,
        effective_date=promotion.effective_date,
        reason=promotion.reason,
        status=EntityStatus(promotion.status),
        approved_by=promotion.approved_by,
        approved_at=promotion.approved_at,
        rejection_reason=promotion.rejection_reason,
        created_by=promotion.created_by,
        created_at=promotion.created_at,
    )


async def _get_promotion_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    promotion_id: uuid.UUID,
) -> PromotionRequest:
    result = await session.execute(
        select(PromotionRequest).where(
            col(PromotionRequest.id) == promotion_id,
            col(PromotionRequest.company_id) == company_id,
        )
    )
    promotion = result.scalar_one_or_none()
    if promotion is None:
        raise AppError("Promotion request not found", status_code=404)
    return promotion


async def create_promotion_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreatePromotionRequestPayload,
) -> PromotionRequestResponse:
    """Propose a promotion and open the PROMOTION workflow.

    Admin, HR and management may propose for anyone; otherwise the caller
    must be the employee's line manager. The promoted employee is the
    requester so they can never approve their own promotion.
    """
    employee = await get_employee_or_404(session, auth.company_id, payload.employee_id)
    if auth.employee_id == employee.id:
        raise AppError("Employees cannot propose their own promotion", status_code=403)
    if not auth.has_role(UserRole.HR, UserRole.MANAGEMENT) and not await is_line_manager_of(session, auth, employee):
        raise AppError("Only HR, management or the line manager can propose a promotion", status_code=403)

    current_salary = payload.current_salary
    if current_salary is None:
        structure = await get_current_salary_structure(session, auth.company_id, employee.id)
        current_salary = structure.basic_salary if structure else ZERO

    promotion = PromotionRequest(
        company_id=auth.company_id,
        employee_id=employee.id,
        current_position=payload.current_position or employee.job_role,
        proposed_position=payload.proposed_position,
        current_salary=current_salary,
        proposed_salary=payload.proposed_salary,
        effective_date=payload.effective_date,
        reason=payload.reason,
        created_by=auth.user_id,
    )
    session.add(promotion)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.PROMOTION_REQUEST,
        entity_id=promotion.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(promotion),
    )
    await open_approval_request(
        session,
        auth,
        entity_type=WorkflowEntityType.PROMOTION,
        entity=promotion,
        requester_id=employee.id,
        metadata={
            "employee_name": employee.full_name,
            "proposed_position": promotion.proposed_position,
            "proposed_salary": promotion.proposed_salary,
            "effective_date": promotion.effective_date,
        },
    )

    await session.commit()
    await session.refresh(promotion)
    logger.info("Promotion %s proposed for employee %s", promotion.id, employee.id)
    return _build_promotion_response(promotion)


async def apply_promotion(session: AsyncSession, auth: AuthContext, promotion: PromotionRequest) -> None:
    """Give the employee the new position and a salary structure at the proposed basic.

    Allowances carry over from the latest structure. Runs inside the approval
    transaction.
    """
    employee = await get_employee_or_404(session, promotion.company_id, promotion.employee_id)
    before = model_to_audit_dict(employee)
    employee.job_role = promotion.proposed_position
    employee.updated_at = now_utc()

    latest = await get_current_salary_structure(session, promotion.company_id, employee.id)
    structure = SalaryStructure(
        company_id=promotion.company_id,
        employee_id=employee.id,
        basic_salary=promotion.proposed_salary,
        car_allowance=latest.car_allowance if latest else ZERO,
        meal_allowance=latest.meal_allowance if latest else ZERO,
        telephone_allowance=latest.telephone_allowance if latest else ZERO,
        housing_allowance=latest.housing_allowance if latest else ZERO,
        other_allowances_json=latest.other_allowances_json if latest else None,
        insurance_premium=latest.insurance_premium if latest else ZERO,
        effective_date=promotion.effective_date,
        created_by=auth.user_id,
    )
    session.add(structure)
    await session.flush()

    await write_audit_log(
        session,
        company_id=promotion.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.EMPLOYEE,
        entity_id=employee.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(employee),
    )
    await write_audit_log(
        session,
        company_id=promotion.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.SALARY_STRUCTURE,
        entity_id=structure.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(structure),
    )
    logger.info("Promotion %s applied: employee %s is now %s", promotion.id, employee.id, employee.job_role)


async def cancel_promotion_request(
    session: AsyncSession,
    auth: AuthContext,
    promotion_id: uuid.UUID,
) -> PromotionRequestResponse:
    promotion = await _get_promotion_or_404(session, auth.company_id, promotion_id)
    await cancel_entity_request(session, auth, WorkflowEntityType.PROMOTION, promotion.id)
    await session.commit()
    await session.refresh(promotion)
    return _build_promotion_response(promotion)


async def get_promotion_request(
    session: AsyncSession,
    auth: AuthContext,
    promotion_id: uuid.UUID,
) -> PromotionRequestResponse:
    promotion = await _get_promotion_or_404(session, auth.company_id, promotion_id)
    if promotion.created_by != auth.user_id:
        ensure_can_view_employee(auth, promotion.employee_id)
    return _build_promotion_response(promotion)


async def list_promotion_requests(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: str | None = None,
    employee_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> PromotionRequestListResponse:
    """List promotions, newest first. Employees see their own and those they proposed."""
    base_filters = [col(PromotionRequest.company_id) == auth.company_id]
    if auth.role == UserRole.EMPLOYEE:
        own = col(PromotionRequest.created_by) == auth.user_id
        if auth.employee_id is not None:
            own = own | (col(PromotionRequest.employee_id) == auth.employee_id)
        base_filters.append(own)
    if status_filter is not None:
        base_filters.append(col(PromotionRequest.status) == status_filter)
    if employee_id is not None:
        base_filters.append(col(PromotionRequest.employee_id) == employee_id)

    count_result = await session.execute(select(func.count()).select_from(PromotionRequest).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(PromotionRequest)
        .where(*base_filters)
        .order_by(col(PromotionRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return PromotionRequestListResponse(
        items=[_build_promotion_response(p) for p in result.scalars().all()],
        total=total,
    )
