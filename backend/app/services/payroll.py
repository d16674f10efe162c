# ruff: noqa: TC003
from __future__ import annotations

import calendar
import csv
import io
import logging
import uuid
from collections import defaultdict
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select
from sqlmodel import col

from app.exceptions import AppError
from app.models.employee import Employee
from app.models.enums import (
    AuditAction,
    AuditEntityType,
    DeductionType,
    EmployeeStatus,
    EntityStatus,
    NotificationType,
    UserRole,
    WorkflowEntityType,
)
from app.models.payroll import PayrollRun, PayrollRunDeduction, Payslip, RecurringDeduction, SalaryStructure
from app.schemas.payroll import (
    P9MonthRow,
    P9Response,
    PayrollInput,
    PayrollPreviewResponse,
    PayrollRunListResponse,
    PayrollRunResponse,
    PayslipListResponse,
    PayslipResponse,
    ProcessPayrollResponse,
    RecurringDeductionListResponse,
    RecurringDeductionResponse,
    RunDeductionListResponse,
    RunDeductionResponse,
    SalaryStructureListResponse,
    SalaryStructureResponse,
    StatutorySummaryResponse,
)
from app.services.audit import model_to_audit_dict, to_json_safe, write_audit_log
from app.services.calculations import ZERO, calculate_payroll, tax_band_breakdown, to_cents
from app.services.employee import ensure_can_view_employee, get_employee_or_404
from app.services.notification import queue_notification
from app.services.workflow import open_approval_request

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.payroll import (
        CreatePayrollRunRequest,
        CreateRecurringDeductionRequest,
        CreateSalaryStructureRequest,
        ReplaceRunDeductionsRequest,
        UpdateRecurringDeductionRequest,
    )

logger = logging.getLogger(__name__)

# Runs in these states are finalized for payslip visibility and P9 reporting.
FINAL_RUN_STATUSES = (EntityStatus.APPROVED.value, EntityStatus.PAID.value)

_RUN_CSV_COLUMNS = [
    "Staff ID",
    "Employee Name",
    "KRA PIN",
    "Basic Salary",
    "Gross Pay",
    "NSSF",
    "SHIF",
    "AHL",
    "Taxable Pay",
    "PAYE",
    "HELB",
    "Other Deductions",
    "Total Deductions",
    "Net Pay",
    "Bank Name",
    "Account Number",
]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(UTC)


def _decimal_map(values: dict[str, Any] | None) -> dict[str, Decimal]:
    return {label: Decimal(str(amount)) for label, amount in (values or {}).items()}


def _is_editable(run: PayrollRun) -> bool:
    """Runs can be (re)processed before submission or after a rejection."""
    status = EntityStatus(run.status)
    return status in (EntityStatus.DRAFT, EntityStatus.PROCESSING) or status.is_rejected


def _build_structure_response(structure: SalaryStructure) -> SalaryStructureResponse:
    return SalaryStructureResponse(
        id=structure.id,
        employee_id=structure.employee_id,
        basic_salary=structure.basic_salary,
        car_allowance=structure.car_allowance,
        meal_allowance=structure.meal_allowance,
        telephone_allowance=structure.telephone_allowance,
        housing_allowance=structure.housing_allowance,
        other_allowances=_decimal_map(structure.other_allowances_json),
        insurance_premium=structure.insurance_premium,
        effective_date=structure.effective_date,
        created_at=structure.created_at,
    )


def _build_deduction_response(deduction: RecurringDeduction) -> RecurringDeductionResponse:
    return RecurringDeductionResponse(
        id=deduction.id,
        employee_id=deduction.employee_id,
        deduction_type=DeductionType(deduction.deduction_type),
        label=deduction.label,
        amount=deduction.amount,
        start_date=deduction.start_date,
        end_date=deduction.end_date,
        is_active=deduction.is_active,
    )


def _build_run_deduction_response(deduction: PayrollRunDeduction) -> RunDeductionResponse:
    return RunDeductionResponse(
        id=deduction.id,
        payroll_run_id=deduction.payroll_run_id,
        employee_id=deduction.employee_id,
        deduction_type=DeductionType(deduction.deduction_type),
        label=deduction.label,
        amount=deduction.amount,
    )


def _build_run_response(run: PayrollRun) -> PayrollRunResponse:
    """Map a payroll run model to its response schema."""
    return PayrollRunResponse(
        id=run.id,
        company_id=run.company_id,
        month=run.month,
        year=run.year,
        status=EntityStatus(run.status),
        processed_by=run.processed_by,
        processed_at=run.processed_at,
        approved_by=run.approved_by,
        approved_at=run.approved_at,
        paid_by=run.paid_by,
        paid_at=run.paid_at,
        rejection_reason=run.rejection_reason,
        employee_count=run.employee_count,
        total_gross=run.total_gross,
        total_deductions=run.total_deductions,
        total_paye=run.total_paye,
        total_net=run.total_net,
        total_cost_to_company=run.total_cost_to_company,
        created_at=run.created_at,
    )


def _build_payslip_response(payslip: Payslip) -> PayslipResponse:
    return PayslipResponse(
        id=payslip.id,
        company_id=payslip.company_id,
        payroll_run_id=payslip.payroll_run_id,
        employee_id=payslip.employee_id,
        calendar_days=payslip.calendar_days,
        days_worked=payslip.days_worked,
        created_at=payslip.created_at,
        basic_salary=payslip.basic_salary,
        car_allowance=payslip.car_allowance,
        meal_allowance=payslip.meal_allowance,
        telephone_allowance=payslip.telephone_allowance,
        housing_allowance=payslip.housing_allowance,
        other_earnings=_decimal_map(payslip.other_earnings_json),
        gross_pay=payslip.gross_pay,
        nssf_employee=payslip.nssf_employee,
        nssf_employer=payslip.nssf_employer,
        shif_employee=payslip.shif_employee,
        ahl_employee=payslip.ahl_employee,
        ahl_employer=payslip.ahl_employer,
        taxable_pay=payslip.taxable_pay,
        income_tax=payslip.income_tax,
        personal_relief=payslip.personal_relief,
        insurance_relief=payslip.insurance_relief,
        paye=payslip.paye,
        helb=payslip.helb,
        other_deductions=_decimal_map(payslip.other_deductions_json),
        total_deductions=payslip.total_deductions,
        net_pay=payslip.net_pay,
        nita=payslip.nita,
        cost_to_company=payslip.cost_to_company,
    )


async def _get_run_or_404(session: AsyncSession, company_id: uuid.UUID, run_id: uuid.UUID) -> PayrollRun:
    result = await session.execute(
        select(PayrollRun).where(
            col(PayrollRun.id) == run_id,
            col(PayrollRun.company_id) == company_id,
        )
    )
    run = result.scalar_one_or_none()
    if run is None:
        raise AppError("Payroll run not found", status_code=404)
    return run


async def _get_recurring_deduction_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    deduction_id: uuid.UUID,
) -> RecurringDeduction:
    result = await session.execute(
        select(RecurringDeduction).where(
            col(RecurringDeduction.id) == deduction_id,
            col(RecurringDeduction.company_id) == company_id,
        )
    )
    deduction = result.scalar_one_or_none()
    if deduction is None:
        raise AppError("Deduction not found", status_code=404)
    return deduction


async def _load_payslips(session: AsyncSession, run_id: uuid.UUID) -> list[Payslip]:
    result = await session.execute(select(Payslip).where(col(Payslip.payroll_run_id) == run_id))
    return list(result.scalars().all())


async def get_current_salary_structure(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    as_of: date | None = None,
) -> SalaryStructure | None:
    """The structure with the latest effective date on or before ``as_of``.

    Without ``as_of`` the latest structure overall is returned.
    """
    query = select(SalaryStructure).where(
        col(SalaryStructure.company_id) == company_id,
        col(SalaryStructure.employee_id) == employee_id,
    )
    if as_of is not None:
        query = query.where(col(SalaryStructure.effective_date) <= as_of)
    result = await session.execute(
        query.order_by(col(SalaryStructure.effective_date).desc(), col(SalaryStructure.created_at).desc()).limit(1)
    )
    return result.scalar_one_or_none()


def _days_worked(employee: Employee, month_start: date, month_end: date) -> int:
    """Days of the month inside the employee's employment window."""
    first = max(month_start, employee.employment_date) if employee.employment_date else month_start
    last = min(month_end, employee.termination_date) if employee.termination_date else month_end
    return max(0, (last - first).days + 1)


def _split_deductions(
    deductions: list[tuple[str, str | None, Decimal]],
) -> tuple[Decimal, dict[str, Decimal]]:
    """Return the HELB total and the remaining deductions keyed by label or type."""
    helb = ZERO
    others: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for deduction_type, label, amount in deductions:
        if deduction_type == DeductionType.HELB:
            helb += amount
        else:
            others[label or deduction_type] += amount
    return helb, dict(others)


# ---------------------------------------------------------------------------
# Calculation preview
# ---------------------------------------------------------------------------


def preview_payroll(payload: PayrollInput) -> PayrollPreviewResponse:
    calculation = calculate_payroll(payload)
    return PayrollPreviewResponse(
        calculation=calculation,
        tax_bands=tax_band_breakdown(calculation.taxable_pay),
    )


# ---------------------------------------------------------------------------
# Salary structures
# ---------------------------------------------------------------------------


async def create_salary_structure(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    payload: CreateSalaryStructureRequest,
) -> SalaryStructureResponse:
    """Add a new effective-dated structure. Earlier structures are kept as history."""
    employee = await get_employee_or_404(session, auth.company_id, employee_id)
    data = payload.model_dump(exclude={"other_allowances"})
    structure = SalaryStructure(
        company_id=auth.company_id,
        employee_id=employee.id,
        other_allowances_json=to_json_safe(payload.other_allowances) or None,
        created_by=auth.user_id,
        **data,
    )
    session.add(structure)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.SALARY_STRUCTURE,
        entity_id=structure.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(structure),
    )

    await session.commit()
    await session.refresh(structure)
    logger.info("Salary structure %s created for employee %s", structure.id, employee.id)
    return _build_structure_response(structure)


async def list_salary_structures(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
) -> SalaryStructureListResponse:
    ensure_can_view_employee(auth, employee_id)
    result = await session.execute(
        select(SalaryStructure)
        .where(
            col(SalaryStructure.company_id) == auth.company_id,
            col(SalaryStructure.employee_id) == employee_id,
        )
        .order_by(col(SalaryStructure.effective_date).desc())
    )
    structures = list(result.scalars().all())
    return SalaryStructureListResponse(items=[_build_structure_response(s) for s in structures], total=len(structures))


# ---------------------------------------------------------------------------
# Recurring deductions
# ---------------------------------------------------------------------------


async def create_recurring_deduction(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    payload: CreateRecurringDeductionRequest,
) -> RecurringDeductionResponse:
    employee = await get_employee_or_404(session, auth.company_id, employee_id)
    if payload.end_date is not None and payload.end_date < payload.start_date:
        raise AppError("end_date must be on or after start_date", status_code=400)

    deduction = RecurringDeduction(
        company_id=auth.company_id,
        employee_id=employee.id,
        deduction_type=payload.deduction_type.value,
        label=payload.label,
        amount=payload.amount,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    session.add(deduction)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.DEDUCTION,
        entity_id=deduction.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(deduction),
    )

    await session.commit()
    await session.refresh(deduction)
    return _build_deduction_response(deduction)


async def list_recurring_deductions(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    include_inactive: bool = False,
) -> RecurringDeductionListResponse:
    ensure_can_view_employee(auth, employee_id)
    query = select(RecurringDeduction).where(
        col(RecurringDeduction.company_id) == auth.company_id,
        col(RecurringDeduction.employee_id) == employee_id,
    )
    if not include_inactive:
        query = query.where(col(RecurringDeduction.is_active).is_(True))
    result = await session.execute(query.order_by(col(RecurringDeduction.start_date)))
    deductions = list(result.scalars().all())
    return RecurringDeductionListResponse(
        items=[_build_deduction_response(d) for d in deductions],
        total=len(deductions),
    )


async def update_recurring_deduction(
    session: AsyncSession,
    auth: AuthContext,
    deduction_id: uuid.UUID,
    payload: UpdateRecurringDeductionRequest,
) -> RecurringDeductionResponse:
    deduction = await _get_recurring_deduction_or_404(session, auth.company_id, deduction_id)
    before = model_to_audit_dict(deduction)

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("amount") is None:
        changes.pop("amount", None)
    if changes.get("is_active") is None:
        changes.pop("is_active", None)
    end_date = changes.get("end_date")
    if end_date is not None and end_date < deduction.start_date:
        raise AppError("end_date must be on or after start_date", status_code=400)
    for key, value in changes.items():
        setattr(deduction, key, value)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.DEDUCTION,
        entity_id=deduction.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(deduction),
    )

    await session.commit()
    await session.refresh(deduction)
    return _build_deduction_response(deduction)


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


async def create_payroll_run(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreatePayrollRunRequest,
) -> PayrollRunResponse:
    """Create a DRAFT run. One run per company and month."""
    existing = await session.execute(
        select(col(PayrollRun.id)).where(
            col(PayrollRun.company_id) == auth.company_id,
            col(PayrollRun.year) == payload.year,
            col(PayrollRun.month) == payload.month,
        )
    )
    if existing.first() is not None:
        raise AppError(f"A payroll run already exists for {payload.year}-{payload.month:02d}", status_code=409)

    run = PayrollRun(
        company_id=auth.company_id,
        month=payload.month,
        year=payload.year,
        created_by=auth.user_id,
    )
    session.add(run)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.PAYROLL_RUN,
        entity_id=run.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(run),
    )

    await session.commit()
    await session.refresh(run)
    return _build_run_response(run)


async def list_payroll_runs(
    session: AsyncSession,
    company_id: uuid.UUID,
    year: int | None = None,
    status_filter: str | None = None,
) -> PayrollRunListResponse:
    query = select(PayrollRun).where(col(PayrollRun.company_id) == company_id)
    if year is not None:
        query = query.where(col(PayrollRun.year) == year)
    if status_filter is not None:
        query = query.where(col(PayrollRun.status) == status_filter)
    result = await session.execute(query.order_by(col(PayrollRun.year).desc(), col(PayrollRun.month).desc()))
    runs = list(result.scalars().all())
    return PayrollRunListResponse(items=[_build_run_response(r) for r in runs], total=len(runs))


async def get_payroll_run(session: AsyncSession, company_id: uuid.UUID, run_id: uuid.UUID) -> PayrollRunResponse:
    run = await _get_run_or_404(session, company_id, run_id)
    return _build_run_response(run)


async def list_run_deductions(
    session: AsyncSession,
    company_id: uuid.UUID,
    run_id: uuid.UUID,
) -> RunDeductionListResponse:
    run = await _get_run_or_404(session, company_id, run_id)
    result = await session.execute(
        select(PayrollRunDeduction).where(col(PayrollRunDeduction.payroll_run_id) == run.id)
    )
    deductions = list(result.scalars().all())
    return RunDeductionListResponse(items=[_build_run_deduction_response(d) for d in deductions], total=len(deductions))


async def replace_run_deductions(
    session: AsyncSession,
    auth: AuthContext,
    run_id: uuid.UUID,
    payload: ReplaceRunDeductionsRequest,
) -> RunDeductionListResponse:
    """Replace the one-off deductions of a run. Reprocess the run to apply them."""
    run = await _get_run_or_404(session, auth.company_id, run_id)
    if not _is_editable(run):
        raise AppError(f"Deductions cannot be changed while the run is {run.status}", status_code=400)

    employee_ids = {item.employee_id for item in payload.items}
    if employee_ids:
        result = await session.execute(
            select(col(Employee.id)).where(
                col(Employee.company_id) == auth.company_id,
                col(Employee.id).in_(employee_ids),
            )
        )
        unknown = employee_ids - {row[0] for row in result.all()}
        if unknown:
            raise AppError("Deduction references an unknown employee", status_code=400)

    previous = await session.execute(
        select(PayrollRunDeduction).where(col(PayrollRunDeduction.payroll_run_id) == run.id)
    )
    before = [model_to_audit_dict(d) for d in previous.scalars().all()]
    await session.execute(delete(PayrollRunDeduction).where(col(PayrollRunDeduction.payroll_run_id) == run.id))

    deductions = [
        PayrollRunDeduction(
            payroll_run_id=run.id,
            employee_id=item.employee_id,
            deduction_type=item.deduction_type.value,
            label=item.label,
            amount=item.amount,
        )
        for item in payload.items
    ]
    session.add_all(deductions)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.DEDUCTION,
        entity_id=run.id,
        action=AuditAction.UPDATE,
        before_json={"items": before},
        after_json={"items": [model_to_audit_dict(d) for d in deductions]},
    )

    await session.commit()
    return RunDeductionListResponse(items=[_build_run_deduction_response(d) for d in deductions], total=len(deductions))


async def process_payroll_run(
    session: AsyncSession,
    auth: AuthContext,
    run_id: uuid.UUID,
) -> ProcessPayrollResponse:
    """Compute payslips for every active employee with a salary structure.

    Flow:
    1. Check the run is DRAFT, PROCESSING or rejected
    2. Drop previous payslips for the run
    3. Per employee: structure effective by month end, days worked in the
       month, HELB and other deductions from recurring and one-off items
    4. Store payslips and aggregate run totals; status becomes PROCESSING
    """
    run = await _get_run_or_404(session, auth.company_id, run_id)
    if not _is_editable(run):
        raise AppError(f"Cannot process a payroll run that is {run.status}", status_code=400)

    calendar_days = calendar.monthrange(run.year, run.month)[1]
    month_start = date(run.year, run.month, 1)
    month_end = date(run.year, run.month, calendar_days)
    before = model_to_audit_dict(run)

    await session.execute(delete(Payslip).where(col(Payslip.payroll_run_id) == run.id))

    employees_result = await session.execute(
        select(Employee)
        .where(
            col(Employee.company_id) == auth.company_id,
            col(Employee.status) == EmployeeStatus.ACTIVE,
        )
        .order_by(col(Employee.staff_id))
    )
    employees = list(employees_result.scalars().all())

    recurring_result = await session.execute(
        select(RecurringDeduction).where(
            col(RecurringDeduction.company_id) == auth.company_id,
            col(RecurringDeduction.is_active).is_(True),
            col(RecurringDeduction.start_date) <= month_end,
        )
    )
    deductions_by_employee: dict[uuid.UUID, list[tuple[str, str | None, Decimal]]] = defaultdict(list)
    for recurring in recurring_result.scalars().all():
        if recurring.end_date is not None and recurring.end_date < month_start:
            continue
        deductions_by_employee[recurring.employee_id].append(
            (recurring.deduction_type, recurring.label, recurring.amount)
        )
    one_off_result = await session.execute(
        select(PayrollRunDeduction).where(col(PayrollRunDeduction.payroll_run_id) == run.id)
    )
    for one_off in one_off_result.scalars().all():
        deductions_by_employee[one_off.employee_id].append((one_off.deduction_type, one_off.label, one_off.amount))

    payslips: list[Payslip] = []
    skipped: list[uuid.UUID] = []
    for employee in employees:
        structure = await get_current_salary_structure(session, auth.company_id, employee.id, as_of=month_end)
        days_worked = _days_worked(employee, month_start, month_end)
        if structure is None or days_worked == 0:
            skipped.append(employee.id)
            continue

        helb, other_deductions = _split_deductions(deductions_by_employee.get(employee.id, []))
        calculation = calculate_payroll(
            PayrollInput(
                basic_salary=structure.basic_salary,
                car_allowance=structure.car_allowance,
                meal_allowance=structure.meal_allowance,
                telephone_allowance=structure.telephone_allowance,
                housing_allowance=structure.housing_allowance,
                other_allowances=_decimal_map(structure.other_allowances_json),
                other_deductions=other_deductions,
                helb=helb,
                insurance_premium=structure.insurance_premium,
                calendar_days=calendar_days,
                days_worked=days_worked,
            )
        )
        values = calculation.model_dump(exclude={"other_earnings", "other_deductions"})
        payslips.append(
            Payslip(
                company_id=auth.company_id,
                payroll_run_id=run.id,
                employee_id=employee.id,
                calendar_days=calendar_days,
                days_worked=days_worked,
                other_earnings_json=to_json_safe(calculation.other_earnings) or None,
                other_deductions_json=to_json_safe(calculation.other_deductions) or None,
                **values,
            )
        )

    session.add_all(payslips)

    run.employee_count = len(payslips)
    run.total_gross = to_cents(sum((p.gross_pay for p in payslips), ZERO))
    run.total_deductions = to_cents(sum((p.total_deductions for p in payslips), ZERO))
    run.total_paye = to_cents(sum((p.paye for p in payslips), ZERO))
    run.total_net = to_cents(sum((p.net_pay for p in payslips), ZERO))
    run.total_cost_to_company = to_cents(sum((p.cost_to_company for p in payslips), ZERO))
    run.status = EntityStatus.PROCESSING.value
    run.processed_by = auth.user_id
    run.processed_at = _now()
    run.rejection_reason = None
    run.updated_at = run.processed_at
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.PAYROLL_RUN,
        entity_id=run.id,
        action=AuditAction.PROCESS,
        before_json=before,
        after_json=model_to_audit_dict(run),
    )

    await session.commit()
    await session.refresh(run)
    logger.info(
        "Processed payroll %d-%02d for company %s: %d payslips, %d skipped",
        run.year,
        run.month,
        auth.company_id,
        len(payslips),
        len(skipped),
    )
    return ProcessPayrollResponse(
        run=_build_run_response(run),
        payslip_count=len(payslips),
        skipped_employee_ids=skipped,
    )


async def submit_payroll_run(
    session: AsyncSession,
    auth: AuthContext,
    run_id: uuid.UUID,
) -> PayrollRunResponse:
    """Send a processed run into the PAYROLL approval workflow."""
    run = await _get_run_or_404(session, auth.company_id, run_id)
    status = EntityStatus(run.status)
    if status != EntityStatus.PROCESSING and not status.is_rejected:
        raise AppError(f"Cannot submit a payroll run that is {run.status}", status_code=400)

    count_result = await session.execute(
        select(func.count()).select_from(Payslip).where(col(Payslip.payroll_run_id) == run.id)
    )
    if count_result.scalar_one() == 0:
        raise AppError("Process the payroll run before submitting it", status_code=400)

    await open_approval_request(
        session,
        auth,
        entity_type=WorkflowEntityType.PAYROLL,
        entity=run,
        requester_id=auth.employee_id or auth.user_id,
        metadata={
            "period": f"{run.year}-{run.month:02d}",
            "employee_count": run.employee_count,
            "total_net": run.total_net,
        },
    )

    await session.commit()
    await session.refresh(run)
    return _build_run_response(run)


async def mark_payroll_paid(
    session: AsyncSession,
    auth: AuthContext,
    run_id: uuid.UUID,
) -> PayrollRunResponse:
    """Record payment of an approved run and notify employees their payslips are ready."""
    run = await _get_run_or_404(session, auth.company_id, run_id)
    if run.status != EntityStatus.APPROVED:
        raise AppError("Only approved payroll runs can be marked as paid", status_code=400)

    before = model_to_audit_dict(run)
    now = _now()
    run.status = EntityStatus.PAID.value
    run.paid_by = auth.user_id
    run.paid_at = now
    run.updated_at = now

    payslips = await _load_payslips(session, run.id)
    employees_result = await session.execute(
        select(Employee).where(col(Employee.id).in_([p.employee_id for p in payslips]))
    )
    employees = {e.id: e for e in employees_result.scalars().all()}
    period = f"{calendar.month_name[run.month]} {run.year}"
    for payslip in payslips:
        queue_notification(
            session,
            company_id=auth.company_id,
            notification_type=NotificationType.PAYSLIP_READY,
            recipient=employees.get(payslip.employee_id),
            subject=f"Your payslip for {period} is ready",
            body=f"Your salary for {period} has been paid. Net pay: {payslip.net_pay}.",
            metadata={"payroll_run_id": run.id, "payslip_id": payslip.id},
        )
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.PAYROLL_RUN,
        entity_id=run.id,
        action=AuditAction.PAY,
        before_json=before,
        after_json=model_to_audit_dict(run),
    )

    await session.commit()
    await session.refresh(run)
    logger.info("Payroll run %s marked paid by %s", run.id, auth.user_id)
    return _build_run_response(run)


# ---------------------------------------------------------------------------
# Payslips
# ---------------------------------------------------------------------------


async def list_run_payslips(
    session: AsyncSession,
    company_id: uuid.UUID,
    run_id: uuid.UUID,
) -> PayslipListResponse:
    run = await _get_run_or_404(session, company_id, run_id)
    payslips = await _load_payslips(session, run.id)
    return PayslipListResponse(items=[_build_payslip_response(p) for p in payslips], total=len(payslips))


async def get_payslip(
    session: AsyncSession,
    auth: AuthContext,
    payslip_id: uuid.UUID,
) -> PayslipResponse:
    """Fetch one payslip. Employees see their own once the run is approved."""
    result = await session.execute(
        select(Payslip, col(PayrollRun.status))
        .join(PayrollRun, col(PayrollRun.id) == col(Payslip.payroll_run_id))
        .where(
            col(Payslip.id) == payslip_id,
            col(Payslip.company_id) == auth.company_id,
        )
    )
    row = result.first()
    if row is None:
        raise AppError("Payslip not found", status_code=404)
    payslip, run_status = row
    ensure_can_view_employee(auth, payslip.employee_id)
    if auth.role == UserRole.EMPLOYEE and run_status not in FINAL_RUN_STATUSES:
        raise AppError("Payslip not found", status_code=404)
    return _build_payslip_response(payslip)


async def list_employee_payslips(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    year: int | None = None,
) -> PayslipListResponse:
    """An employee's payslips, newest period first."""
    ensure_can_view_employee(auth, employee_id)
    query = (
        select(Payslip)
        .join(PayrollRun, col(PayrollRun.id) == col(Payslip.payroll_run_id))
        .where(
            col(Payslip.company_id) == auth.company_id,
            col(Payslip.employee_id) == employee_id,
        )
    )
    if year is not None:
        query = query.where(col(PayrollRun.year) == year)
    if auth.role == UserRole.EMPLOYEE:
        query = query.where(col(PayrollRun.status).in_(FINAL_RUN_STATUSES))
    result = await session.execute(query.order_by(col(PayrollRun.year).desc(), col(PayrollRun.month).desc()))
    payslips = list(result.scalars().all())
    return PayslipListResponse(items=[_build_payslip_response(p) for p in payslips], total=len(payslips))


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


async def export_run_csv(session: AsyncSession, company_id: uuid.UUID, run_id: uuid.UUID) -> str:
    """Render the run's payslips as CSV, one row per employee ordered by staff id."""
    run = await _get_run_or_404(session, company_id, run_id)
    result = await session.execute(
        select(Payslip, Employee)
        .join(Employee, col(Employee.id) == col(Payslip.employee_id))
        .where(col(Payslip.payroll_run_id) == run.id)
        .order_by(col(Employee.staff_id))
    )

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(_RUN_CSV_COLUMNS)
    for payslip, employee in result.all():
        other_total = sum(_decimal_map(payslip.other_deductions_json).values(), ZERO)
        writer.writerow(
            [
                employee.staff_id,
                employee.full_name,
                employee.kra_pin or "",
                payslip.basic_salary,
                payslip.gross_pay,
                payslip.nssf_employee,
                payslip.shif_employee,
                payslip.ahl_employee,
                payslip.taxable_pay,
                payslip.paye,
                payslip.helb,
                to_cents(other_total),
                payslip.total_deductions,
                payslip.net_pay,
                employee.bank_name or "",
                employee.account_number or "",
            ]
        )
    return output.getvalue()


async def get_statutory_summary(
    session: AsyncSession,
    company_id: uuid.UUID,
    run_id: uuid.UUID,
) -> StatutorySummaryResponse:
    """Totals owed to KRA, NSSF, SHA, the housing levy fund and NITA for one run."""
    run = await _get_run_or_404(session, company_id, run_id)
    payslips = await _load_payslips(session, run.id)

    def total(field: str) -> Decimal:
        return to_cents(sum((getattr(p, field) for p in payslips), ZERO))

    nssf_employee = total("nssf_employee")
    nssf_employer = total("nssf_employer")
    ahl_employee = total("ahl_employee")
    ahl_employer = total("ahl_employer")
    return StatutorySummaryResponse(
        payroll_run_id=run.id,
        month=run.month,
        year=run.year,
        employee_count=len(payslips),
        paye=total("paye"),
        nssf_employee=nssf_employee,
        nssf_employer=nssf_employer,
        nssf_total=nssf_employee + nssf_employer,
        shif=total("shif_employee"),
        ahl_employee=ahl_employee,
        ahl_employer=ahl_employer,
        ahl_total=ahl_employee + ahl_employer,
        nita=total("nita"),
        helb=total("helb"),
    )


_P9_FIELDS = (
    "gross_pay",
    "nssf_employee",
    "shif_employee",
    "ahl_employee",
    "taxable_pay",
    "income_tax",
    "personal_relief",
    "insurance_relief",
    "paye",
)


async def get_p9(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    year: int,
) -> P9Response:
    """Yearly tax card built from payslips of approved and paid runs."""
    ensure_can_view_employee(auth, employee_id)
    employee = await get_employee_or_404(session, auth.company_id, employee_id)

    result = await session.execute(
        select(Payslip, col(PayrollRun.month))
        .join(PayrollRun, col(PayrollRun.id) == col(Payslip.payroll_run_id))
        .where(
            col(Payslip.company_id) == auth.company_id,
            col(Payslip.employee_id) == employee.id,
            col(PayrollRun.year) == year,
            col(PayrollRun.status).in_(FINAL_RUN_STATUSES),
        )
        .order_by(col(PayrollRun.month))
    )

    months: list[P9MonthRow] = []
    totals = dict.fromkeys(_P9_FIELDS, ZERO)
    for payslip, month in result.all():
        values = {field: getattr(payslip, field) for field in _P9_FIELDS}
        months.append(P9MonthRow(month=month, **values))
        for field, amount in values.items():
            totals[field] += amount

    return P9Response(
        employee_id=employee.id,
        staff_id=employee.staff_id,
        employee_name=employee.full_name,
        kra_pin=employee.kra_pin,
        year=year,
        months=months,
        totals=P9MonthRow(month=None, **{k: to_cents(v) for k, v in totals.items()}),
    )
