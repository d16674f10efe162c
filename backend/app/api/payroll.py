# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response

from app.api.deps import AuthDep, FinanceDep, PayrollDep, validate_company_scope
from app.db import SessionDep
from app.schemas.payroll import (
    CreatePayrollRunRequest,
    CreateRecurringDeductionRequest,
    CreateSalaryStructureRequest,
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
    ReplaceRunDeductionsRequest,
    RunDeductionListResponse,
    SalaryStructureListResponse,
    SalaryStructureResponse,
    StatutorySummaryResponse,
    UpdateRecurringDeductionRequest,
)
from app.services import payroll as payroll_service

payroll_router = APIRouter(
    prefix="/companies/{company_id}/payroll",
    tags=["payroll"],
    dependencies=[Depends(validate_company_scope)],
)

employee_pay_router = APIRouter(
    prefix="/companies/{company_id}/employees/{employee_id}",
    tags=["payroll"],
    dependencies=[Depends(validate_company_scope)],
)


@payroll_router.post("/preview", response_model=PayrollPreviewResponse)
async def preview_payroll(
    payload: PayrollInput,
    auth: AuthDep,
) -> PayrollPreviewResponse:
    """Run the statutory calculation on arbitrary inputs without saving anything."""
    return payroll_service.preview_payroll(payload)


# ---------------------------------------------------------------------------
# Salary structures and deductions
# ---------------------------------------------------------------------------


@employee_pay_router.post(
    "/salary-structures",
    response_model=SalaryStructureResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_salary_structure(
    employee_id: uuid.UUID,
    payload: CreateSalaryStructureRequest,
    session: SessionDep,
    auth: PayrollDep,
) -> SalaryStructureResponse:
    """Add an effective-dated salary structure (HR or finance)."""
    return await payroll_service.create_salary_structure(session, auth, employee_id, payload)


@employee_pay_router.get("/salary-structures", response_model=SalaryStructureListResponse)
async def list_salary_structures(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> SalaryStructureListResponse:
    return await payroll_service.list_salary_structures(session, auth, employee_id)


@employee_pay_router.post(
    "/deductions",
    response_model=RecurringDeductionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_recurring_deduction(
    employee_id: uuid.UUID,
    payload: CreateRecurringDeductionRequest,
    session: SessionDep,
    auth: PayrollDep,
) -> RecurringDeductionResponse:
    return await payroll_service.create_recurring_deduction(session, auth, employee_id, payload)


@employee_pay_router.get("/deductions", response_model=RecurringDeductionListResponse)
async def list_recurring_deductions(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    include_inactive: bool = Query(default=False),
) -> RecurringDeductionListResponse:
    return await payroll_service.list_recurring_deductions(session, auth, employee_id, include_inactive)


@payroll_router.patch("/deductions/{deduction_id}", response_model=RecurringDeductionResponse)
async def update_recurring_deduction(
    deduction_id: uuid.UUID,
    payload: UpdateRecurringDeductionRequest,
    session: SessionDep,
    auth: PayrollDep,
) -> RecurringDeductionResponse:
    return await payroll_service.update_recurring_deduction(session, auth, deduction_id, payload)


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


@payroll_router.post("/runs", response_model=PayrollRunResponse, status_code=status.HTTP_201_CREATED)
async def create_payroll_run(
    payload: CreatePayrollRunRequest,
    session: SessionDep,
    auth: PayrollDep,
) -> PayrollRunResponse:
    """Create a draft payroll run for a month (HR or finance)."""
    return await payroll_service.create_payroll_run(session, auth, payload)


@payroll_router.get("/runs", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: PayrollDep,
    year: int | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
) -> PayrollRunListResponse:
    return await payroll_service.list_payroll_runs(session, company_id, year, status_filter)


@payroll_router.get("/runs/{run_id}", response_model=PayrollRunResponse)
async def get_payroll_run(
    company_id: uuid.UUID,
    run_id: uuid.UUID,
    session: SessionDep,
    auth: PayrollDep,
) -> PayrollRunResponse:
    return await payroll_service.get_payroll_run(session, company_id, run_id)


@payroll_router.get("/runs/{run_id}/deductions", response_model=RunDeductionListResponse)
async def list_run_deductions(
    company_id: uuid.UUID,
    run_id: uuid.UUID,
    session: SessionDep,
    auth: PayrollDep,
) -> RunDeductionListResponse:
    return await payroll_service.list_run_deductions(session, company_id, run_id)


@payroll_router.put("/runs/{run_id}/deductions", response_model=RunDeductionListResponse)
async def replace_run_deductions(
    run_id: uuid.UUID,
    payload: ReplaceRunDeductionsRequest,
    session: SessionDep,
    auth: PayrollDep,
) -> RunDeductionListResponse:
    """Replace the run's one-off deductions. Reprocess to apply them."""
    return await payroll_service.replace_run_deductions(session, auth, run_id, payload)


@payroll_router.post("/runs/{run_id}/process", response_model=ProcessPayrollResponse)
async def process_payroll_run(
    run_id: uuid.UUID,
    session: SessionDep,
    auth: PayrollDep,
) -> ProcessPayrollResponse:
    """Compute payslips for every active employee."""
    return await payroll_service.process_payroll_run(session, auth, run_id)


@payroll_router.post("/runs/{run_id}/submit", response_model=PayrollRunResponse)
async def submit_payroll_run(
    run_id: uuid.UUID,
    session: SessionDep,
    auth: PayrollDep,
) -> PayrollRunResponse:
    """Send a processed run for approval."""
    return await payroll_service.submit_payroll_run(session, auth, run_id)


@payroll_router.post("/runs/{run_id}/mark-paid", response_model=PayrollRunResponse)
async def mark_payroll_paid(
    run_id: uuid.UUID,
    session: SessionDep,
    auth: FinanceDep,
) -> PayrollRunResponse:
    """Record payment of an approved run (finance only)."""
    return await payroll_service.mark_payroll_paid(session, auth, run_id)


@payroll_router.get("/runs/{run_id}/payslips", response_model=PayslipListResponse)
async def list_run_payslips(
    company_id: uuid.UUID,
    run_id: uuid.UUID,
    session: SessionDep,
    auth: PayrollDep,
) -> PayslipListResponse:
    return await payroll_service.list_run_payslips(session, company_id, run_id)


@payroll_router.get("/runs/{run_id}/export")
async def export_payroll_run(
    company_id: uuid.UUID,
    run_id: uuid.UUID,
    session: SessionDep,
    auth: PayrollDep,
) -> Response:
    """Download the run's payslips as CSV."""
    content = await payroll_service.export_run_csv(session, company_id, run_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="payroll-{run_id}.csv"'},
    )


@payroll_router.get("/runs/{run_id}/statutory-summary", response_model=StatutorySummaryResponse)
async def get_statutory_summary(
    company_id: uuid.UUID,
    run_id: uuid.UUID,
    session: SessionDep,
    auth: PayrollDep,
) -> StatutorySummaryResponse:
    return await payroll_service.get_statutory_summary(session, company_id, run_id)


# ---------------------------------------------------------------------------
# Payslips
# ---------------------------------------------------------------------------


@payroll_router.get("/payslips/{payslip_id}", response_model=PayslipResponse)
async def get_payslip(
    payslip_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> PayslipResponse:
    return await payroll_service.get_payslip(session, auth, payslip_id)


@employee_pay_router.get("/payslips", response_model=PayslipListResponse)
async def list_employee_payslips(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None),
) -> PayslipListResponse:
    return await payroll_service.list_employee_payslips(session, auth, employee_id, year)


@employee_pay_router.get("/p9", response_model=P9Response)
async def get_p9(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> P9Response:
    """Yearly P9 tax card, defaulting to the current year."""
    return await payroll_service.get_p9(session, auth, employee_id, year or date.today().year)
