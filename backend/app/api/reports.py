# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from app.api.deps import HRDep, validate_company_scope
from app.db import SessionDep
from app.models.enums import EmployeeStatus
from app.schemas.report import EmployeeReportResponse, LeaveReportResponse
from app.services import report as report_service

reports_router = APIRouter(
    prefix="/companies/{company_id}/reports",
    tags=["reports"],
    dependencies=[Depends(validate_company_scope)],
)


@reports_router.get("/leave", response_model=LeaveReportResponse)
async def get_leave_report(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: HRDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
    low_balance_threshold: Decimal = Query(default=Decimal("5"), ge=0),
) -> LeaveReportResponse:
    """Leave requests by status, approved days by type and low balances (HR only)."""
    return await report_service.get_leave_report(
        session, company_id, year or date.today().year, low_balance_threshold
    )


@reports_router.get("/employees", response_model=EmployeeReportResponse)
async def get_employee_report(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: HRDep,
    status_filter: EmployeeStatus | None = Query(default=None, alias="status"),
) -> EmployeeReportResponse:
    """Headcount by status and by department (HR only)."""
    return await report_service.get_employee_report(
        session, company_id, status_filter.value if status_filter is not None else None
    )
