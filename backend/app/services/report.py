"""Company reports: leave usage and headcount."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from app.models.employee import Department, Employee
from app.models.enums import EntityStatus
from app.models.leave import LeaveBalance, LeaveRequest, LeaveType
from app.schemas.report import (
    DepartmentHeadcount,
    EmployeeReportResponse,
    LeaveReportResponse,
    LeaveTypeUsage,
    LowBalanceEntry,
)

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

UNASSIGNED_DEPARTMENT = "Unassigned"


async def get_leave_report(
    session: AsyncSession,
    company_id: uuid.UUID,
    year: int,
    low_balance_threshold: Decimal,
) -> LeaveReportResponse:
    """Leave requests starting in ``year`` and the balances running low for that year.

    Only balances that exist are considered. An employee who has never
    requested a leave type still has the full entitlement for it.
    """
    in_year = [
        col(LeaveRequest.company_id) == company_id,
        col(LeaveRequest.start_date) >= date(year, 1, 1),
        col(LeaveRequest.start_date) <= date(year, 12, 31),
    ]
    status_result = await session.execute(
        select(col(LeaveRequest.status), func.count()).where(*in_year).group_by(col(LeaveRequest.status))
    )
    by_status = {status: count for status, count in status_result.all()}

    approved_result = await session.execute(
        select(LeaveRequest, LeaveType)
        .join(LeaveType, col(LeaveType.id) == col(LeaveRequest.leave_type_id))
        .where(*in_year, col(LeaveRequest.status) == EntityStatus.APPROVED.value)
    )
    usage: dict[uuid.UUID, LeaveTypeUsage] = {}
    for request, leave_type in approved_result.all():
        entry = usage.setdefault(
            leave_type.id,
            LeaveTypeUsage(
                leave_type_id=leave_type.id,
                leave_type_name=leave_type.name,
                approved_requests=0,
                approved_days=Decimal("0"),
            ),
        )
        entry.approved_requests += 1
        entry.approved_days += request.days_requested

    balance_result = await session.execute(
        select(LeaveBalance, Employee, LeaveType)
        .join(Employee, col(Employee.id) == col(LeaveBalance.employee_id))
        .join(LeaveType, col(LeaveType.id) == col(LeaveBalance.leave_type_id))
        .where(col(LeaveBalance.company_id) == company_id, col(LeaveBalance.year) == year)
        .order_by(col(Employee.staff_id), col(LeaveType.name))
    )
    low_balances = [
        LowBalanceEntry(
            employee_id=employee.id,
            staff_id=employee.staff_id,
            employee_name=employee.full_name,
            leave_type_id=leave_type.id,
            leave_type_name=leave_type.name,
            entitled_days=balance.entitled_days,
            available_days=balance.available_days,
        )
        for balance, employee, leave_type in balance_result.all()
        if balance.available_days < low_balance_threshold
    ]

    return LeaveReportResponse(
        year=year,
        total_requests=sum(by_status.values()),
        requests_by_status=by_status,
        usage_by_type=sorted(usage.values(), key=lambda u: u.leave_type_name),
        low_balance_threshold=low_balance_threshold,
        low_balances=low_balances,
    )


async def get_employee_report(
    session: AsyncSession,
    company_id: uuid.UUID,
    status: str | None = None,
) -> EmployeeReportResponse:
    """Headcount by status, and by department for employees matching ``status``."""
    status_result = await session.execute(
        select(col(Employee.status), func.count())
        .where(col(Employee.company_id) == company_id)
        .group_by(col(Employee.status))
    )
    by_status = {row_status: count for row_status, count in status_result.all()}

    department_query = select(col(Employee.department_id), func.count()).where(col(Employee.company_id) == company_id)
    if status is not None:
        department_query = department_query.where(col(Employee.status) == status)
    department_result = await session.execute(department_query.group_by(col(Employee.department_id)))
    counts = defaultdict(int, {department_id: count for department_id, count in department_result.all()})

    names_result = await session.execute(
        select(Department).where(col(Department.company_id) == company_id).order_by(col(Department.name))
    )
    by_department = [
        DepartmentHeadcount(
            department_id=department.id,
            department_name=department.name,
            headcount=counts[department.id],
        )
        for department in names_result.scalars().all()
    ]
    if counts[None]:
        by_department.append(
            DepartmentHeadcount(department_id=None, department_name=UNASSIGNED_DEPARTMENT, headcount=counts[None])
        )

    return EmployeeReportResponse(
        total=sum(by_status.values()),
        by_status=by_status,
        by_department=by_department,
    )
