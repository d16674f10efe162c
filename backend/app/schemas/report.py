# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel

# ---------------------------------------------------------------------------
# Leave
# ---------------------------------------------------------------------------


class LeaveTypeUsage(BaseModel):
    """Approved leave taken against one leave type."""

    leave_type_id: uuid.UUID
    leave_type_name: str
    approved_requests: int
    approved_days: Decimal


class LowBalanceEntry(BaseModel):
    """An employee whose remaining days for a leave type fall under the threshold."""

    employee_id: uuid.UUID
    staff_id: str
    employee_name: str
    leave_type_id: uuid.UUID
    leave_type_name: str
    entitled_days: Decimal
    available_days: Decimal


class LeaveReportResponse(BaseModel):
    year: int
    total_requests: int
    requests_by_status: dict[str, int]
    usage_by_type: list[LeaveTypeUsage]
    low_balance_threshold: Decimal
    low_balances: list[LowBalanceEntry]


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------


class DepartmentHeadcount(BaseModel):
    """Employees in one department. ``department_id`` is None for unassigned staff."""

    department_id: uuid.UUID | None
    department_name: str
    headcount: int


class EmployeeReportResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_department: list[DepartmentHeadcount]
