# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from app.models.enums import EmployeeStatus, UserRole

# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


class CreateDepartmentRequest(BaseModel):
    """Request body for creating a department."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    line_manager_id: uuid.UUID | None = None


class UpdateDepartmentRequest(BaseModel):
    """Partial update of a department. Omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    line_manager_id: uuid.UUID | None = None


class DepartmentResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    description: str | None
    line_manager_id: uuid.UUID | None
    created_at: datetime


class DepartmentListResponse(BaseModel):
    items: list[DepartmentResponse]
    total: int


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------


class CreateEmployeeRequest(BaseModel):
    """Request body for creating an employee."""

    staff_id: str = Field(min_length=1, max_length=50)
    first_name: str = Field(min_length=1, max_length=100)
    middle_name: str | None = Field(default=None, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    gender: str | None = Field(default=None, max_length=20)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    employment_date: date | None = None
    job_role: str | None = Field(default=None, max_length=255)
    department_id: uuid.UUID | None = None
    manager_id: uuid.UUID | None = None
    role: UserRole = UserRole.EMPLOYEE
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    kra_pin: str | None = Field(default=None, max_length=50)
    nssf_number: str | None = Field(default=None, max_length=50)
    nhif_number: str | None = Field(default=None, max_length=50)
    bank_name: str | None = Field(default=None, max_length=255)
    bank_branch: str | None = Field(default=None, max_length=255)
    account_number: str | None = Field(default=None, max_length=100)


class UpdateEmployeeRequest(BaseModel):
    """Partial update of an employee. Only fields present in the body are applied."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    middle_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    gender: str | None = Field(default=None, max_length=20)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    employment_date: date | None = None
    termination_date: date | None = None
    job_role: str | None = Field(default=None, max_length=255)
    department_id: uuid.UUID | None = None
    manager_id: uuid.UUID | None = None
    role: UserRole | None = None
    status: EmployeeStatus | None = None
    kra_pin: str | None = Field(default=None, max_length=50)
    nssf_number: str | None = Field(default=None, max_length=50)
    nhif_number: str | None = Field(default=None, max_length=50)
    bank_name: str | None = Field(default=None, max_length=255)
    bank_branch: str | None = Field(default=None, max_length=255)
    account_number: str | None = Field(default=None, max_length=100)


class EmployeeResponse(BaseModel):
    """Response schema for an employee."""

    id: uuid.UUID
    company_id: uuid.UUID
    staff_id: str
    first_name: str
    middle_name: str | None
    last_name: str
    full_name: str
    gender: str | None
    email: str | None
    phone: str | None
    employment_date: date | None
    termination_date: date | None
    job_role: str | None
    department_id: uuid.UUID | None
    manager_id: uuid.UUID | None
    role: UserRole
    status: EmployeeStatus
    kra_pin: str | None
    nssf_number: str | None
    nhif_number: str | None
    bank_name: str | None
    bank_branch: str | None
    account_number: str | None
    created_at: datetime


class EmployeeListResponse(BaseModel):
    """Paginated list of employees."""

    items: list[EmployeeResponse]
    total: int


# ---------------------------------------------------------------------------
# CSV import
# ---------------------------------------------------------------------------


class ImportRowError(BaseModel):
    row: int
    message: str


class EmployeeImportResponse(BaseModel):
    """Outcome of a CSV import. ``row`` numbers count the header as row 1."""

    created: int
    skipped: int
    errors: list[ImportRowError]
    employee_ids: list[uuid.UUID]
