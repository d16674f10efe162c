# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from app.api.deps import AuthDep, HRDep, validate_company_scope
from app.db import SessionDep
from app.exceptions import AppError
from app.schemas.employee import (
    CreateDepartmentRequest,
    CreateEmployeeRequest,
    DepartmentListResponse,
    DepartmentResponse,
    EmployeeImportResponse,
    EmployeeListResponse,
    EmployeeResponse,
    UpdateDepartmentRequest,
    UpdateEmployeeRequest,
)
from app.services import employee as employee_service
from app.services.employee_import import import_employees_csv

employees_router = APIRouter(
    prefix="/companies/{company_id}/employees",
    tags=["employees"],
    dependencies=[Depends(validate_company_scope)],
)

departments_router = APIRouter(
    prefix="/companies/{company_id}/departments",
    tags=["departments"],
    dependencies=[Depends(validate_company_scope)],
)


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------


@employees_router.post("", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    payload: CreateEmployeeRequest,
    session: SessionDep,
    auth: HRDep,
) -> EmployeeResponse:
    """Create an employee (HR only)."""
    return await employee_service.create_employee(session, auth, payload)


@employees_router.post("/import", response_model=EmployeeImportResponse)
async def import_employees(
    session: SessionDep,
    auth: HRDep,
    file: UploadFile = File(),
) -> EmployeeImportResponse:
    """Bulk-create employees from a CSV upload (HR only)."""
    raw = await file.read()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise AppError("File must be UTF-8 encoded CSV", status_code=400) from None
    return await import_employees_csv(session, auth, content)


@employees_router.get("", response_model=EmployeeListResponse)
async def list_employees(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: HRDep,
    status_filter: str | None = Query(default=None, alias="status"),
    department_id: uuid.UUID | None = Query(default=None),
    search: str | None = Query(default=None, max_length=100),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
) -> EmployeeListResponse:
    """List employees with optional filters (HR only)."""
    return await employee_service.list_employees(
        session, company_id, status_filter, department_id, search, offset, limit
    )


@employees_router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> EmployeeResponse:
    """Get an employee. Employees may read only their own record."""
    return await employee_service.get_employee(session, auth, employee_id)


@employees_router.patch("/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: uuid.UUID,
    payload: UpdateEmployeeRequest,
    session: SessionDep,
    auth: HRDep,
) -> EmployeeResponse:
    """Update an employee (HR only)."""
    return await employee_service.update_employee(session, auth, employee_id, payload)


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


@departments_router.post("", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(
    payload: CreateDepartmentRequest,
    session: SessionDep,
    auth: HRDep,
) -> DepartmentResponse:
    return await employee_service.create_department(session, auth, payload)


@departments_router.get("", response_model=DepartmentListResponse)
async def list_departments(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> DepartmentListResponse:
    return await employee_service.list_departments(session, company_id)


@departments_router.patch("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: uuid.UUID,
    payload: UpdateDepartmentRequest,
    session: SessionDep,
    auth: HRDep,
) -> DepartmentResponse:
    return await employee_service.update_department(session, auth, department_id, payload)


@departments_router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_department(
    department_id: uuid.UUID,
    session: SessionDep,
    auth: HRDep,
) -> None:
    """Delete a department (HR only). Members are left without a department."""
    await employee_service.delete_department(session, auth, department_id)
