# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select
from sqlmodel import col

from app.exceptions import AppError
from app.models.employee import Department, Employee
from app.models.enums import AuditAction, AuditEntityType, EmployeeStatus, UserRole
from app.schemas.employee import (
    DepartmentListResponse,
    DepartmentResponse,
    EmployeeListResponse,
    EmployeeResponse,
)
from app.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.employee import (
        CreateDepartmentRequest,
        CreateEmployeeRequest,
        UpdateDepartmentRequest,
        UpdateEmployeeRequest,
    )

_NON_NULL_EMPLOYEE_FIELDS = frozenset({"first_name", "last_name", "role", "status"})


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_department_response(department: Department) -> DepartmentResponse:
    return DepartmentResponse(
        id=department.id,
        company_id=department.company_id,
        name=department.name,
        description=department.description,
        line_manager_id=department.line_manager_id,
        created_at=department.created_at,
    )


def _build_employee_response(employee: Employee) -> EmployeeResponse:
    """Map an employee model to its response schema."""
    return EmployeeResponse(
        id=employee.id,
        company_id=employee.company_id,
        staff_id=employee.staff_id,
        first_name=employee.first_name,
        middle_name=employee.middle_name,
        last_name=employee.last_name,
        full_name=employee.full_name,
        gender=employee.gender,
        email=employee.email,
        phone=employee.phone,
        employment_date=employee.employment_date,
        termination_date=employee.termination_date,
        job_role=employee.job_role,
        department_id=employee.department_id,
        manager_id=employee.manager_id,
        role=UserRole(employee.role),
        status=EmployeeStatus(employee.status),
        kra_pin=employee.kra_pin,
        nssf_number=employee.nssf_number,
        nhif_number=employee.nhif_number,
        bank_name=employee.bank_name,
        bank_branch=employee.bank_branch,
        account_number=employee.account_number,
        created_at=employee.created_at,
    )


async def get_employee_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
) -> Employee:
    """Fetch an employee scoped to company. Raises 404 if not found."""
    result = await session.execute(
        select(Employee).where(
            col(Employee.id) == employee_id,
            col(Employee.company_id) == company_id,
        )
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise AppError("Employee not found", status_code=404)
    return employee


async def _get_department_or_404(
    session: AsyncSession,
    company_id: uuid.UUID,
    department_id: uuid.UUID,
) -> Department:
    result = await session.execute(
        select(Department).where(
            col(Department.id) == department_id,
            col(Department.company_id) == company_id,
        )
    )
    department = result.scalar_one_or_none()
    if department is None:
        raise AppError("Department not found", status_code=404)
    return department


async def _ensure_staff_id_available(session: AsyncSession, company_id: uuid.UUID, staff_id: str) -> None:
    result = await session.execute(
        select(col(Employee.id)).where(
            col(Employee.company_id) == company_id,
            col(Employee.staff_id) == staff_id,
        )
    )
    if result.first() is not None:
        raise AppError(f"Staff ID {staff_id} already exists", status_code=409)


async def _ensure_department_name_available(
    session: AsyncSession,
    company_id: uuid.UUID,
    name: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    query = select(col(Department.id)).where(
        col(Department.company_id) == company_id,
        func.lower(col(Department.name)) == name.lower(),
    )
    if exclude_id is not None:
        query = query.where(col(Department.id) != exclude_id)
    result = await session.execute(query)
    if result.first() is not None:
        raise AppError("Department with this name already exists", status_code=409)


def ensure_can_view_employee(auth: AuthContext, employee_id: uuid.UUID) -> None:
    """Employees may only read their own records; staff roles read everyone."""
    if auth.role != UserRole.EMPLOYEE:
        return
    if auth.employee_id != employee_id:
        raise AppError("Not authorized to view this employee", status_code=403)


async def resolve_line_manager_id(session: AsyncSession, employee: Employee) -> uuid.UUID | None:
    """Return the employee's line manager.

    The direct ``manager_id`` wins; otherwise the department's line manager.
    An employee is never their own line manager.
    """
    if employee.manager_id is not None and employee.manager_id != employee.id:
        return employee.manager_id
    if employee.department_id is None:
        return None
    result = await session.execute(
        select(col(Department.line_manager_id)).where(col(Department.id) == employee.department_id)
    )
    line_manager_id = result.scalar_one_or_none()
    if line_manager_id is None or line_manager_id == employee.id:
        return None
    return line_manager_id


async def is_line_manager_of(session: AsyncSession, auth: AuthContext, employee: Employee) -> bool:
    """True when the caller's employee record is ``employee``'s resolved line manager."""
    if auth.employee_id is None:
        return False
    return await resolve_line_manager_id(session, employee) == auth.employee_id


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------


async def create_department(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateDepartmentRequest,
) -> DepartmentResponse:
    """Create a department. Names are unique per company (case-insensitive)."""
    await _ensure_department_name_available(session, auth.company_id, payload.name)
    if payload.line_manager_id is not None:
        await get_employee_or_404(session, auth.company_id, payload.line_manager_id)

    department = Department(
        company_id=auth.company_id,
        name=payload.name,
        description=payload.description,
        line_manager_id=payload.line_manager_id,
    )
    session.add(department)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.DEPARTMENT,
        entity_id=department.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(department),
    )

    await session.commit()
    await session.refresh(department)
    return _build_department_response(department)


async def list_departments(session: AsyncSession, company_id: uuid.UUID) -> DepartmentListResponse:
    result = await session.execute(
        select(Department).where(col(Department.company_id) == company_id).order_by(col(Department.name))
    )
    departments = list(result.scalars().all())
    return DepartmentListResponse(
        items=[_build_department_response(d) for d in departments],
        total=len(departments),
    )


async def update_department(
    session: AsyncSession,
    auth: AuthContext,
    department_id: uuid.UUID,
    payload: UpdateDepartmentRequest,
) -> DepartmentResponse:
    department = await _get_department_or_404(session, auth.company_id, department_id)
    before = model_to_audit_dict(department)

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("name") is not None:
        await _ensure_department_name_available(session, auth.company_id, changes["name"], exclude_id=department.id)
    if changes.get("line_manager_id") is not None:
        await get_employee_or_404(session, auth.company_id, changes["line_manager_id"])

    for key, value in changes.items():
        if key == "name" and value is None:
            continue
        setattr(department, key, value)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.DEPARTMENT,
        entity_id=department.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(department),
    )

    await session.commit()
    await session.refresh(department)
    return _build_department_response(department)


async def delete_department(
    session: AsyncSession,
    auth: AuthContext,
    department_id: uuid.UUID,
) -> None:
    """Delete a department. Members keep their records with no department."""
    department = await _get_department_or_404(session, auth.company_id, department_id)
    before = model_to_audit_dict(department)

    members = await session.execute(select(Employee).where(col(Employee.department_id) == department.id))
    for member in members.scalars().all():
        member.department_id = None

    await session.delete(department)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.DEPARTMENT,
        entity_id=department_id,
        action=AuditAction.DELETE,
        before_json=before,
    )

    await session.commit()


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------


async def create_employee(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateEmployeeRequest,
) -> EmployeeResponse:
    """Create an employee. ``staff_id`` must be unique within the company."""
    await _ensure_staff_id_available(session, auth.company_id, payload.staff_id)
    if payload.department_id is not None:
        await _get_department_or_404(session, auth.company_id, payload.department_id)
    if payload.manager_id is not None:
        await get_employee_or_404(session, auth.company_id, payload.manager_id)

    employee = Employee(company_id=auth.company_id, **payload.model_dump())
    session.add(employee)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.EMPLOYEE,
        entity_id=employee.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(employee),
    )

    await session.commit()
    await session.refresh(employee)
    return _build_employee_response(employee)


async def update_employee(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    payload: UpdateEmployeeRequest,
) -> EmployeeResponse:
    """Apply a partial update to an employee."""
    employee = await get_employee_or_404(session, auth.company_id, employee_id)
    before = model_to_audit_dict(employee)

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("manager_id") is not None:
        if changes["manager_id"] == employee.id:
            raise AppError("An employee cannot be their own manager", status_code=400)
        await get_employee_or_404(session, auth.company_id, changes["manager_id"])
    if changes.get("department_id") is not None:
        await _get_department_or_404(session, auth.company_id, changes["department_id"])

    for key, value in changes.items():
        if value is None and key in _NON_NULL_EMPLOYEE_FIELDS:
            continue
        setattr(employee, key, value)
    employee.updated_at = datetime.now(UTC)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.EMPLOYEE,
        entity_id=employee.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(employee),
    )

    await session.commit()
    await session.refresh(employee)
    return _build_employee_response(employee)


async def get_employee(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
) -> EmployeeResponse:
    ensure_can_view_employee(auth, employee_id)
    employee = await get_employee_or_404(session, auth.company_id, employee_id)
    return _build_employee_response(employee)


async def list_employees(
    session: AsyncSession,
    company_id: uuid.UUID,
    status_filter: str | None = None,
    department_id: uuid.UUID | None = None,
    search: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> EmployeeListResponse:
    """List employees with optional filters, ordered by last then first name."""
    base_filters = [col(Employee.company_id) == company_id]

    if status_filter is not None:
        base_filters.append(col(Employee.status) == status_filter)
    if department_id is not None:
        base_filters.append(col(Employee.department_id) == department_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        base_filters.append(
            or_(
                func.lower(col(Employee.first_name)).like(pattern),
                func.lower(col(Employee.last_name)).like(pattern),
                func.lower(col(Employee.staff_id)).like(pattern),
            )
        )

    count_result = await session.execute(select(func.count()).select_from(Employee).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(Employee)
        .where(*base_filters)
        .order_by(col(Employee.last_name), col(Employee.first_name))
        .offset(offset)
        .limit(limit)
    )
    employees = list(result.scalars().all())

    return EmployeeListResponse(
        items=[_build_employee_response(e) for e in employees],
        total=total,
    )
