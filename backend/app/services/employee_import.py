"""Bulk employee import from the HR spreadsheet CSV export."""

from __future__ import annotations

import csv
import io
import logging
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from app.exceptions import AppError
from app.models.employee import Department, Employee
from app.models.enums import AuditAction, AuditEntityType
from app.models.payroll import SalaryStructure
from app.schemas.employee import EmployeeImportResponse, ImportRowError
from app.services.audit import write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("Staff ID", "First Name", "Last Name", "Employment Date")

# CSV header -> Employee attribute for optional text columns.
_TEXT_COLUMNS = {
    "Middle Name": "middle_name",
    "Gender": "gender",
    "Job Role": "job_role",
    "NSSF Number": "nssf_number",
    "NHIF Number": "nhif_number",
    "KRA PIN": "kra_pin",
    "Bank Name": "bank_name",
    "Account Number": "account_number",
}

# CSV header -> SalaryStructure attribute.
_SALARY_COLUMNS = {
    "Basic Salary": "basic_salary",
    "Car Allowance": "car_allowance",
    "Meal Allowance": "meal_allowance",
    "Telephone Allowance": "telephone_allowance",
}

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%m/%d/%Y")


class RowError(ValueError):
    """A problem with a single CSV row. The row is skipped."""


def parse_date(value: str) -> date:
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise RowError(f"Invalid date: {value!r}")


def parse_amount(value: str, column: str) -> Decimal:
    """Parse a money cell such as ``"85,000.00"``. Blank cells are zero."""
    cleaned = value.replace(",", "").replace("KES", "").strip()
    if not cleaned:
        return Decimal("0")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise RowError(f"Invalid amount in {column}: {value!r}") from None
    if amount < 0:
        raise RowError(f"Negative amount in {column}")
    return amount


def _cell(row: dict[str, str | None], column: str) -> str:
    return (row.get(column) or "").strip()


async def _load_departments(session: AsyncSession, company_id: uuid.UUID) -> dict[str, Department]:
    result = await session.execute(select(Department).where(col(Department.company_id) == company_id))
    return {d.name.lower(): d for d in result.scalars().all()}


async def _load_staff_ids(session: AsyncSession, company_id: uuid.UUID) -> set[str]:
    result = await session.execute(select(col(Employee.staff_id)).where(col(Employee.company_id) == company_id))
    return {row[0] for row in result.all()}


async def import_employees_csv(
    session: AsyncSession,
    auth: AuthContext,
    content: str,
) -> EmployeeImportResponse:
    """Create employees from CSV text.

    Departments named in the file are created on demand. Salary columns,
    when any is non-zero, create an initial salary structure effective on
    the employment date. Invalid rows are reported and skipped; valid rows
    are created in a single transaction with one IMPORT audit entry.
    """
    reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")))
    headers = [h.strip() for h in (reader.fieldnames or [])]
    missing = [c for c in REQUIRED_COLUMNS if c not in headers]
    if missing:
        raise AppError(f"Missing required columns: {', '.join(missing)}", status_code=400)
    reader.fieldnames = headers

    departments = await _load_departments(session, auth.company_id)
    known_staff_ids = await _load_staff_ids(session, auth.company_id)

    errors: list[ImportRowError] = []
    created: list[Employee] = []
    created_department_ids: list[uuid.UUID] = []

    # Row 1 is the header.
    for row_number, row in enumerate(reader, start=2):
        try:
            for column in REQUIRED_COLUMNS:
                if not _cell(row, column):
                    raise RowError(f"Missing {column}")

            staff_id = _cell(row, "Staff ID")
            if staff_id in known_staff_ids:
                raise RowError(f"Duplicate Staff ID {staff_id}")

            employment_date = parse_date(_cell(row, "Employment Date"))
            salary = {attr: parse_amount(_cell(row, column), column) for column, attr in _SALARY_COLUMNS.items()}
        except RowError as exc:
            errors.append(ImportRowError(row=row_number, message=str(exc)))
            continue

        department_id = None
        department_name = _cell(row, "Department")
        if department_name:
            department = departments.get(department_name.lower())
            if department is None:
                department = Department(company_id=auth.company_id, name=department_name)
                session.add(department)
                await session.flush()
                departments[department_name.lower()] = department
                created_department_ids.append(department.id)
            department_id = department.id

        employee = Employee(
            company_id=auth.company_id,
            staff_id=staff_id,
            first_name=_cell(row, "First Name"),
            last_name=_cell(row, "Last Name"),
            employment_date=employment_date,
            department_id=department_id,
            **{attr: _cell(row, column) or None for column, attr in _TEXT_COLUMNS.items()},
        )
        session.add(employee)
        await session.flush()

        if any(amount > 0 for amount in salary.values()):
            session.add(
                SalaryStructure(
                    company_id=auth.company_id,
                    employee_id=employee.id,
                    effective_date=employment_date,
                    created_by=auth.user_id,
                    **salary,
                )
            )

        known_staff_ids.add(staff_id)
        created.append(employee)

    employee_ids = [e.id for e in created]
    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.EMPLOYEE,
        entity_id=uuid.uuid4(),
        action=AuditAction.IMPORT,
        after_json={
            "created": len(created),
            "skipped": len(errors),
            "employee_ids": [str(i) for i in employee_ids],
            "department_ids": [str(i) for i in created_department_ids],
            "errors": [e.model_dump() for e in errors],
        },
    )
    await session.commit()

    logger.info(
        "Imported employees company=%s created=%d skipped=%d", auth.company_id, len(created), len(errors)
    )
    return EmployeeImportResponse(
        created=len(created),
        skipped=len(errors),
        errors=errors,
        employee_ids=employee_ids,
    )
