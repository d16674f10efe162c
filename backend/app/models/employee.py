# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UUIDBase
from app.models.enums import EmployeeStatus, UserRole


class Department(UUIDBase, TimestampMixin, table=True):
    """An organisational unit. Its line manager approves for members without a direct manager."""

    __tablename__ = "department"
    __table_args__ = (sa.UniqueConstraint("company_id", "name", name="uq_department_company_name"),)

    company_id: uuid.UUID = Field(index=True)
    name: str = Field(max_length=255)
    description: str | None = None
    line_manager_id: uuid.UUID | None = None


class Employee(UUIDBase, TimestampMixin, table=True):
    """An employee record with statutory and banking details used by payroll."""

    __tablename__ = "employee"
    __table_args__ = (
        sa.UniqueConstraint("company_id", "staff_id", name="uq_employee_company_staff_id"),
        sa.Index("ix_employee_company_status", "company_id", "status"),
    )

    company_id: uuid.UUID = Field(index=True)
    staff_id: str = Field(max_length=50)
    first_name: str = Field(max_length=100)
    middle_name: str | None = Field(default=None, max_length=100)
    last_name: str = Field(max_length=100)
    gender: str | None = Field(default=None, max_length=20)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    employment_date: date | None = None
    termination_date: date | None = None
    job_role: str | None = Field(default=None, max_length=255)
    department_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("department.id", ondelete="SET NULL"), nullable=True, index=True),
    )
    manager_id: uuid.UUID | None = Field(default=None, index=True)
    role: str = Field(default=UserRole.EMPLOYEE, max_length=50)
    status: str = Field(default=EmployeeStatus.ACTIVE, max_length=50, sa_column_kwargs={"server_default": "ACTIVE"})
    kra_pin: str | None = Field(default=None, max_length=50)
    nssf_number: str | None = Field(default=None, max_length=50)
    nhif_number: str | None = Field(default=None, max_length=50)
    bank_name: str | None = Field(default=None, max_length=255)
    bank_branch: str | None = Field(default=None, max_length=255)
    account_number: str | None = Field(default=None, max_length=100)
    updated_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)
