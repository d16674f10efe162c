# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import ApprovableMixin, TimestampMixin, UUIDBase, money_field
from app.models.enums import DeductionType


class SalaryStructure(UUIDBase, TimestampMixin, table=True):
    """Effective-dated pay components for an employee.

    The structure with the latest ``effective_date`` on or before the payroll
    month end applies. ``other_allowances_json`` maps label to amount string.
    """

    __tablename__ = "salary_structure"
    __table_args__ = (sa.Index("ix_salary_employee_effective", "employee_id", "effective_date"),)

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("employee.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    basic_salary: Decimal = money_field()
    car_allowance: Decimal = money_field()
    meal_allowance: Decimal = money_field()
    telephone_allowance: Decimal = money_field()
    housing_allowance: Decimal = money_field()
    other_allowances_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    insurance_premium: Decimal = money_field()
    effective_date: date
    created_by: uuid.UUID | None = None


class RecurringDeduction(UUIDBase, TimestampMixin, table=True):
    """A deduction applied to every payroll run inside its date window."""

    __tablename__ = "recurring_deduction"

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("employee.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    deduction_type: str = Field(default=DeductionType.OTHER, max_length=20)
    label: str | None = Field(default=None, max_length=255)
    amount: Decimal = money_field()
    start_date: date
    end_date: date | None = None
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})


class PayrollRun(UUIDBase, TimestampMixin, ApprovableMixin, table=True):
    """A monthly payroll run for a company and its aggregated totals."""

    __tablename__ = "payroll_run"
    __table_args__ = (sa.UniqueConstraint("company_id", "year", "month", name="uq_payroll_run_period"),)

    company_id: uuid.UUID = Field(index=True)
    month: int
    year: int
    processed_by: uuid.UUID | None = None
    processed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    paid_by: uuid.UUID | None = None
    paid_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    employee_count: int = 0
    total_gross: Decimal = money_field()
    total_deductions: Decimal = money_field()
    total_paye: Decimal = money_field()
    total_net: Decimal = money_field()
    total_cost_to_company: Decimal = money_field()
    created_by: uuid.UUID


class PayrollRunDeduction(UUIDBase, TimestampMixin, table=True):
    """A one-off deduction applied only to a single payroll run."""

    __tablename__ = "payroll_run_deduction"

    payroll_run_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("payroll_run.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    employee_id: uuid.UUID = Field(index=True)
    deduction_type: str = Field(default=DeductionType.OTHER, max_length=20)
    label: str | None = Field(default=None, max_length=255)
    amount: Decimal = money_field()


class Payslip(UUIDBase, TimestampMixin, table=True):
    """Computed pay for one employee in one run. JSON maps hold amounts as strings."""

    __tablename__ = "payslip"
    __table_args__ = (sa.UniqueConstraint("payroll_run_id", "employee_id", name="uq_payslip_run_employee"),)

    company_id: uuid.UUID = Field(index=True)
    payroll_run_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("payroll_run.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    employee_id: uuid.UUID = Field(index=True)

    basic_salary: Decimal = money_field()
    car_allowance: Decimal = money_field()
    meal_allowance: Decimal = money_field()
    telephone_allowance: Decimal = money_field()
    housing_allowance: Decimal = money_field()
    other_earnings_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    gross_pay: Decimal = money_field()
    calendar_days: int | None = None
    days_worked: int | None = None

    nssf_employee: Decimal = money_field()
    nssf_employer: Decimal = money_field()
    shif_employee: Decimal = money_field()
    ahl_employee: Decimal = money_field()
    ahl_employer: Decimal = money_field()

    taxable_pay: Decimal = money_field()
    income_tax: Decimal = money_field()
    personal_relief: Decimal = money_field()
    insurance_relief: Decimal = money_field()
    paye: Decimal = money_field()

    helb: Decimal = money_field()
    other_deductions_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    total_deductions: Decimal = money_field()
    net_pay: Decimal = money_field()

    nita: Decimal = money_field()
    cost_to_company: Decimal = money_field()
