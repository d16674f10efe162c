# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.enums import DeductionType, EntityStatus

# ---------------------------------------------------------------------------
# Calculation
# ---------------------------------------------------------------------------


class PayrollInput(BaseModel):
    """Inputs to the statutory pay calculation for one employee and month."""

    basic_salary: Decimal = Field(default=Decimal("0"), ge=0)
    car_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    meal_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    telephone_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    housing_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    other_allowances: dict[str, Decimal] = Field(default_factory=dict)
    other_deductions: dict[str, Decimal] = Field(default_factory=dict)
    helb: Decimal = Field(default=Decimal("0"), ge=0)
    insurance_premium: Decimal = Field(default=Decimal("0"), ge=0)
    calendar_days: int | None = Field(default=None, ge=0, le=31)
    days_worked: int | None = Field(default=None, ge=0, le=31)


class TaxBand(BaseModel):
    """Portion of taxable pay falling in one PAYE band and the tax on it."""

    lower: Decimal
    upper: Decimal | None
    rate: Decimal
    amount: Decimal
    tax: Decimal


class PayrollCalculation(BaseModel):
    """Full result of the statutory pay calculation. All amounts in cents precision."""

    basic_salary: Decimal
    car_allowance: Decimal
    meal_allowance: Decimal
    telephone_allowance: Decimal
    housing_allowance: Decimal
    other_earnings: dict[str, Decimal]
    gross_pay: Decimal

    nssf_employee: Decimal
    nssf_employer: Decimal
    shif_employee: Decimal
    ahl_employee: Decimal
    ahl_employer: Decimal

    taxable_pay: Decimal
    income_tax: Decimal
    personal_relief: Decimal
    insurance_relief: Decimal
    paye: Decimal

    helb: Decimal
    other_deductions: dict[str, Decimal]
    total_deductions: Decimal
    net_pay: Decimal

    nita: Decimal
    cost_to_company: Decimal


class PayrollPreviewResponse(BaseModel):
    calculation: PayrollCalculation
    tax_bands: list[TaxBand]


# ---------------------------------------------------------------------------
# Salary structures and deductions
# ---------------------------------------------------------------------------


class CreateSalaryStructureRequest(BaseModel):
    """Request body for a new effective-dated salary structure."""

    basic_salary: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    car_allowance: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    meal_allowance: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    telephone_allowance: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    housing_allowance: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    other_allowances: dict[str, Decimal] = Field(default_factory=dict)
    insurance_premium: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    effective_date: date


class SalaryStructureResponse(BaseModel):
    id: uuid.UUID
    employee_id: uuid.UUID
    basic_salary: Decimal
    car_allowance: Decimal
    meal_allowance: Decimal
    telephone_allowance: Decimal
    housing_allowance: Decimal
    other_allowances: dict[str, Decimal]
    insurance_premium: Decimal
    effective_date: date
    created_at: datetime


class SalaryStructureListResponse(BaseModel):
    items: list[SalaryStructureResponse]
    total: int


class CreateRecurringDeductionRequest(BaseModel):
    deduction_type: DeductionType
    label: str | None = Field(default=None, max_length=255)
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    start_date: date
    end_date: date | None = None


class UpdateRecurringDeductionRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0, max_digits=14, decimal_places=2)
    end_date: date | None = None
    is_active: bool | None = None


class RecurringDeductionResponse(BaseModel):
    id: uuid.UUID
    employee_id: uuid.UUID
    deduction_type: DeductionType
    label: str | None
    amount: Decimal
    start_date: date
    end_date: date | None
    is_active: bool


class RecurringDeductionListResponse(BaseModel):
    items: list[RecurringDeductionResponse]
    total: int


class RunDeductionItem(BaseModel):
    """A one-off deduction for a single employee in a run."""

    employee_id: uuid.UUID
    deduction_type: DeductionType
    label: str | None = Field(default=None, max_length=255)
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)


class ReplaceRunDeductionsRequest(BaseModel):
    items: list[RunDeductionItem]


class RunDeductionResponse(BaseModel):
    id: uuid.UUID
    payroll_run_id: uuid.UUID
    employee_id: uuid.UUID
    deduction_type: DeductionType
    label: str | None
    amount: Decimal


class RunDeductionListResponse(BaseModel):
    items: list[RunDeductionResponse]
    total: int


# ---------------------------------------------------------------------------
# Runs and payslips
# ---------------------------------------------------------------------------


class CreatePayrollRunRequest(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)


class PayrollRunResponse(BaseModel):
    """Response schema for a payroll run."""

    id: uuid.UUID
    company_id: uuid.UUID
    month: int
    year: int
    status: EntityStatus
    processed_by: uuid.UUID | None
    processed_at: datetime | None
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    paid_by: uuid.UUID | None
    paid_at: datetime | None
    rejection_reason: str | None
    employee_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_paye: Decimal
    total_net: Decimal
    total_cost_to_company: Decimal
    created_at: datetime


class PayrollRunListResponse(BaseModel):
    items: list[PayrollRunResponse]
    total: int


class PayslipResponse(PayrollCalculation):
    """A stored payslip: the calculation plus run, employee and days."""

    id: uuid.UUID
    company_id: uuid.UUID
    payroll_run_id: uuid.UUID
    employee_id: uuid.UUID
    calendar_days: int | None
    days_worked: int | None
    created_at: datetime


class PayslipListResponse(BaseModel):
    items: list[PayslipResponse]
    total: int


class ProcessPayrollResponse(BaseModel):
    """Run after processing plus employees that were skipped."""

    run: PayrollRunResponse
    payslip_count: int
    skipped_employee_ids: list[uuid.UUID]


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class StatutorySummaryResponse(BaseModel):
    """Amounts due to each statutory body for one run."""

    payroll_run_id: uuid.UUID
    month: int
    year: int
    employee_count: int
    paye: Decimal
    nssf_employee: Decimal
    nssf_employer: Decimal
    nssf_total: Decimal
    shif: Decimal
    ahl_employee: Decimal
    ahl_employer: Decimal
    ahl_total: Decimal
    nita: Decimal
    helb: Decimal


class P9MonthRow(BaseModel):
    """One month of a P9 card. ``month`` is None on the totals row."""

    month: int | None
    gross_pay: Decimal
    nssf_employee: Decimal
    shif_employee: Decimal
    ahl_employee: Decimal
    taxable_pay: Decimal
    income_tax: Decimal
    personal_relief: Decimal
    insurance_relief: Decimal
    paye: Decimal


class P9Response(BaseModel):
    """Yearly tax deduction card for one employee."""

    employee_id: uuid.UUID
    staff_id: str
    employee_name: str
    kra_pin: str | None
    year: int
    months: list[P9MonthRow]
    totals: P9MonthRow
