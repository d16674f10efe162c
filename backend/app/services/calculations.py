"""Kenyan statutory payroll calculation.

Pure functions over ``Decimal``. Every reported amount is rounded half-up to
cents; intermediate component amounts are rounded before they feed the next
step so that payslips add up exactly.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from app.schemas.payroll import PayrollCalculation, TaxBand

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

    from app.schemas.payroll import PayrollInput

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

NSSF_RATE = Decimal("0.06")
NSSF_LOWER_LIMIT = Decimal("8000")
NSSF_UPPER_LIMIT = Decimal("72000")
NSSF_TIER_I_MAX = Decimal("480")
NSSF_MAX_CONTRIBUTION = Decimal("4320")

SHIF_RATE = Decimal("0.0275")
AHL_RATE = Decimal("0.015")

PERSONAL_RELIEF = Decimal("2400")
INSURANCE_RELIEF_RATE = Decimal("0.15")
INSURANCE_RELIEF_MAX = Decimal("5000")

NITA_LEVY = Decimal("50")

# (width of band, rate); None means unbounded.
PAYE_BANDS: tuple[tuple[Decimal | None, Decimal], ...] = (
    (Decimal("24000"), Decimal("0.10")),
    (Decimal("8333"), Decimal("0.25")),
    (Decimal("467667"), Decimal("0.30")),
    (Decimal("300000"), Decimal("0.325")),
    (None, Decimal("0.35")),
)


def to_cents(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def prorate(total: Decimal, calendar_days: int | None, days_worked: int | None) -> Decimal:
    """Scale a monthly total by days worked.

    Only applies when ``0 < days_worked < calendar_days``; otherwise the full
    total is returned.
    """
    if calendar_days and days_worked and 0 < days_worked < calendar_days:
        return to_cents(total / Decimal(calendar_days) * Decimal(days_worked))
    return to_cents(total)


def calculate_nssf(gross_pay: Decimal) -> Decimal:
    """Tiered NSSF contribution. Employer matches the employee amount."""
    if gross_pay <= 0:
        return ZERO
    if gross_pay <= NSSF_LOWER_LIMIT:
        contribution = gross_pay * NSSF_RATE
    elif gross_pay <= NSSF_UPPER_LIMIT:
        contribution = NSSF_TIER_I_MAX + (gross_pay - NSSF_LOWER_LIMIT) * NSSF_RATE
    else:
        contribution = NSSF_TIER_I_MAX + (NSSF_UPPER_LIMIT - NSSF_LOWER_LIMIT) * NSSF_RATE
    return to_cents(min(contribution, NSSF_MAX_CONTRIBUTION))


def calculate_shif(gross_pay: Decimal) -> Decimal:
    if gross_pay <= 0:
        return ZERO
    return to_cents(gross_pay * SHIF_RATE)


def calculate_ahl(gross_pay: Decimal) -> Decimal:
    if gross_pay <= 0:
        return ZERO
    return to_cents(gross_pay * AHL_RATE)


def _band_slices(taxable_pay: Decimal) -> Iterator[tuple[Decimal, Decimal | None, Decimal, Decimal]]:
    """Yield ``(lower, upper, rate, amount)`` for each band the pay reaches."""
    remaining = taxable_pay
    lower = ZERO
    for width, rate in PAYE_BANDS:
        if remaining <= 0:
            return
        amount = remaining if width is None else min(remaining, width)
        upper = None if width is None else lower + width
        yield lower, upper, rate, amount
        remaining -= amount
        if upper is not None:
            lower = upper


def tax_band_breakdown(taxable_pay: Decimal) -> list[TaxBand]:
    """Split taxable pay across the PAYE bands, lowest first."""
    return [
        TaxBand(lower=lower, upper=upper, rate=rate, amount=to_cents(amount), tax=to_cents(amount * rate))
        for lower, upper, rate, amount in _band_slices(taxable_pay)
    ]


def calculate_income_tax(taxable_pay: Decimal) -> Decimal:
    return to_cents(_sum(amount * rate for _, _, rate, amount in _band_slices(taxable_pay)))


def calculate_insurance_relief(insurance_premium: Decimal) -> Decimal:
    if insurance_premium <= 0:
        return ZERO
    return to_cents(min(insurance_premium * INSURANCE_RELIEF_RATE, INSURANCE_RELIEF_MAX))


def calculate_paye(
    taxable_pay: Decimal,
    insurance_premium: Decimal = ZERO,
) -> tuple[Decimal, Decimal, Decimal, Decimal]:
    """Return ``(income_tax, personal_relief, insurance_relief, paye)``.

    Zero taxable pay yields zero tax and no reliefs.
    """
    if taxable_pay <= 0:
        return ZERO, ZERO, ZERO, ZERO
    income_tax = calculate_income_tax(taxable_pay)
    personal_relief = to_cents(PERSONAL_RELIEF)
    insurance_relief = calculate_insurance_relief(insurance_premium)
    paye = max(ZERO, income_tax - personal_relief - insurance_relief)
    return income_tax, personal_relief, insurance_relief, to_cents(paye)


def _cents_map(values: Mapping[str, Decimal]) -> dict[str, Decimal]:
    return {label: to_cents(amount) for label, amount in values.items()}


def calculate_payroll(data: PayrollInput) -> PayrollCalculation:
    """Compute a full payslip for one employee and month."""
    other_earnings = _cents_map(data.other_allowances)
    other_deductions = _cents_map(data.other_deductions)

    base_total = (
        data.basic_salary
        + data.car_allowance
        + data.meal_allowance
        + data.telephone_allowance
        + data.housing_allowance
        + _sum(other_earnings.values())
    )
    gross_pay = prorate(base_total, data.calendar_days, data.days_worked)

    nssf = calculate_nssf(gross_pay)
    shif = calculate_shif(gross_pay)
    ahl = calculate_ahl(gross_pay)

    taxable_pay = max(ZERO, to_cents(gross_pay - nssf - shif - ahl))
    income_tax, personal_relief, insurance_relief, paye = calculate_paye(taxable_pay, data.insurance_premium)

    helb = to_cents(data.helb)
    total_other = _sum(other_deductions.values())
    total_deductions = to_cents(nssf + shif + ahl + paye + helb + total_other)
    net_pay = to_cents(taxable_pay - paye - helb - total_other)

    nita = to_cents(NITA_LEVY)
    cost_to_company = to_cents(gross_pay + nssf + ahl + nita)

    return PayrollCalculation(
        basic_salary=to_cents(data.basic_salary),
        car_allowance=to_cents(data.car_allowance),
        meal_allowance=to_cents(data.meal_allowance),
        telephone_allowance=to_cents(data.telephone_allowance),
        housing_allowance=to_cents(data.housing_allowance),
        other_earnings=other_earnings,
        gross_pay=gross_pay,
        nssf_employee=nssf,
        nssf_employer=nssf,
        shif_employee=shif,
        ahl_employee=ahl,
        ahl_employer=ahl,
        taxable_pay=taxable_pay,
        income_tax=income_tax,
        personal_relief=personal_relief,
        insurance_relief=insurance_relief,
        paye=paye,
        helb=helb,
        other_deductions=other_deductions,
        total_deductions=total_deductions,
        net_pay=net_pay,
        nita=nita,
        cost_to_company=cost_to_company,
    )
