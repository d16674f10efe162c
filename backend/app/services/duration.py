# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import or_, select
from sqlmodel import col

from app.exceptions import AppError
from app.models.holiday import CompanyHoliday

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def fetch_holiday_dates(
    session: AsyncSession,
    company_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> set[date]:
    """Company holidays falling in the given range.

    Recurring holidays are projected onto every year the range touches.
    """
    result = await session.execute(
        select(CompanyHoliday).where(
            col(CompanyHoliday.company_id) == company_id,
            or_(
                col(CompanyHoliday.recurring).is_(True),
                (col(CompanyHoliday.date) >= start_date) & (col(CompanyHoliday.date) <= end_date),
            ),
        )
    )
    dates: set[date] = set()
    for holiday in result.scalars().all():
        if not holiday.recurring:
            dates.add(holiday.date)
            continue
        for year in range(start_date.year, end_date.year + 1):
            projected = holiday.falls_in(year)
            if projected is not None and start_date <= projected <= end_date:
                dates.add(projected)
    return dates


def count_business_days(start_date: date, end_date: date, holidays: set[date]) -> int:
    """Weekdays from start to end inclusive, excluding ``holidays``."""
    total = 0
    current = start_date
    one_day = timedelta(days=1)
    while current <= end_date:
        if current.weekday() < 5 and current not in holidays:
            total += 1
        current += one_day
    return total


async def calculate_working_days(
    session: AsyncSession,
    company_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> int:
    """Working days covered by a leave request.

    Excludes weekends (Sat/Sun) and company holidays. Raises 400 when the
    range is inverted or covers no working day.
    """
    if end_date < start_date:
        raise AppError("End date must not be before start date", status_code=400)

    holidays = await fetch_holiday_dates(session, company_id, start_date, end_date)
    days = count_business_days(start_date, end_date, holidays)
    if days <= 0:
        raise AppError("Request covers no working days after excluding weekends and holidays", status_code=400)
    return days
