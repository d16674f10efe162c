# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import UUIDBase


class CompanyHoliday(UUIDBase, table=True):
    """A non-working day for one company.

    Leave requests do not count holidays as working days. A ``recurring``
    holiday falls on the same month and day every year, so only its month
    and day are significant.
    """

    __tablename__ = "company_holiday"
    __table_args__ = (sa.UniqueConstraint("company_id", "date", name="uq_company_holiday_date"),)

    company_id: uuid.UUID = Field(index=True)
    date: datetime.date
    name: str = Field(max_length=255)
    recurring: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})

    def falls_in(self, year: int) -> datetime.date | None:
        """The date this holiday is observed in ``year``, if any."""
        if not self.recurring:
            return self.date if self.date.year == year else None
        try:
            return self.date.replace(year=year)
        except ValueError:
            # Feb 29 outside a leap year.
            return None
