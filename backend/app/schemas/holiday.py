# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field, field_validator


class CreateHolidayRequest(BaseModel):
    date: date
    name: str = Field(min_length=1, max_length=255)
    recurring: bool = False

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class HolidayResponse(BaseModel):
    """A company holiday.

    ``observed_on`` is the date in the requested year when listing by year,
    otherwise the stored date.
    """

    id: uuid.UUID
    company_id: uuid.UUID
    date: date
    observed_on: date
    name: str
    recurring: bool


class HolidayListResponse(BaseModel):
    items: list[HolidayResponse]
    total: int
