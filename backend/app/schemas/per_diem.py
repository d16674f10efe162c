# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.enums import EntityStatus


class CreatePerDiemRateRequest(BaseModel):
    """Request body for a per diem rate."""

    name: str = Field(min_length=1, max_length=255)
    destination: str | None = Field(default=None, max_length=255)
    daily_rate: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class PerDiemRateResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    destination: str | None
    daily_rate: Decimal
    currency: str
    is_active: bool


class PerDiemRateListResponse(BaseModel):
    items: list[PerDiemRateResponse]
    total: int


class CreatePerDiemRequestPayload(BaseModel):
    """Request body for a per diem claim. Totals are computed by the server."""

    employee_id: uuid.UUID | None = None
    rate_id: uuid.UUID
    destination: str = Field(min_length=1, max_length=255)
    purpose: str = Field(min_length=1, max_length=2000)
    start_date: date
    end_date: date
    accommodation_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    transport_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)


class PerDiemRequestResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    employee_id: uuid.UUID
    rate_id: uuid.UUID | None
    destination: str
    purpose: str
    start_date: date
    end_date: date
    days: int
    daily_rate: Decimal
    accommodation_amount: Decimal
    transport_amount: Decimal
    total_amount: Decimal
    currency: str
    status: EntityStatus
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    rejection_reason: str | None
    created_at: datetime


class PerDiemRequestListResponse(BaseModel):
    """Paginated list of per diem requests."""

    items: list[PerDiemRequestResponse]
    total: int
