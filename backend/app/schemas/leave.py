# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.enums import EntityStatus

# ---------------------------------------------------------------------------
# Leave types
# ---------------------------------------------------------------------------


class CreateLeaveTypeRequest(BaseModel):
    """Request body for creating a leave type."""

    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    days_per_year: Decimal = Field(ge=0, le=366)
    is_paid: bool = True


class UpdateLeaveTypeRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    days_per_year: Decimal | None = Field(default=None, ge=0, le=366)
    is_paid: bool | None = None
    is_active: bool | None = None


class LeaveTypeResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    name: str
    description: str | None
    days_per_year: Decimal
    is_paid: bool
    is_active: bool


class LeaveTypeListResponse(BaseModel):
    items: list[LeaveTypeResponse]
    total: int


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


class LeaveBalanceResponse(BaseModel):
    """Days for one employee, leave type and year. ``available_days`` excludes pending days."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_name: str
    year: int
    entitled_days: Decimal
    used_days: Decimal
    pending_days: Decimal
    available_days: Decimal


class LeaveBalanceListResponse(BaseModel):
    items: list[LeaveBalanceResponse]
    total: int


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateLeaveRequestPayload(BaseModel):
    """Request body for a leave request. ``employee_id`` defaults to the caller."""

    employee_id: uuid.UUID | None = None
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=2000)


class LeaveRequestResponse(BaseModel):
    """Response schema for a leave request."""

    id: uuid.UUID
    company_id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    days_requested: Decimal
    reason: str | None
    status: EntityStatus
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    rejection_reason: str | None
    created_at: datetime


class LeaveRequestListResponse(BaseModel):
    """Paginated list of leave requests."""

    items: list[LeaveRequestResponse]
    total: int
