# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import ApprovableMixin, TimestampMixin, UUIDBase, now_utc


def _days_field(**kwargs: Any) -> Any:
    kwargs.setdefault("default", Decimal("0"))
    return Field(sa_type=sa.Numeric(6, 1), **kwargs)


class LeaveType(UUIDBase, TimestampMixin, table=True):
    """A kind of leave and its yearly entitlement."""

    __tablename__ = "leave_type"
    __table_args__ = (sa.UniqueConstraint("company_id", "name", name="uq_leave_type_company_name"),)

    company_id: uuid.UUID = Field(index=True)
    name: str = Field(max_length=255)
    description: str | None = None
    days_per_year: Decimal = _days_field()
    is_paid: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})


class LeaveBalance(UUIDBase, table=True):
    """Per-year entitlement, usage and held days for one employee and leave type."""

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("company_id", "employee_id", "leave_type_id", "year", name="uq_leave_balance"),
    )

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
    )
    year: int
    entitled_days: Decimal = _days_field()
    used_days: Decimal = _days_field()
    pending_days: Decimal = _days_field()
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )

    @property
    def available_days(self) -> Decimal:
        return self.entitled_days - self.used_days - self.pending_days


class LeaveRequest(UUIDBase, TimestampMixin, ApprovableMixin, table=True):
    """An employee's leave request. ``status`` follows the approval workflow."""

    __tablename__ = "leave_request"
    __table_args__ = (sa.Index("ix_leave_request_company_status", "company_id", "status"),)

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    start_date: date
    end_date: date
    days_requested: Decimal = _days_field()
    reason: str | None = None
    created_by: uuid.UUID
