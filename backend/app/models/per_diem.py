# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import ApprovableMixin, TimestampMixin, UUIDBase, money_field


class PerDiemRate(UUIDBase, TimestampMixin, table=True):
    """Daily allowance for travel to a destination."""

    __tablename__ = "per_diem_rate"

    company_id: uuid.UUID = Field(index=True)
    name: str = Field(max_length=255)
    destination: str | None = Field(default=None, max_length=255)
    daily_rate: Decimal = money_field()
    currency: str = Field(default="KES", max_length=3)
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})


class PerDiemRequest(UUIDBase, TimestampMixin, ApprovableMixin, table=True):
    """A travel allowance claim. Amounts are fixed when the claim is created."""

    __tablename__ = "per_diem_request"
    __table_args__ = (sa.Index("ix_per_diem_request_company_status", "company_id", "status"),)

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    rate_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("per_diem_rate.id", ondelete="SET NULL"), nullable=True),
    )
    destination: str = Field(max_length=255)
    purpose: str
    start_date: date
    end_date: date
    days: int
    daily_rate: Decimal = money_field()
    accommodation_amount: Decimal = money_field()
    transport_amount: Decimal = money_field()
    total_amount: Decimal = money_field()
    currency: str = Field(default="KES", max_length=3)
    created_by: uuid.UUID
