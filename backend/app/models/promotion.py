# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import ApprovableMixin, TimestampMixin, UUIDBase, money_field


class PromotionRequest(UUIDBase, TimestampMixin, ApprovableMixin, table=True):
    """A proposed change of position and basic salary for an employee."""

    __tablename__ = "promotion_request"
    __table_args__ = (sa.Index("ix_promotion_request_company_status", "company_id", "status"),)

    company_id: uuid.UUID = Field(index=True)
    employee_id: uuid.UUID = Field(index=True)
    current_position: str | None = Field(default=None, max_length=255)
    proposed_position: str = Field(max_length=255)
    current_salary: Decimal = money_field()
    proposed_salary: Decimal = money_field()
    effective_date: date
    reason: str | None = None
    created_by: uuid.UUID
