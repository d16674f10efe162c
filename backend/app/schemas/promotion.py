# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.enums import EntityStatus


class CreatePromotionRequestPayload(BaseModel):
    """Request body for proposing a promotion.

    ``current_position`` and ``current_salary`` default to the employee's job
    role and latest basic salary when omitted.
    """

    employee_id: uuid.UUID
    proposed_position: str = Field(min_length=1, max_length=255)
    proposed_salary: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    effective_date: date
    current_position: str | None = Field(default=None, max_length=255)
    current_salary: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    reason: str | None = Field(default=None, max_length=2000)


class PromotionRequestResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    employee_id: uuid.UUID
    current_position: str | None
    proposed_position: str
    current_salary: Decimal
    proposed_salary: Decimal
    effective_date: date
    reason: str | None
    status: EntityStatus
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    rejection_reason: str | None
    created_by: uuid.UUID
    created_at: datetime


class PromotionRequestListResponse(BaseModel):
    items: list[PromotionRequestResponse]
    total: int
