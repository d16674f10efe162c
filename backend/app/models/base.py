from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from app.models.enums import EntityStatus

ZERO = Decimal("0.00")


def _uuid_factory() -> uuid.UUID:
    """Generate a new UUID v4."""
    return uuid.uuid4()


def now_utc() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


def money_field(**kwargs: Any) -> Any:
    """A non-null NUMERIC(14, 2) column defaulting to zero."""
    kwargs.setdefault("default", ZERO)
    return Field(sa_type=sa.Numeric(14, 2), **kwargs)


class UUIDBase(SQLModel):
    """Base model with UUID primary key."""

    id: uuid.UUID = Field(
        default_factory=_uuid_factory,
        primary_key=True,
        sa_type=sa.Uuid,
    )


class TimestampMixin(SQLModel):
    """Mixin that adds a created_at timestamp."""

    created_at: datetime = Field(
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class ApprovableMixin(SQLModel):
    """Columns shared by every record that moves through the approval workflow."""

    status: str = Field(
        default=EntityStatus.DRAFT, max_length=50, index=True, sa_column_kwargs={"server_default": "DRAFT"}
    )
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    rejection_reason: str | None = None
    updated_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
