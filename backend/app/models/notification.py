# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import TimestampMixin, UUIDBase
from app.models.enums import NotificationStatus


class NotificationQueueItem(UUIDBase, TimestampMixin, table=True):
    """An outbound email waiting for the dispatcher."""

    __tablename__ = "notification_queue"
    __table_args__ = (sa.Index("ix_notification_status_created", "status", "created_at"),)

    company_id: uuid.UUID = Field(index=True)
    type: str = Field(max_length=50)
    recipient_email: str = Field(max_length=255)
    recipient_id: uuid.UUID | None = None
    subject: str = Field(max_length=255)
    body: str
    metadata_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    status: str = Field(
        default=NotificationStatus.PENDING, max_length=20, sa_column_kwargs={"server_default": "PENDING"}
    )
    retry_count: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    error_message: str | None = None
    sent_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
