# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.models.enums import NotificationStatus, NotificationType


class NotificationResponse(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    type: NotificationType
    recipient_email: str
    recipient_id: uuid.UUID | None
    subject: str
    body: str
    metadata_json: dict[str, Any] | None
    status: NotificationStatus
    retry_count: int
    error_message: str | None
    sent_at: datetime | None
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Paginated list of queued notifications."""

    items: list[NotificationResponse]
    total: int


class DispatchResultResponse(BaseModel):
    """Counts from one dispatch pass over the queue."""

    sent: int
    failed: int
    retried: int
