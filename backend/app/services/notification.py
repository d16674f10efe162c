# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import func, select
from sqlmodel import col

from app.config import get_settings
from app.models.employee import Employee
from app.models.enums import EmployeeStatus, NotificationStatus, NotificationType
from app.models.notification import NotificationQueueItem
from app.schemas.notification import DispatchResultResponse, NotificationListResponse, NotificationResponse
from app.services.audit import to_json_safe

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sender
# ---------------------------------------------------------------------------


@runtime_checkable
class NotificationSender(Protocol):
    """Interface for the outbound email transport."""

    async def send(self, item: NotificationQueueItem) -> None:
        """Deliver one notification. Raise on failure."""
        ...


class LoggingNotificationSender:
    """Development sender that writes notifications to the log."""

    def __init__(self) -> None:
        self.sent: list[NotificationQueueItem] = []

    async def send(self, item: NotificationQueueItem) -> None:
        logger.info("Notification %s to %s: %s", item.type, item.recipient_email, item.subject)
        self.sent.append(item)


_notification_sender: NotificationSender = LoggingNotificationSender()


def get_notification_sender() -> NotificationSender:
    return _notification_sender


def set_notification_sender(sender: NotificationSender) -> None:
    """Override the sender (for testing or production wiring)."""
    global _notification_sender
    _notification_sender = sender


# ---------------------------------------------------------------------------
# Queueing
# ---------------------------------------------------------------------------


def _build_notification_response(item: NotificationQueueItem) -> NotificationResponse:
    return NotificationResponse(
        id=item.id,
        company_id=item.company_id,
        type=NotificationType(item.type),
        recipient_email=item.recipient_email,
        recipient_id=item.recipient_id,
        subject=item.subject,
        body=item.body,
        metadata_json=item.metadata_json,
        status=NotificationStatus(item.status),
        retry_count=item.retry_count,
        error_message=item.error_message,
        sent_at=item.sent_at,
        created_at=item.created_at,
    )


def queue_notification(
    session: AsyncSession,
    *,
    company_id: uuid.UUID,
    notification_type: NotificationType,
    recipient: Employee | None,
    subject: str,
    body: str,
    metadata: dict[str, Any] | None = None,
) -> NotificationQueueItem | None:
    """Add a notification to the queue within the caller's transaction.

    Recipients without an email address are skipped.
    """
    if recipient is None or not recipient.email:
        return None
    item = NotificationQueueItem(
        company_id=company_id,
        type=notification_type.value,
        recipient_email=recipient.email,
        recipient_id=recipient.id,
        subject=subject,
        body=body,
        metadata_json=to_json_safe(metadata) if metadata else None,
    )
    session.add(item)
    return item


async def find_employees_with_role(
    session: AsyncSession,
    company_id: uuid.UUID,
    role: str,
) -> list[Employee]:
    """Active employees holding the given role."""
    result = await session.execute(
        select(Employee).where(
            col(Employee.company_id) == company_id,
            col(Employee.role) == role,
            col(Employee.status) == EmployeeStatus.ACTIVE,
        )
    )
    return list(result.scalars().all())


async def list_notifications(
    session: AsyncSession,
    company_id: uuid.UUID,
    status_filter: str | None = None,
    recipient_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> NotificationListResponse:
    """List queued notifications, newest first."""
    base_filters = [col(NotificationQueueItem.company_id) == company_id]
    if status_filter is not None:
        base_filters.append(col(NotificationQueueItem.status) == status_filter)
    if recipient_id is not None:
        base_filters.append(col(NotificationQueueItem.recipient_id) == recipient_id)

    count_result = await session.execute(
        select(func.count()).select_from(NotificationQueueItem).where(*base_filters)
    )
    total = count_result.scalar_one()

    result = await session.execute(
        select(NotificationQueueItem)
        .where(*base_filters)
        .order_by(col(NotificationQueueItem.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return NotificationListResponse(
        items=[_build_notification_response(n) for n in result.scalars().all()],
        total=total,
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


async def dispatch_pending(
    session: AsyncSession,
    *,
    company_id: uuid.UUID | None = None,
    sender: NotificationSender | None = None,
    batch_size: int | None = None,
    max_retries: int | None = None,
) -> DispatchResultResponse:
    """Send one batch of pending notifications, oldest first.

    A failed send increments ``retry_count``; the item becomes FAILED once
    it reaches ``max_retries`` and is otherwise retried on the next pass.
    """
    settings = get_settings()
    sender = sender or get_notification_sender()
    batch_size = batch_size or settings.notification_batch_size
    max_retries = max_retries or settings.notification_max_retries

    query = select(NotificationQueueItem).where(col(NotificationQueueItem.status) == NotificationStatus.PENDING)
    if company_id is not None:
        query = query.where(col(NotificationQueueItem.company_id) == company_id)
    result = await session.execute(query.order_by(col(NotificationQueueItem.created_at)).limit(batch_size))
    items = list(result.scalars().all())

    sent = failed = retried = 0
    for item in items:
        try:
            await sender.send(item)
        except Exception as exc:
            logger.exception("Failed to send notification %s to %s", item.id, item.recipient_email)
            item.retry_count += 1
            item.error_message = str(exc)[:1000]
            if item.retry_count >= max_retries:
                item.status = NotificationStatus.FAILED.value
                failed += 1
            else:
                retried += 1
            continue
        item.status = NotificationStatus.SENT.value
        item.sent_at = datetime.now(UTC)
        item.error_message = None
        sent += 1

    await session.commit()
    if items:
        logger.info("Notification dispatch: sent=%d retried=%d failed=%d", sent, retried, failed)
    return DispatchResultResponse(sent=sent, failed=failed, retried=retried)
