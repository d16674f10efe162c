# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from app.api.deps import AdminDep, validate_company_scope
from app.db import SessionDep
from app.schemas.notification import DispatchResultResponse, NotificationListResponse
from app.services import notification as notification_service

notifications_router = APIRouter(
    prefix="/companies/{company_id}/notifications",
    tags=["notifications"],
    dependencies=[Depends(validate_company_scope)],
)


@notifications_router.get("", response_model=NotificationListResponse)
async def list_notifications(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    status_filter: str | None = Query(default=None, alias="status"),
    recipient_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> NotificationListResponse:
    """List queued notifications (admin only)."""
    return await notification_service.list_notifications(
        session, company_id, status_filter, recipient_id, offset, limit
    )


@notifications_router.post("/dispatch", response_model=DispatchResultResponse)
async def dispatch_notifications(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> DispatchResultResponse:
    """Send one batch of this company's pending notifications now (admin only)."""
    return await notification_service.dispatch_pending(session, company_id=company_id)
