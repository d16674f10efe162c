# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from app.api.deps import AdminDep, validate_company_scope
from app.db import SessionDep
from app.models.enums import AuditEntityType
from app.schemas.audit import AuditLogListResponse
from app.services import audit as audit_service

audit_router = APIRouter(
    prefix="/companies/{company_id}/audit-log",
    tags=["audit"],
    dependencies=[Depends(validate_company_scope)],
)


@audit_router.get(
    "",
    response_model=AuditLogListResponse,
)
async def query_audit_log(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    entity_type: str | None = Query(default=None),
    entity_id: uuid.UUID | None = Query(default=None),
    action: str | None = Query(default=None),
    actor_id: uuid.UUID | None = Query(default=None),
    is_critical: bool | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> AuditLogListResponse:
    """Query audit log entries with optional filters (admin only)."""
    return await audit_service.query_audit_log(
        session,
        company_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        is_critical=is_critical,
        start_date=start_date,
        end_date=end_date,
        offset=offset,
        limit=limit,
    )


@audit_router.get("/export")
async def export_audit_log(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
    entity_type: str | None = Query(default=None),
    action: str | None = Query(default=None),
    is_critical: bool | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> Response:
    """Download matching audit entries as CSV (admin only)."""
    content = await audit_service.export_audit_log_csv(
        session,
        company_id,
        entity_type=entity_type,
        action=action,
        is_critical=is_critical,
        start_date=start_date,
        end_date=end_date,
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="audit-log.csv"'},
    )


@audit_router.get(
    "/{entity_type}/{entity_id}",
    response_model=AuditLogListResponse,
)
async def get_record_history(
    company_id: uuid.UUID,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> AuditLogListResponse:
    """Full change history of one record, oldest first (admin only)."""
    return await audit_service.get_record_history(session, company_id, entity_type.value, entity_id)
