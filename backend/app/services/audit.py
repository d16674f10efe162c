"""Audit log writes, queries and exports."""

from __future__ import annotations

import csv
import io
import json
import uuid
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlmodel import col

from app.models.audit import AuditLog
from app.models.enums import CRITICAL_AUDIT_ENTITIES
from app.schemas.audit import AuditLogEntryResponse, AuditLogListResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from app.models.enums import AuditAction, AuditEntityType

# Bookkeeping fields that change on every write and say nothing about the edit.
_IGNORED_DIFF_FIELDS = frozenset({"created_at", "updated_at"})

_CSV_COLUMNS = [
    "created_at",
    "actor_id",
    "entity_type",
    "entity_id",
    "action",
    "is_critical",
    "changed_fields",
    "before_json",
    "after_json",
]


def to_json_safe(value: Any) -> Any:
    """Convert UUIDs, dates and Decimals (recursively) into JSON-friendly values."""
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    return value


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Serialize a SQLModel instance to a JSON-safe dict for audit logging."""
    return {key: to_json_safe(value) for key, value in model.model_dump().items()}


def changed_fields(before: dict[str, Any] | None, after: dict[str, Any] | None) -> list[str]:
    """Keys whose values differ between two audit snapshots, ignoring timestamps."""
    before = before or {}
    after = after or {}
    keys = (set(before) | set(after)) - _IGNORED_DIFF_FIELDS
    return sorted(k for k in keys if before.get(k) != after.get(k))


async def write_audit_log(
    session: AsyncSession,
    *,
    company_id: uuid.UUID,
    actor_id: uuid.UUID,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Write an immutable audit log entry within the caller's transaction."""
    entry = AuditLog(
        company_id=company_id,
        actor_id=actor_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        before_json=before_json,
        after_json=after_json,
        is_critical=entity_type in CRITICAL_AUDIT_ENTITIES,
    )
    session.add(entry)
    return entry


def _build_entry_response(entry: AuditLog) -> AuditLogEntryResponse:
    return AuditLogEntryResponse(
        id=entry.id,
        company_id=entry.company_id,
        actor_id=entry.actor_id,
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        action=entry.action,
        before_json=entry.before_json,
        after_json=entry.after_json,
        changed_fields=changed_fields(entry.before_json, entry.after_json),
        is_critical=entry.is_critical,
        created_at=entry.created_at,
    )


def _build_filters(
    company_id: uuid.UUID,
    *,
    entity_type: str | None,
    entity_id: uuid.UUID | None,
    action: str | None,
    actor_id: uuid.UUID | None,
    is_critical: bool | None,
    start_date: date | None,
    end_date: date | None,
) -> list[Any]:
    filters = [col(AuditLog.company_id) == company_id]
    if entity_type is not None:
        filters.append(col(AuditLog.entity_type) == entity_type)
    if entity_id is not None:
        filters.append(col(AuditLog.entity_id) == entity_id)
    if action is not None:
        filters.append(col(AuditLog.action) == action)
    if actor_id is not None:
        filters.append(col(AuditLog.actor_id) == actor_id)
    if is_critical is not None:
        filters.append(col(AuditLog.is_critical) == is_critical)
    if start_date is not None:
        filters.append(col(AuditLog.created_at) >= datetime.combine(start_date, time.min, tzinfo=UTC))
    if end_date is not None:
        next_day = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=UTC)
        filters.append(col(AuditLog.created_at) < next_day)
    return filters


async def query_audit_log(
    session: AsyncSession,
    company_id: uuid.UUID,
    *,
    entity_type: str | None = None,
    entity_id: uuid.UUID | None = None,
    action: str | None = None,
    actor_id: uuid.UUID | None = None,
    is_critical: bool | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    offset: int = 0,
    limit: int = 50,
) -> AuditLogListResponse:
    """Query audit log entries with optional filters, newest first."""
    filters = _build_filters(
        company_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        is_critical=is_critical,
        start_date=start_date,
        end_date=end_date,
    )

    count_result = await session.execute(select(func.count()).select_from(AuditLog).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(AuditLog).where(*filters).order_by(col(AuditLog.created_at).desc()).offset(offset).limit(limit)
    )
    entries = list(result.scalars().all())

    return AuditLogListResponse(
        items=[_build_entry_response(e) for e in entries],
        total=total,
        has_more=offset + len(entries) < total,
    )


async def get_record_history(
    session: AsyncSession,
    company_id: uuid.UUID,
    entity_type: str,
    entity_id: uuid.UUID,
) -> AuditLogListResponse:
    """Every audit entry for one record, oldest first."""
    result = await session.execute(
        select(AuditLog)
        .where(
            col(AuditLog.company_id) == company_id,
            col(AuditLog.entity_type) == entity_type,
            col(AuditLog.entity_id) == entity_id,
        )
        .order_by(col(AuditLog.created_at).asc())
    )
    entries = list(result.scalars().all())
    return AuditLogListResponse(
        items=[_build_entry_response(e) for e in entries],
        total=len(entries),
        has_more=False,
    )


async def export_audit_log_csv(
    session: AsyncSession,
    company_id: uuid.UUID,
    *,
    entity_type: str | None = None,
    action: str | None = None,
    is_critical: bool | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> str:
    """Render matching audit entries as CSV, newest first."""
    filters = _build_filters(
        company_id,
        entity_type=entity_type,
        entity_id=None,
        action=action,
        actor_id=None,
        is_critical=is_critical,
        start_date=start_date,
        end_date=end_date,
    )
    result = await session.execute(select(AuditLog).where(*filters).order_by(col(AuditLog.created_at).desc()))

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(_CSV_COLUMNS)
    for entry in result.scalars().all():
        writer.writerow(
            [
                entry.created_at.isoformat(),
                entry.actor_id,
                entry.entity_type,
                entry.entity_id,
                entry.action,
                "yes" if entry.is_critical else "no",
                ";".join(changed_fields(entry.before_json, entry.after_json)),
                json.dumps(entry.before_json, sort_keys=True) if entry.before_json is not None else "",
                json.dumps(entry.after_json, sort_keys=True) if entry.after_json is not None else "",
            ]
        )
    return output.getvalue()
