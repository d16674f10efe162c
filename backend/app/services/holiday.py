from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from app.exceptions import AppError
from app.models.enums import AuditAction, AuditEntityType
from app.models.holiday import CompanyHoliday
from app.schemas.holiday import HolidayListResponse, HolidayResponse
from app.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid
    from datetime import date

    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import AuthContext
    from app.schemas.holiday import CreateHolidayRequest


def _build_holiday_response(holiday: CompanyHoliday, observed_on: date | None = None) -> HolidayResponse:
    return HolidayResponse(
        id=holiday.id,
        company_id=holiday.company_id,
        date=holiday.date,
        observed_on=observed_on or holiday.date,
        name=holiday.name,
        recurring=holiday.recurring,
    )


async def _find_clash(session: AsyncSession, company_id: uuid.UUID, payload: CreateHolidayRequest) -> str | None:
    """Name of an existing holiday observed on the same day, if any."""
    result = await session.execute(select(CompanyHoliday).where(col(CompanyHoliday.company_id) == company_id))
    for existing in result.scalars().all():
        if existing.date == payload.date:
            return existing.name
        if existing.recurring or payload.recurring:
            if (existing.date.month, existing.date.day) == (payload.date.month, payload.date.day):
                return existing.name
    return None


async def create_holiday(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateHolidayRequest,
) -> HolidayResponse:
    """Create a company holiday.

    Two holidays cannot be observed on the same day; a recurring holiday
    clashes with any holiday on its month and day.
    """
    clash = await _find_clash(session, auth.company_id, payload)
    if clash is not None:
        raise AppError(f"Holiday '{clash}' already falls on this date", status_code=409)

    holiday = CompanyHoliday(
        company_id=auth.company_id,
        date=payload.date,
        name=payload.name,
        recurring=payload.recurring,
    )
    session.add(holiday)
    await session.flush()

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(holiday),
    )

    await session.commit()
    await session.refresh(holiday)
    return _build_holiday_response(holiday)


async def list_holidays(
    session: AsyncSession,
    company_id: uuid.UUID,
    year: int | None = None,
    offset: int = 0,
    limit: int = 50,
) -> HolidayListResponse:
    """List holidays, optionally only those observed in ``year``.

    With a year, recurring holidays are reported on their date in that year
    and the list is ordered by observed date.
    """
    result = await session.execute(
        select(CompanyHoliday).where(col(CompanyHoliday.company_id) == company_id).order_by(col(CompanyHoliday.date))
    )
    holidays = list(result.scalars().all())

    if year is None:
        observed = [(h.date, h) for h in holidays]
    else:
        observed = [(day, h) for h in holidays if (day := h.falls_in(year)) is not None]
        observed.sort(key=lambda pair: pair[0])

    page = observed[offset : offset + limit]
    return HolidayListResponse(
        items=[_build_holiday_response(h, day) for day, h in page],
        total=len(observed),
    )


async def get_holiday(
    session: AsyncSession,
    company_id: uuid.UUID,
    holiday_id: uuid.UUID,
) -> CompanyHoliday:
    result = await session.execute(
        select(CompanyHoliday).where(
            col(CompanyHoliday.id) == holiday_id,
            col(CompanyHoliday.company_id) == company_id,
        )
    )
    holiday = result.scalar_one_or_none()
    if holiday is None:
        raise AppError("Holiday not found", status_code=404)
    return holiday


async def get_holiday_response(
    session: AsyncSession,
    company_id: uuid.UUID,
    holiday_id: uuid.UUID,
) -> HolidayResponse:
    return _build_holiday_response(await get_holiday(session, company_id, holiday_id))


async def delete_holiday(
    session: AsyncSession,
    auth: AuthContext,
    holiday_id: uuid.UUID,
) -> None:
    """Delete a holiday. Existing leave requests keep their computed day counts."""
    holiday = await get_holiday(session, auth.company_id, holiday_id)

    await write_audit_log(
        session,
        company_id=auth.company_id,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(holiday),
    )

    await session.delete(holiday)
    await session.commit()
