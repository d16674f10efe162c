# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import AuthDep, HRDep, validate_company_scope
from app.db import SessionDep
from app.schemas.holiday import CreateHolidayRequest, HolidayListResponse, HolidayResponse
from app.services import holiday as holiday_service

holidays_router = APIRouter(
    prefix="/companies/{company_id}/holidays",
    tags=["holidays"],
    dependencies=[Depends(validate_company_scope)],
)


@holidays_router.post("", response_model=HolidayResponse, status_code=status.HTTP_201_CREATED)
async def create_holiday(
    payload: CreateHolidayRequest,
    session: SessionDep,
    auth: HRDep,
) -> HolidayResponse:
    """Add a company holiday (HR only). Recurring holidays repeat every year."""
    return await holiday_service.create_holiday(session, auth, payload)


@holidays_router.get("", response_model=HolidayListResponse)
async def list_holidays(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> HolidayListResponse:
    return await holiday_service.list_holidays(session, company_id, year, offset, limit)


@holidays_router.get("/{holiday_id}", response_model=HolidayResponse)
async def get_holiday(
    company_id: uuid.UUID,
    holiday_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> HolidayResponse:
    return await holiday_service.get_holiday_response(session, company_id, holiday_id)


@holidays_router.delete("/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_holiday(
    holiday_id: uuid.UUID,
    session: SessionDep,
    auth: HRDep,
) -> None:
    """Delete a company holiday (HR only)."""
    await holiday_service.delete_holiday(session, auth, holiday_id)
