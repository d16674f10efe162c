# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import AuthDep, FinanceDep, validate_company_scope
from app.db import SessionDep
from app.schemas.per_diem import (
    CreatePerDiemRateRequest,
    CreatePerDiemRequestPayload,
    PerDiemRateListResponse,
    PerDiemRateResponse,
    PerDiemRequestListResponse,
    PerDiemRequestResponse,
)
from app.services import per_diem as per_diem_service

per_diem_router = APIRouter(
    prefix="/companies/{company_id}/per-diem",
    tags=["per-diem"],
    dependencies=[Depends(validate_company_scope)],
)


@per_diem_router.post("/rates", response_model=PerDiemRateResponse, status_code=status.HTTP_201_CREATED)
async def create_rate(
    payload: CreatePerDiemRateRequest,
    session: SessionDep,
    auth: FinanceDep,
) -> PerDiemRateResponse:
    """Create a per diem rate (finance only)."""
    return await per_diem_service.create_rate(session, auth, payload)


@per_diem_router.get("/rates", response_model=PerDiemRateListResponse)
async def list_rates(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    include_inactive: bool = Query(default=False),
) -> PerDiemRateListResponse:
    return await per_diem_service.list_rates(session, company_id, include_inactive)


@per_diem_router.post("/rates/{rate_id}/deactivate", response_model=PerDiemRateResponse)
async def deactivate_rate(
    rate_id: uuid.UUID,
    session: SessionDep,
    auth: FinanceDep,
) -> PerDiemRateResponse:
    return await per_diem_service.deactivate_rate(session, auth, rate_id)


@per_diem_router.post("/requests", response_model=PerDiemRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_per_diem_request(
    payload: CreatePerDiemRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> PerDiemRequestResponse:
    """Claim per diem for a trip. Totals are computed from the rate."""
    return await per_diem_service.create_per_diem_request(session, auth, payload)


@per_diem_router.get("/requests", response_model=PerDiemRequestListResponse)
async def list_per_diem_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: str | None = Query(default=None, alias="status"),
    employee_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> PerDiemRequestListResponse:
    return await per_diem_service.list_per_diem_requests(session, auth, status_filter, employee_id, offset, limit)


@per_diem_router.get("/requests/{request_id}", response_model=PerDiemRequestResponse)
async def get_per_diem_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> PerDiemRequestResponse:
    return await per_diem_service.get_per_diem_request(session, auth, request_id)


@per_diem_router.post("/requests/{request_id}/cancel", response_model=PerDiemRequestResponse)
async def cancel_per_diem_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> PerDiemRequestResponse:
    return await per_diem_service.cancel_per_diem_request(session, auth, request_id)
