# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import AuthDep, HRDep, validate_company_scope
from app.db import SessionDep
from app.schemas.leave import (
    CreateLeaveRequestPayload,
    CreateLeaveTypeRequest,
    LeaveBalanceListResponse,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    LeaveTypeListResponse,
    LeaveTypeResponse,
    UpdateLeaveTypeRequest,
)
from app.services import leave as leave_service

leave_types_router = APIRouter(
    prefix="/companies/{company_id}/leave-types",
    tags=["leave"],
    dependencies=[Depends(validate_company_scope)],
)

leave_requests_router = APIRouter(
    prefix="/companies/{company_id}/leave-requests",
    tags=["leave"],
    dependencies=[Depends(validate_company_scope)],
)

leave_balances_router = APIRouter(
    prefix="/companies/{company_id}/employees/{employee_id}/leave-balances",
    tags=["leave"],
    dependencies=[Depends(validate_company_scope)],
)


# ---------------------------------------------------------------------------
# Leave types
# ---------------------------------------------------------------------------


@leave_types_router.post("", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    payload: CreateLeaveTypeRequest,
    session: SessionDep,
    auth: HRDep,
) -> LeaveTypeResponse:
    """Create a leave type (HR only)."""
    return await leave_service.create_leave_type(session, auth, payload)


@leave_types_router.get("", response_model=LeaveTypeListResponse)
async def list_leave_types(
    company_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    include_inactive: bool = Query(default=False),
) -> LeaveTypeListResponse:
    return await leave_service.list_leave_types(session, company_id, include_inactive)


@leave_types_router.patch("/{leave_type_id}", response_model=LeaveTypeResponse)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
    session: SessionDep,
    auth: HRDep,
) -> LeaveTypeResponse:
    return await leave_service.update_leave_type(session, auth, leave_type_id, payload)


@leave_types_router.delete("/{leave_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: HRDep,
) -> None:
    """Delete an unused leave type (HR only)."""
    await leave_service.delete_leave_type(session, auth, leave_type_id)


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


@leave_balances_router.get("", response_model=LeaveBalanceListResponse)
async def list_leave_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None, ge=2000, le=2100),
) -> LeaveBalanceListResponse:
    """Leave balances for an employee, defaulting to the current year."""
    return await leave_service.list_balances(session, auth, employee_id, year or date.today().year)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@leave_requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    payload: CreateLeaveRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Request leave for yourself, or on behalf of an employee (HR)."""
    return await leave_service.create_leave_request(session, auth, payload)


@leave_requests_router.get("", response_model=LeaveRequestListResponse)
async def list_leave_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: str | None = Query(default=None, alias="status"),
    employee_id: uuid.UUID | None = Query(default=None),
    leave_type_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    return await leave_service.list_leave_requests(
        session, auth, status_filter, employee_id, leave_type_id, offset, limit
    )


@leave_requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_leave_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    return await leave_service.get_leave_request(session, auth, request_id)


@leave_requests_router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_leave_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Withdraw a pending leave request and release its held days."""
    return await leave_service.cancel_leave_request(session, auth, request_id)
