# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import AuthDep, validate_company_scope
from app.db import SessionDep
from app.schemas.promotion import (
    CreatePromotionRequestPayload,
    PromotionRequestListResponse,
    PromotionRequestResponse,
)
from app.services import promotion as promotion_service

promotions_router = APIRouter(
    prefix="/companies/{company_id}/promotions",
    tags=["promotions"],
    dependencies=[Depends(validate_company_scope)],
)


@promotions_router.post("", response_model=PromotionRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_promotion_request(
    payload: CreatePromotionRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> PromotionRequestResponse:
    """Propose a promotion (HR, management or the employee's line manager)."""
    return await promotion_service.create_promotion_request(session, auth, payload)


@promotions_router.get("", response_model=PromotionRequestListResponse)
async def list_promotion_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: str | None = Query(default=None, alias="status"),
    employee_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> PromotionRequestListResponse:
    return await promotion_service.list_promotion_requests(session, auth, status_filter, employee_id, offset, limit)


@promotions_router.get("/{promotion_id}", response_model=PromotionRequestResponse)
async def get_promotion_request(
    promotion_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> PromotionRequestResponse:
    return await promotion_service.get_promotion_request(session, auth, promotion_id)


@promotions_router.post("/{promotion_id}/cancel", response_model=PromotionRequestResponse)
async def cancel_promotion_request(
    promotion_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> PromotionRequestResponse:
    return await promotion_service.cancel_promotion_request(session, auth, promotion_id)
