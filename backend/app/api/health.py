import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from app.config import get_settings
from app.db import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok", "degraded", "error"]
    database: Literal["ok", "unreachable"]
    version: str
    environment: str


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Report API liveness and database reachability."""
    settings = get_settings()

    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database connectivity failed")
        return HealthResponse(
            status="degraded",
            database="unreachable",
            version=settings.app_version,
            environment=settings.environment,
        )

    return HealthResponse(
        status="ok",
        database="ok",
        version=settings.app_version,
        environment=settings.environment,
    )
