from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from app.api.health import router as health_router
from app.api.router import api_router
from app.config import get_settings
from app.db import dispose_engine
from app.exceptions import setup_exception_handlers
from app.middleware import setup_middleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

DESCRIPTION = (
    "Multi-tenant HR and payroll API: employees, leave, per diem, payroll runs with "
    "Kenyan statutory deductions, promotions, tasks, and configurable approval workflows. "
    "Callers identify themselves with the X-Company-Id, X-User-Id, X-Role and "
    "X-Employee-Id headers."
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)
    try:
        yield
    finally:
        await dispose_engine()
        logger.info("Stopped %s", settings.app_name)


def create_app() -> FastAPI:
    """Build the API application with logging, middleware and routers configured."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    is_production = settings.environment == "production"
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=DESCRIPTION,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
    )

    setup_middleware(application, settings)
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()
