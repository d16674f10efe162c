from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from fastapi import FastAPI, Request, Response

    from app.config import Settings

logger = logging.getLogger("app.access")

REQUEST_ID_HEADER = "X-Request-Id"


async def _log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Tag each request with an id and log one access line per request."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers[REQUEST_ID_HEADER] = request_id

    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    logger.log(
        level,
        "%s %s -> %d (%.1f ms) request=%s company=%s user=%s role=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request_id,
        request.headers.get("x-company-id", "-"),
        request.headers.get("x-user-id", "-"),
        request.headers.get("x-role", "-"),
    )
    return response


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install CORS and the access logger."""
    app.add_middleware(
        CORSMiddleware,  # ty: ignore[invalid-argument-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "Content-Disposition"],
    )
    app.middleware("http")(_log_requests)
