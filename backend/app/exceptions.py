import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Business rule failure raised by services and rendered as an ErrorResponse.

    400 invalid state, 403 role or scope, 404 missing, 409 conflict.
    """

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def _error_response(error: str, detail: str | None, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, status_code=status_code).model_dump(),
    )


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(type(exc).__name__, exc.message, exc.status_code)


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()]
    return _error_response("ValidationError", "; ".join(messages), status.HTTP_422_UNPROCESSABLE_ENTITY)


async def _integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    # Unique constraints catch concurrent duplicates that slipped past the service pre-checks.
    logger.warning("%s %s integrity error: %s", request.method, request.url.path, exc.orig)
    return _error_response("ConflictError", "Record conflicts with existing data", status.HTTP_409_CONFLICT)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_exception_handler)  # type: ignore[arg-type]
