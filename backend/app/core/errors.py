"""
Error taxonomy for the OKR rollup engine and its HTTP mapping.

- ValidationError: malformed input (bad confidence, unknown period label,
  non-numeric value) -> 400 with the offending field named
- NotFoundError: unknown metric key / KR id -> 404
- StoreUnavailableError: the relational store failed -> 500, generic message
- CatalogError: inconsistent metric catalog or OKR registry at load time

Missing data is never an error; it surfaces as None / "gray" in responses.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_content(self) -> dict:
        return {"detail": self.message}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field

    def to_content(self) -> dict:
        return {"detail": self.message, "field": self.field}


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class StoreUnavailableError(AppError):
    """Persistence layer failure. The message is never shown to clients."""

    def to_content(self) -> dict:
        return {"detail": "Internal server error"}


class CatalogError(Exception):
    """Metric catalog or OKR registry failed validation at load time."""


def _first_error_field(exc: RequestValidationError) -> Optional[str]:
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        if loc:
            return ".".join(loc)
    return None


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON error handlers to the application."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, StoreUnavailableError):
            logger.error(f"Store unavailable on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_content())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        field = _first_error_field(exc)
        first = exc.errors()[0] if exc.errors() else {}
        message = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": message, "field": field}
        )
