"""Custom exceptions and centralized exception handlers."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception with structured error response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.status_code = status_code or self.status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to RFC 7807 problem+json style response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "status": self.status_code,
            **({"details": self.details} if self.details else {}),
        }


class NotFoundError(AppException):
    """Resource not found."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    message = "Resource not found"


class SectorNotFoundError(NotFoundError):
    """No sector matches the requested id or symbol."""

    error_code = "SECTOR_NOT_FOUND"
    message = "Sector not found"


class StockNotFoundError(NotFoundError):
    """No stock matches the requested id or symbol."""

    error_code = "STOCK_NOT_FOUND"
    message = "Stock not found"


class ConflictError(AppException):
    """Resource conflict."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    message = "Resource conflict"


class AlreadyMemberError(ConflictError):
    """Stock already has an active membership in the universe."""

    error_code = "ALREADY_MEMBER"
    message = "Stock is already an active member of this universe"


class NotMemberError(ConflictError):
    """Stock has no active membership in the universe."""

    error_code = "NOT_MEMBER"
    message = "Stock is not an active member of this universe"


class AlreadyInProgressError(ConflictError):
    """A refresh is already running; the new request was rejected."""

    error_code = "REFRESH_IN_PROGRESS"
    message = "A refresh is already in progress"


class DataUnavailableError(AppException):
    """A refresh finished without a single successful fetch."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "DATA_UNAVAILABLE"
    message = "No market data could be fetched"


class DiscoveryError(AppException):
    """A constituent list could not be downloaded or parsed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "DISCOVERY_FAILED"
    message = "Universe discovery failed"


class PersistenceError(AppException):
    """A store write failed; the refresh was aborted."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "PERSISTENCE_ERROR"
    message = "Failed to persist market data"


def register_exception_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        import logging

        logger = logging.getLogger("sectorview.error")
        logger.exception(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

        # Don't expose internal error details in production
        from .config import settings

        if settings.debug:
            message = str(exc)
        else:
            message = "An unexpected error occurred"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "INTERNAL_ERROR",
                "message": message,
                "status": 500,
            },
        )
