"""Application error taxonomy and the FastAPI handlers that render it."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base error carrying an HTTP status and a stable error code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        if message:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code:
            self.code = code
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"success": False, "error": error}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    message = "Validation error"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"
    message = "Invalid or expired token"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    message = "Resource already exists"


class RateLimitError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"
    message = "Too many requests, please try again later"


class UpstreamError(AppError):
    """Raised when TMDB answers with an error or cannot be reached."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "TMDB_ERROR"
    message = "TMDB request failed"

    def __init__(self, message: str | None = None, *, upstream_status: int | None = None) -> None:
        resolved = (
            upstream_status
            if upstream_status is not None and 400 <= upstream_status < 600
            else status.HTTP_502_BAD_GATEWAY
        )
        super().__init__(message, status_code=resolved)
        self.upstream_status = upstream_status


class AuthConfigError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "AUTH_CONFIG_ERROR"
    message = "Identity provider misconfigured"


def _log_error(request: Request, exc: AppError) -> None:
    if exc.status_code >= 500:
        logger.error(
            "Unhandled error on %s: %s (%s)", request.url.path, exc.message, exc.code
        )
    else:
        logger.warning(
            "Request error on %s: %s %s %s",
            request.url.path,
            exc.status_code,
            exc.code,
            exc.message,
        )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-producing handlers to the application."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        _log_error(request, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {
                "loc": list(error.get("loc", ())),
                "message": error.get("msg"),
                "type": error.get("type"),
            }
            for error in exc.errors()
        ]
        error = ValidationError(details=details)
        _log_error(request, error)
        return JSONResponse(status_code=error.status_code, content=error.to_payload())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            error: AppError = NotFoundError(
                f"Route not found: {request.method} {request.url.path}"
            )
        elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            error = NotFoundError(
                f"Route not found: {request.method} {request.url.path}"
            )
        else:
            error = AppError(
                str(exc.detail), status_code=exc.status_code, code="HTTP_ERROR"
            )
        _log_error(request, error)
        return JSONResponse(
            status_code=error.status_code,
            content=error.to_payload(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
        error = AppError()
        return JSONResponse(status_code=error.status_code, content=error.to_payload())
