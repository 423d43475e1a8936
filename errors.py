"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to the {success: false, message, ...} envelope
with the status code that belongs to the error kind.

Non-AppError exceptions are logged and collapsed to a generic 500 (with Sentry
reporting in production) so internals never reach the client.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)

_INTERNAL_ERROR_MESSAGE = "Internal server error"


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def public_message(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        payload: dict = {
            "success": False,
            "message": self.public_message(),
            "code": self.error_code,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class BadGatewayError(AppError):
    """Gateway could not reach the upstream service."""

    status_code = 502
    error_code = "bad_gateway"


class DatabaseError(AppError):
    """Persistence failure. The message is logged, never sent to the client."""

    status_code = 500
    error_code = "database_error"

    def public_message(self) -> str:
        return _INTERNAL_ERROR_MESSAGE

    def to_dict(self) -> dict:
        return {
            "success": False,
            "message": self.public_message(),
            "code": self.error_code,
        }


def _validation_details(exc: RequestValidationError) -> list[dict]:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        details.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return details


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error(
                "app_error",
                method=request.method,
                path=request.url.path,
                error=exc.message,
                error_type=type(exc).__name__,
            )
        else:
            log.warning(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=exc.message,
                status_code=exc.status_code,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError(
            "Missing or invalid required fields", details=_validation_details(exc)
        )
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            method=request.method,
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": _INTERNAL_ERROR_MESSAGE,
                "code": "internal_error",
            },
        )
