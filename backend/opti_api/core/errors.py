# opti_api/core/errors.py
"""
Application error taxonomy and the HTTP boundary that renders it.

Services raise the errors below; they never build HTTP responses themselves.
`register_exception_handlers` installs a single set of FastAPI handlers that
map every error shape to a status code and a `{success: false, message}` body.
"""
import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from tortoise.exceptions import IntegrityError

from opti_api.config import settings

logger = logging.getLogger("uvicorn.error")


class AppError(Exception):
    """
    Base class for errors that are safe to show to the client.

    Args:
        message: Client-facing message
        **extra: Additional keys merged into the response body
                 (e.g. `errors=[...]`, `mustChangePassword=True`)
    """
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_body(self) -> dict:
        return {"success": False, "message": self.message, **self.extra}


class ValidationError(AppError):
    """Malformed or missing input."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AppError):
    """Bad credentials or a bad/expired token."""
    status_code = status.HTTP_401_UNAUTHORIZED


class TokenInvalidError(AuthError):
    """Malformed token, bad signature, or a token of the wrong kind."""


class TokenExpiredError(AuthError):
    """Well-formed token whose `exp` has passed."""


class ForbiddenError(AppError):
    """Role or ownership mismatch."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    """Duplicate resource (e.g. email already registered)."""
    status_code = status.HTTP_409_CONFLICT


class InternalError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _field_errors(exc: RequestValidationError) -> list[dict]:
    out = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        out.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return out


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[error] %s %s -> %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": "Validation failed", "errors": _field_errors(exc)},
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    # Unique constraints are enforced by the store; a race past the pre-check lands here
    logger.warning("[error] integrity violation on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"success": False, "message": "Duplicate field value entered"},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[error] unhandled exception on %s %s", request.method, request.url.path)
    body = {"success": False, "message": "Server Error"}
    if settings.is_dev:
        body["error"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the single error boundary on the application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
