"""Error taxonomy and the uniform JSON error envelope.

Every failure leaves the API as::

    {"error": {"code": "RESERVATION_CONFLICT", "message": "...", "requestId": "..."}}

Domain code raises :class:`ApiError` (or one of its subclasses); the handlers
registered by :func:`install_error_handlers` translate those, FastAPI request
validation errors, Starlette HTTP errors and database failures into the
envelope. Database and unexpected errors are logged server side and surfaced
as generic 500s.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

AUTH_REQUIRED = "AUTH_REQUIRED"
AUTH_INVALID = "AUTH_INVALID"
FORBIDDEN = "FORBIDDEN"
TENANT_NOT_FOUND = "TENANT_NOT_FOUND"
NOT_FOUND = "NOT_FOUND"
VALIDATION_ERROR = "VALIDATION_ERROR"
MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
RESERVATION_PAST_TIME = "RESERVATION_PAST_TIME"
RESERVATION_INVALID_TIME = "RESERVATION_INVALID_TIME"
RESERVATION_CONFLICT = "RESERVATION_CONFLICT"
METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
RATE_LIMITED = "RATE_LIMITED"
DATABASE_ERROR = "DATABASE_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"

_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: VALIDATION_ERROR,
    status.HTTP_401_UNAUTHORIZED: AUTH_INVALID,
    status.HTTP_403_FORBIDDEN: FORBIDDEN,
    status.HTTP_404_NOT_FOUND: NOT_FOUND,
    status.HTTP_405_METHOD_NOT_ALLOWED: METHOD_NOT_ALLOWED,
    status.HTTP_429_TOO_MANY_REQUESTS: RATE_LIMITED,
}


class ApiError(Exception):
    """Base error carrying a machine-readable code and an HTTP status."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class AuthError(ApiError):
    """Raised when the bearer token is missing or cannot be validated."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = AUTH_INVALID


class PermissionDeniedError(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    code = FORBIDDEN


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    code = NOT_FOUND


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = VALIDATION_ERROR


class ConflictError(ApiError):
    """Raised when a requested interval overlaps an existing booking."""

    status_code = status.HTTP_409_CONFLICT
    code = RESERVATION_CONFLICT


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or uuid4().hex


def error_response(
    request: Request,
    code: str,
    message: str,
    status_code: int,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the uniform error envelope for ``request``."""

    request_id = _request_id(request)
    response_headers = {"X-Request-Id": request_id}
    if headers:
        response_headers.update(headers)
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "requestId": request_id}},
        headers=response_headers,
    )


def _validation_code(errors: list[dict[str, Any]]) -> str:
    if any(err.get("type") == "missing" for err in errors):
        return MISSING_REQUIRED_FIELD
    return VALIDATION_ERROR


def _validation_message(errors: list[dict[str, Any]]) -> str:
    parts = []
    for err in errors:
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


async def _handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    headers = None
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return error_response(request, exc.code, exc.message, exc.status_code, headers)


async def _handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = list(exc.errors())
    return error_response(
        request,
        _validation_code(errors),
        _validation_message(errors),
        status.HTTP_400_BAD_REQUEST,
    )


async def _handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _STATUS_CODES.get(exc.status_code, INTERNAL_ERROR)
    return error_response(
        request,
        code,
        str(exc.detail),
        exc.status_code,
        dict(exc.headers) if exc.headers else None,
    )


async def _handle_rate_limit(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(
        request,
        RATE_LIMITED,
        f"Rate limit exceeded: {exc.detail}",
        status.HTTP_429_TOO_MANY_REQUESTS,
    )


async def _handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error while handling %s %s", request.method, request.url.path)
    return error_response(
        request,
        DATABASE_ERROR,
        "Database operation failed",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error while handling %s %s", request.method, request.url.path)
    return error_response(
        request,
        INTERNAL_ERROR,
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def install_error_handlers(app: FastAPI) -> None:
    """Register the envelope-producing exception handlers on ``app``."""

    app.add_exception_handler(ApiError, _handle_api_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(RateLimitExceeded, _handle_rate_limit)
    app.add_exception_handler(SQLAlchemyError, _handle_database_error)
    app.add_exception_handler(Exception, _handle_unexpected)


__all__ = [
    "ApiError",
    "AuthError",
    "ConflictError",
    "NotFoundError",
    "PermissionDeniedError",
    "ValidationError",
    "error_response",
    "install_error_handlers",
]
