"""Exception handlers that map domain errors to HTTP without leaking internals.

Every error body has the shape ``{"detail": <safe message>, "code": <machine code>}``.
Authentication failures (401) are kept apart from role failures (403) and
datastore outages (503): clients log out on the first kind only.
"""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal_auth.config import get_settings
from portal_auth.exceptions import (
    AuthError,
    AuthErrorKind,
    ConflictError,
    NotFoundError,
    PortalAuthError,
    TooManyAttemptsError,
    ValidationError,
    WeakPasswordError,
)
from portal_auth.utils.secure_logging import log_error

logger = logging.getLogger(__name__)

# 422 is spelled differently across Starlette releases
HTTP_422 = 422

# Safe error messages that can be shown to users
SAFE_ERROR_MESSAGES = {
    400: "Invalid request",
    401: "Authentication required",
    403: "Access denied",
    404: "Resource not found",
    405: "Method not allowed",
    409: "Conflict with existing resource",
    422: "Invalid input data",
    429: "Too many requests",
    500: "Internal server error",
    503: "Service temporarily unavailable",
}

# Error messages that are safe to pass through
ALLOWED_ERROR_PATTERNS = [
    "Invalid credentials",
    "Authentication required",
    "Too many failed attempts",
    "Invalid two-factor authentication code",
    "Session expired",
    "Insufficient role",
    "Admin access required",
    "User not found",
    "Two-factor authentication is already enabled",
    "Two-factor authentication is not enabled",
    "Two-factor setup has not been started",
    "Password does not meet requirements",
    "Current password is incorrect",
    "Invalid verification code",
    "User with this email already exists",
]

AUTH_ERROR_STATUS = {
    AuthErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.TOO_MANY_ATTEMPTS: status.HTTP_429_TOO_MANY_REQUESTS,
    AuthErrorKind.INVALID_SECOND_FACTOR: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.SESSION_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
}

AUTH_ERROR_CODES = {
    AuthErrorKind.INVALID_CREDENTIALS: "invalid_credentials",
    AuthErrorKind.TOO_MANY_ATTEMPTS: "too_many_attempts",
    AuthErrorKind.INVALID_SECOND_FACTOR: "invalid_second_factor",
    AuthErrorKind.SESSION_EXPIRED: "session_expired",
    AuthErrorKind.UNAUTHORIZED: "forbidden",
}

HTTP_ERROR_CODES = {
    400: "bad_request",
    401: "session_expired",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
    500: "internal_error",
    503: "service_unavailable",
}


def _get_cors_headers(request: Request) -> dict[str, str]:
    """CORS headers for error responses.

    Exception handlers run outside the CORS middleware, so allowed origins
    must be echoed here as well.
    """
    origin = request.headers.get("origin")
    if origin and origin in get_settings().cors_origins_list:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
        }
    return {}


def is_safe_error_message(message: str) -> bool:
    """Check if an error message is safe to expose to users."""
    message_lower = message.lower()
    return any(pattern.lower() in message_lower for pattern in ALLOWED_ERROR_PATTERNS)


def sanitize_error_detail(detail: Any, status_code: int) -> str:
    """Sanitize error detail to prevent information disclosure.

    Args:
        detail: Original error detail
        status_code: HTTP status code

    Returns:
        Safe error message
    """
    if isinstance(detail, str):
        if is_safe_error_message(detail):
            return detail
    elif isinstance(detail, list):
        # Validation errors: expose field names and messages only
        safe_errors = []
        for error in detail:
            if isinstance(error, dict):
                loc = error.get("loc", [])
                msg = error.get("msg", "Invalid value")
                field = loc[-1] if loc else "field"
                if isinstance(field, str) and not field.startswith("_"):
                    safe_errors.append(f"{field}: {msg}")
        if safe_errors:
            return "; ".join(safe_errors[:3])

    return SAFE_ERROR_MESSAGES.get(status_code, "Request failed")


def _error_response(
    request: Request,
    status_code: int,
    detail: Any,
    code: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "code": code},
        headers={**_get_cors_headers(request), **(headers or {})},
    )


def status_for_error(exc: PortalAuthError) -> int:
    """HTTP status for a domain error."""
    if isinstance(exc, AuthError):
        return AUTH_ERROR_STATUS[exc.kind]
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_400_BAD_REQUEST


async def portal_auth_exception_handler(request: Request, exc: PortalAuthError) -> JSONResponse:
    """Handle domain exceptions raised by services and dependencies.

    Args:
        request: FastAPI request
        exc: Domain exception

    Returns:
        JSONResponse with status, code and any protocol headers
    """
    status_code = status_for_error(exc)
    headers: dict[str, str] = {}

    if isinstance(exc, AuthError):
        code = AUTH_ERROR_CODES[exc.kind]
        if exc.kind == AuthErrorKind.SESSION_EXPIRED:
            headers["WWW-Authenticate"] = 'Bearer error="invalid_token"'
        elif isinstance(exc, TooManyAttemptsError):
            headers["Retry-After"] = str(exc.retry_after)
    else:
        code = HTTP_ERROR_CODES.get(status_code, "error")

    detail: Any = exc.message
    if get_settings().debug and exc.details:
        detail = {"message": exc.message, **exc.details}
    elif not is_safe_error_message(exc.message):
        detail = SAFE_ERROR_MESSAGES.get(status_code, "Request failed")

    if isinstance(exc, WeakPasswordError):
        # Policy violations are needed by the user and reveal nothing internal
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "code": code, "errors": exc.details["errors"]},
            headers=_get_cors_headers(request),
        )
    return _error_response(request, status_code, detail, code, headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with sanitized messages."""
    detail = exc.detail if get_settings().debug else sanitize_error_detail(exc.detail, exc.status_code)
    return _error_response(
        request,
        exc.status_code,
        detail,
        HTTP_ERROR_CODES.get(exc.status_code, "error"),
        dict(exc.headers) if exc.headers else None,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors with sanitized messages."""
    logger.warning("Validation error for %s %s", request.method, request.url.path)

    detail: Any = exc.errors() if get_settings().debug else sanitize_error_detail(exc.errors(), HTTP_422)
    return _error_response(request, HTTP_422, detail, HTTP_ERROR_CODES[HTTP_422])


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Report datastore failures as a service error, never as an auth failure."""
    log_error(logger, f"Database error for {request.method} {request.url.path}", exc)
    return _error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        SAFE_ERROR_MESSAGES[503],
        HTTP_ERROR_CODES[503],
        {"Retry-After": "30"},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking information."""
    logger.error("Unhandled exception for %s %s", request.method, request.url.path, exc_info=True)

    detail: Any = SAFE_ERROR_MESSAGES[500]
    if get_settings().debug:
        detail = {"message": str(exc), "type": type(exc).__name__}
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, detail, HTTP_ERROR_CODES[500])
