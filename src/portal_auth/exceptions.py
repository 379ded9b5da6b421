"""Domain-specific exceptions for the portal auth API.

These exceptions provide a clean separation between service-layer errors
and HTTP responses, avoiding string matching in routers.
"""

from enum import StrEnum
from typing import Any


class AuthErrorKind(StrEnum):
    """Machine-readable authentication failure kinds."""

    INVALID_CREDENTIALS = "invalid_credentials"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    INVALID_SECOND_FACTOR = "invalid_second_factor"
    SESSION_EXPIRED = "session_expired"
    UNAUTHORIZED = "unauthorized"


class PortalAuthError(Exception):
    """Base exception for all portal auth errors."""

    def __init__(self, message: str = "An error occurred", details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Authentication Errors (401 / 403 / 429)
# =============================================================================


class AuthError(PortalAuthError):
    """Base class for authentication and authorization failures."""

    kind: AuthErrorKind


class InvalidCredentialsError(AuthError):
    """Raised for a wrong email or password.

    The same error is used for both cases to prevent account enumeration.
    """

    kind = AuthErrorKind.INVALID_CREDENTIALS

    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class TooManyAttemptsError(AuthError):
    """Raised when the failed attempt budget for an account is exhausted."""

    kind = AuthErrorKind.TOO_MANY_ATTEMPTS

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(
            "Too many failed attempts. Try again later.",
            {"retry_after": retry_after},
        )


class InvalidSecondFactorError(AuthError):
    """Raised for a bad TOTP code or a bad or already used backup code."""

    kind = AuthErrorKind.INVALID_SECOND_FACTOR

    def __init__(self) -> None:
        super().__init__("Invalid two-factor authentication code")


class SessionExpiredError(AuthError):
    """Raised when a pending or full session is missing or past its expiry."""

    kind = AuthErrorKind.SESSION_EXPIRED

    def __init__(self, message: str = "Session expired or invalid") -> None:
        super().__init__(message)


class UnauthorizedError(AuthError):
    """Raised for a valid session lacking the required role.

    Distinct from SessionExpiredError: clients must not log out on this error.
    """

    kind = AuthErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Insufficient role") -> None:
        super().__init__(message)


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFoundError(PortalAuthError):
    """Base class for resource not found errors."""

    pass


class UserNotFoundError(NotFoundError):
    """Raised when a user cannot be found."""

    def __init__(self, user_id: str | None = None) -> None:
        message = "User not found"
        details = {"user_id": str(user_id)} if user_id else {}
        super().__init__(message, details)


# =============================================================================
# Conflict Errors (409)
# =============================================================================


class ConflictError(PortalAuthError):
    """Base class for resource conflict errors."""

    pass


class TwoFactorStateError(ConflictError):
    """Raised when a two-factor operation does not fit the current 2FA state."""

    pass


class UserAlreadyExistsError(ConflictError):
    """Raised when trying to create a user that already exists."""

    def __init__(self, email: str | None = None) -> None:
        message = "User with this email already exists"
        details = {"email": email} if email else {}
        super().__init__(message, details)


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(PortalAuthError):
    """Base class for validation errors."""

    pass


class WeakPasswordError(ValidationError):
    """Raised when a new password does not meet the complexity policy."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Password does not meet requirements", {"errors": errors})


class IncorrectPasswordError(ValidationError):
    """Raised when a signed-in user re-enters a wrong password.

    A 400, not a 401: the session is still valid and must not be dropped.
    """

    def __init__(self) -> None:
        super().__init__("Current password is incorrect")


class InvalidVerificationCodeError(ValidationError):
    """Raised for a wrong TOTP or backup code on a signed-in management action."""

    def __init__(self) -> None:
        super().__init__("Invalid verification code")
