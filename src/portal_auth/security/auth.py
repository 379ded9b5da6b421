"""Request authentication and authorization dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.database import get_db
from portal_auth.exceptions import SessionExpiredError, UnauthorizedError
from portal_auth.models.domain.identity import UserRole
from portal_auth.models.domain.login import ActiveSession, SessionStatus
from portal_auth.security.rate_limit import get_real_client_ip
from portal_auth.services.session_service import SessionService

bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Extract the raw bearer token from the Authorization header.

    Raises:
        SessionExpiredError: If no bearer token was presented
    """
    if credentials is None or not credentials.credentials:
        raise SessionExpiredError("Authentication required")
    return credentials.credentials


async def get_current_session(
    token: Annotated[str, Depends(get_bearer_token)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ActiveSession:
    """Resolve the bearer token to a live session.

    Args:
        token: Raw bearer token
        db: Database session

    Returns:
        The validated session and its identity

    Raises:
        SessionExpiredError: If the token is unknown, expired or its identity is inactive
    """
    validation = await SessionService(db).validate(token)
    if validation.session is None:
        if validation.status == SessionStatus.EXPIRED:
            raise SessionExpiredError("Session expired")
        raise SessionExpiredError()
    return validation.session


async def require_admin(
    current: Annotated[ActiveSession, Depends(get_current_session)],
) -> ActiveSession:
    """Require the current session to belong to an admin.

    Raises:
        UnauthorizedError: If the identity lacks the admin role (never a logout signal)
    """
    if current.role != UserRole.ADMIN:
        raise UnauthorizedError("Admin access required")
    return current


def get_client_origin(request: Request) -> str | None:
    """Client IP used as the origin half of attempt-limiter keys."""
    return get_real_client_ip(request) if request.client is not None else None
