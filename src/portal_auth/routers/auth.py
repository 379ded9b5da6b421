"""Authentication router: login steps, session validation and logout."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials

from portal_auth.dependencies import (
    get_credential_service,
    get_login_service,
    get_session_service,
)
from portal_auth.exceptions import (
    AuthError,
    AuthErrorKind,
    InvalidCredentialsError,
    InvalidSecondFactorError,
    SessionExpiredError,
    TooManyAttemptsError,
)
from portal_auth.models.domain.login import (
    ActiveSession,
    AwaitingSecondFactor,
    LoginOutcome,
    Rejected,
)
from portal_auth.models.dto.auth import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordChangeRequest,
    PendingLoginResponse,
    SecondFactorRequest,
    SessionInfo,
    SessionsRevokedResponse,
    SessionTokenResponse,
)
from portal_auth.security.auth import (
    bearer_scheme,
    get_bearer_token,
    get_client_origin,
    get_current_session,
)
from portal_auth.security.rate_limit import (
    API_DEFAULT_LIMIT,
    AUTH_LOGIN_LIMIT,
    AUTH_LOGOUT_LIMIT,
    AUTH_SECOND_FACTOR_LIMIT,
    SENSITIVE_OPERATION_LIMIT,
    limiter,
)
from portal_auth.services.credential_service import CredentialService
from portal_auth.services.login_service import LoginService
from portal_auth.services.session_service import SessionService
from portal_auth.utils.security_events import SecurityEventType, log_security_event

logger = logging.getLogger(__name__)

router = APIRouter()

# Low-value backup code balance that triggers a warning in the login response
BACKUP_CODES_LOW_THRESHOLD = 3


def error_for_rejection(outcome: Rejected) -> AuthError:
    """Translate a rejected login outcome into the matching domain error."""
    if outcome.reason == AuthErrorKind.TOO_MANY_ATTEMPTS:
        return TooManyAttemptsError(outcome.retry_after or 1)
    if outcome.reason == AuthErrorKind.INVALID_SECOND_FACTOR:
        return InvalidSecondFactorError()
    if outcome.reason == AuthErrorKind.SESSION_EXPIRED:
        return SessionExpiredError("Session expired or invalid, please log in again")
    return InvalidCredentialsError()


def _to_response(outcome: LoginOutcome) -> LoginResponse:
    """Build the HTTP response for a login step outcome.

    Raises:
        AuthError: If the step was rejected
    """
    if isinstance(outcome, Rejected):
        raise error_for_rejection(outcome)

    if isinstance(outcome, AwaitingSecondFactor):
        return LoginResponse(
            status="pending",
            pending=PendingLoginResponse(
                pending_token=outcome.pending.token,
                expires_at=outcome.pending.expires_at,
            ),
        )

    session = outcome.session
    response = LoginResponse(
        status="authenticated",
        session=SessionTokenResponse(
            access_token=session.token,
            expires_at=session.expires_at,
            expires_in=session.expires_in,
        ),
    )
    if outcome.used_backup_code:
        response.backup_codes_remaining = outcome.backup_codes_remaining
        if (outcome.backup_codes_remaining or 0) <= BACKUP_CODES_LOW_THRESHOLD:
            response.warning = (
                f"Only {outcome.backup_codes_remaining} backup codes left. "
                "Consider regenerating them."
            )
    return response


@router.post("/login", response_model=LoginResponse)
@limiter.limit(AUTH_LOGIN_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    login_service: Annotated[LoginService, Depends(get_login_service)],
    user_agent: str | None = Header(default=None),
) -> LoginResponse:
    """Password step.

    Returns an authenticated session, or a pending token when the account
    requires a second factor.
    """
    outcome = await login_service.submit_credentials(
        body.email,
        body.password,
        origin=get_client_origin(request),
        user_agent=user_agent,
    )
    return _to_response(outcome)


@router.post("/second-factor", response_model=LoginResponse)
@limiter.limit(AUTH_SECOND_FACTOR_LIMIT)
async def complete_second_factor(
    request: Request,
    body: SecondFactorRequest,
    login_service: Annotated[LoginService, Depends(get_login_service)],
    user_agent: str | None = Header(default=None),
) -> LoginResponse:
    """Second-factor step with a TOTP code or a backup code."""
    outcome = await login_service.submit_second_factor(
        body.pending_token,
        body.code,
        origin=get_client_origin(request),
        user_agent=user_agent,
    )
    return _to_response(outcome)


@router.get("/session", response_model=SessionInfo)
@limiter.limit(API_DEFAULT_LIMIT)
async def validate_session(
    request: Request,
    current: Annotated[ActiveSession, Depends(get_current_session)],
) -> SessionInfo:
    """Validate the bearer token and describe its identity."""
    return SessionInfo(
        identity_id=current.identity_id,
        email=current.email,
        role=current.role.value,
        two_factor_complete=current.two_factor_complete,
        issued_at=current.issued_at,
        expires_at=current.expires_at,
    )


@router.post("/logout", response_model=MessageResponse)
@limiter.limit(AUTH_LOGOUT_LIMIT)
async def logout(
    request: Request,
    session_service: Annotated[SessionService, Depends(get_session_service)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> MessageResponse:
    """Delete the presented session. Always acknowledges, even for unknown tokens."""
    if credentials is not None and credentials.credentials:
        if await session_service.revoke(credentials.credentials):
            log_security_event(
                SecurityEventType.LOGOUT,
                ip_address=get_client_origin(request),
            )
    return MessageResponse(message="Logged out")


@router.post("/password", response_model=SessionsRevokedResponse)
@limiter.limit(SENSITIVE_OPERATION_LIMIT)
async def change_password(
    request: Request,
    body: PasswordChangeRequest,
    current: Annotated[ActiveSession, Depends(get_current_session)],
    token: Annotated[str, Depends(get_bearer_token)],
    credential_service: Annotated[CredentialService, Depends(get_credential_service)],
) -> SessionsRevokedResponse:
    """Change the password; every other session of the identity is revoked."""
    revoked = await credential_service.change_password(
        current.identity_id,
        body.current_password,
        body.new_password,
        current_token=token,
    )
    return SessionsRevokedResponse(revoked=revoked)
