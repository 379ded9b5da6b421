"""Login and session outcome models.

Login steps return an explicit tagged union instead of boolean flags:
``Authenticated | AwaitingSecondFactor | Rejected``.
"""

from datetime import datetime
from enum import StrEnum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel

from portal_auth.exceptions import AuthErrorKind
from portal_auth.models.domain.identity import UserRole


class LoginState(StrEnum):
    """States of the multi-step login protocol."""

    AWAITING_CREDENTIALS = "awaiting_credentials"
    AWAITING_SECOND_FACTOR = "awaiting_second_factor"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


class IssuedSession(BaseModel):
    """A freshly minted session. The raw token is only ever held here."""

    token: str
    identity_id: UUID
    two_factor_complete: bool
    issued_at: datetime
    expires_at: datetime

    @property
    def expires_in(self) -> int:
        """Lifetime in whole seconds."""
        return int((self.expires_at - self.issued_at).total_seconds())


class PendingLogin(BaseModel):
    """Intermediate credential: password verified, second factor outstanding."""

    token: str
    identity_id: UUID
    expires_at: datetime


class Authenticated(BaseModel):
    """All required factors succeeded."""

    state: Literal[LoginState.AUTHENTICATED] = LoginState.AUTHENTICATED
    session: IssuedSession
    used_backup_code: bool = False
    backup_codes_remaining: int | None = None


class AwaitingSecondFactor(BaseModel):
    """Password accepted; a TOTP or backup code is required next."""

    state: Literal[LoginState.AWAITING_SECOND_FACTOR] = LoginState.AWAITING_SECOND_FACTOR
    pending: PendingLogin


class Rejected(BaseModel):
    """Terminal failure of a login step."""

    state: Literal[LoginState.REJECTED] = LoginState.REJECTED
    reason: AuthErrorKind
    retry_after: int | None = None


LoginOutcome = Authenticated | AwaitingSecondFactor | Rejected


class SessionStatus(StrEnum):
    """Result kinds of session validation."""

    VALID = "valid"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


class ActiveSession(BaseModel):
    """A validated session and the identity it belongs to."""

    session_id: UUID
    identity_id: UUID
    email: str
    role: UserRole
    two_factor_complete: bool
    issued_at: datetime
    expires_at: datetime


class SessionValidation(BaseModel):
    """Outcome of validating a bearer token."""

    status: SessionStatus
    session: ActiveSession | None = None

    @property
    def is_valid(self) -> bool:
        """Whether the token maps to a live session."""
        return self.status == SessionStatus.VALID
