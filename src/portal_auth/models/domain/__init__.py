"""Domain models package."""

from portal_auth.models.domain.identity import Identity, UserRole
from portal_auth.models.domain.login import (
    ActiveSession,
    Authenticated,
    AwaitingSecondFactor,
    IssuedSession,
    LoginOutcome,
    LoginState,
    PendingLogin,
    Rejected,
    SessionStatus,
    SessionValidation,
)

__all__ = [
    "ActiveSession",
    "Authenticated",
    "AwaitingSecondFactor",
    "Identity",
    "IssuedSession",
    "LoginOutcome",
    "LoginState",
    "PendingLogin",
    "Rejected",
    "SessionStatus",
    "SessionValidation",
    "UserRole",
]
