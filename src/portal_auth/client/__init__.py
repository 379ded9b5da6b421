"""Client-side session handling: persisted state, expiry timer and API client."""

from portal_auth.client.api import AuthApiError, AuthClient
from portal_auth.client.expiry_timer import (
    AsyncioScheduler,
    ClientExpiryTimer,
    LogoutReason,
    Scheduler,
    TimerHandle,
)
from portal_auth.client.state import ClientSessionState, ClientStateStore

__all__ = [
    "AsyncioScheduler",
    "AuthApiError",
    "AuthClient",
    "ClientExpiryTimer",
    "ClientSessionState",
    "ClientStateStore",
    "LogoutReason",
    "Scheduler",
    "TimerHandle",
]
