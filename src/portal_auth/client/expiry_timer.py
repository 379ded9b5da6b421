"""Client-side auto-logout timer mirroring the server's session expiry.

The timer is advisory: it only ever removes access locally. The server's
session validation stays the sole authority for granting access.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Protocol

from portal_auth.client.state import ClientSessionState, ClientStateStore

logger = logging.getLogger(__name__)


class LogoutReason(StrEnum):
    """Why the client dropped its session."""

    EXPIRED = "expired"
    SESSION_INVALID = "session_invalid"
    USER = "user"


class TimerHandle(Protocol):
    """A scheduled one-shot callback."""

    def cancel(self) -> None:
        """Cancel the callback. Must be a no-op if already fired or cancelled."""
        ...


class Scheduler(Protocol):
    """Schedules one-shot callbacks, independent of any UI framework."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class ClientExpiryTimer:
    """Forces a local logout once the session TTL has elapsed.

    At most one callback is outstanding at any time: starting a new session
    or logging out cancels the previous one first.
    """

    def __init__(
        self,
        store: ClientStateStore,
        scheduler: Scheduler,
        clock: Callable[[], float] = time.time,
        on_logout: Callable[[LogoutReason], None] | None = None,
    ) -> None:
        """Initialize the timer.

        Args:
            store: Persistent state store
            scheduler: One-shot callback scheduler
            clock: Wall clock returning Unix seconds
            on_logout: Notified whenever the local session is dropped
        """
        self.store = store
        self.scheduler = scheduler
        self.clock = clock
        self.on_logout = on_logout
        self._handle: TimerHandle | None = None
        self._state: ClientSessionState | None = None

    @property
    def is_active(self) -> bool:
        """Whether a session is held and its logout callback is pending."""
        return self._state is not None and self._handle is not None

    @property
    def token(self) -> str | None:
        """The bearer token of the current local session."""
        return self._state.token if self._state is not None else None

    def remaining(self) -> float | None:
        """Seconds until forced logout, or None without a session."""
        if self._state is None:
            return None
        return max(0.0, self._state.expires_at - self.clock())

    def restore(self) -> bool:
        """Resume from persisted state after a client restart.

        An already elapsed session is dropped at once, without contacting
        the server and without scheduling anything.

        Returns:
            True if a live session was restored
        """
        state = self.store.load()
        if state is None:
            return False

        elapsed = self.clock() - state.issued_at
        if elapsed >= state.ttl_seconds:
            self._state = state
            self.force_logout(LogoutReason.EXPIRED)
            return False

        self._activate(state, state.ttl_seconds - elapsed)
        return True

    def start(self, token: str, ttl_seconds: int, issued_at: float | None = None) -> None:
        """Begin tracking a freshly issued session.

        Args:
            token: Bearer token
            ttl_seconds: Session lifetime reported by the server
            issued_at: Local issuance time (defaults to now)
        """
        self._cancel()
        state = ClientSessionState(
            token=token,
            issued_at=self.clock() if issued_at is None else issued_at,
            ttl_seconds=ttl_seconds,
        )
        self.store.save(state)
        self._activate(state, state.expires_at - self.clock())

    def logout(self) -> None:
        """Explicit user logout: cancel the callback and clear persisted state."""
        self._drop(LogoutReason.USER)

    def handle_session_invalid(self) -> None:
        """React to a server response saying the session is no longer valid."""
        self.force_logout(LogoutReason.SESSION_INVALID)

    def force_logout(self, reason: LogoutReason = LogoutReason.EXPIRED) -> None:
        """Drop the local session regardless of what the server thinks."""
        self._drop(reason)

    def _activate(self, state: ClientSessionState, delay: float) -> None:
        self._cancel()
        self._state = state
        self._handle = self.scheduler.call_later(max(0.0, delay), self._on_elapsed)

    def _on_elapsed(self) -> None:
        self._handle = None
        logger.info("Client session TTL elapsed, logging out")
        self.force_logout(LogoutReason.EXPIRED)

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _drop(self, reason: LogoutReason) -> None:
        had_session = self._state is not None
        self._cancel()
        self._state = None
        self.store.clear()
        if had_session and self.on_logout is not None:
            self.on_logout(reason)
