"""Account-level limiting of failed authentication attempts.

Failures are counted per composite key (account email plus request origin)
inside a sliding window. A success is logged but never clears earlier
failures: the lockout ends only when failures age out of the window.
"""

import math
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.config import get_settings
from portal_auth.models.orm.base import utc_now
from portal_auth.repositories.login_attempt_repository import LoginAttemptRepository

UNKNOWN_ORIGIN = "unknown"


class AttemptLimiter:
    """Sliding-window failure counter backed by the attempt log."""

    def __init__(
        self,
        session: AsyncSession,
        max_failures: int | None = None,
        window: timedelta | None = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            session: Database session
            max_failures: Failures within the window that block the key
            window: Sliding window length
        """
        settings = get_settings()
        self.attempts = LoginAttemptRepository(session)
        self.max_failures = max_failures or settings.max_failed_login_attempts
        self.window = window or timedelta(minutes=settings.login_attempt_window_minutes)

    @staticmethod
    def build_key(email: str, origin: str | None) -> str:
        """Build the composite key for an account and request origin."""
        return f"{email.strip().lower()}|{origin or UNKNOWN_ORIGIN}"

    async def record_attempt(
        self,
        key: str,
        success: bool,
        user_id: UUID | None = None,
        now: datetime | None = None,
    ) -> None:
        """Append an attempt to the log.

        Args:
            key: Composite key from build_key
            success: Whether the attempt succeeded
            user_id: Identity, when known
            now: Attempt time (defaults to the current time)
        """
        await self.attempts.record(key, success, now or utc_now(), user_id)

    async def reserve(
        self,
        key: str,
        now: datetime | None = None,
        user_id: UUID | None = None,
    ) -> UUID | None:
        """Claim one attempt from the key's budget before the check runs.

        The attempt is logged as a failure up front; settle it with
        mark_success once the check passes. The caller must commit before
        doing slow work, since the key stays locked until then.

        Returns:
            Attempt ID, or None if the key is blocked
        """
        now = now or utc_now()
        return await self.attempts.reserve_failure(
            key, now, now - self.window, self.max_failures, user_id
        )

    async def mark_success(self, attempt_id: UUID, user_id: UUID | None = None) -> None:
        """Settle a reserved attempt as successful."""
        await self.attempts.mark_success(attempt_id, user_id)

    async def release(self, attempt_id: UUID) -> None:
        """Return a reserved attempt to the budget without judging it."""
        await self.attempts.release(attempt_id)

    async def _failures_in_window(self, key: str, now: datetime) -> list[datetime]:
        return await self.attempts.failure_times_since(key, now - self.window)

    async def is_blocked(self, key: str, now: datetime | None = None) -> bool:
        """Whether the key has reached the failure threshold within the window."""
        failures = await self._failures_in_window(key, now or utc_now())
        return len(failures) >= self.max_failures

    async def retry_after(self, key: str, now: datetime | None = None) -> int | None:
        """Seconds until the key drops below the threshold.

        Returns:
            Whole seconds (at least 1), or None if the key is not blocked
        """
        now = now or utc_now()
        failures = await self._failures_in_window(key, now)
        if len(failures) < self.max_failures:
            return None

        # The block lifts once enough of the oldest failures leave the window
        releasing = failures[len(failures) - self.max_failures]
        remaining = (releasing + self.window - now).total_seconds()
        return max(1, math.ceil(remaining))
