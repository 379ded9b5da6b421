"""Multi-step login protocol.

AWAITING_CREDENTIALS -> (AWAITING_SECOND_FACTOR ->) AUTHENTICATED, with
REJECTED reachable from either step. Each step returns a LoginOutcome instead
of raising, so callers branch on an explicit state.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.exceptions import AuthErrorKind, InvalidCredentialsError
from portal_auth.models.domain.login import (
    Authenticated,
    AwaitingSecondFactor,
    LoginOutcome,
    Rejected,
)
from portal_auth.models.orm.base import utc_now
from portal_auth.repositories.user_repository import UserRepository
from portal_auth.services.attempt_limiter import AttemptLimiter
from portal_auth.services.credential_service import CredentialService
from portal_auth.services.session_service import SessionService
from portal_auth.services.two_factor_service import TwoFactorService
from portal_auth.utils.security_events import SecurityEventType, log_security_event

logger = logging.getLogger(__name__)


class LoginService:
    """Orchestrates password and second-factor steps into an issued session.

    Every attempt is reserved against the limiter and committed before the
    check runs. The HTTP layer raises on rejection and rolls back whatever
    the step left uncommitted, never the reservation.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session."""
        self.session = session
        self.users = UserRepository(session)
        self.credentials = CredentialService(session)
        self.limiter = AttemptLimiter(session)
        self.sessions = SessionService(session)
        self.two_factor = TwoFactorService(session)

    async def _reject_blocked(
        self,
        key: str,
        now: datetime,
        email: str,
        ip_address: str | None,
    ) -> Rejected:
        retry_after = await self.limiter.retry_after(key, now)
        log_security_event(
            SecurityEventType.LOGIN_BLOCKED,
            user_email=email,
            ip_address=ip_address,
            details={"retry_after": retry_after},
            success=False,
        )
        return Rejected(reason=AuthErrorKind.TOO_MANY_ATTEMPTS, retry_after=retry_after)

    async def submit_credentials(
        self,
        email: str,
        password: str,
        origin: str | None = None,
        user_agent: str | None = None,
        now: datetime | None = None,
    ) -> LoginOutcome:
        """Run the password step.

        Args:
            email: Email (case-insensitive)
            password: Plain text password
            origin: Client IP address, part of the attempt key
            user_agent: Client user agent
            now: Current time (defaults to the current time)

        Returns:
            Authenticated for accounts without a second factor,
            AwaitingSecondFactor for accounts requiring one,
            Rejected(too_many_attempts | invalid_credentials) otherwise
        """
        now = now or utc_now()
        key = self.limiter.build_key(email, origin)

        # The attempt is charged before bcrypt runs, so parallel guesses
        # cannot outrun the limit
        attempt_id = await self.limiter.reserve(key, now)
        await self.session.commit()
        if attempt_id is None:
            return await self._reject_blocked(key, now, email, origin)

        try:
            identity = await self.credentials.verify(email, password)
        except InvalidCredentialsError:
            log_security_event(
                SecurityEventType.LOGIN_FAILED,
                user_email=email,
                ip_address=origin,
                user_agent=user_agent,
                details={"reason": "invalid_credentials"},
                success=False,
            )
            return Rejected(reason=AuthErrorKind.INVALID_CREDENTIALS)

        await self.limiter.mark_success(attempt_id, user_id=identity.id)

        if identity.requires_2fa:
            pending = await self.sessions.create_pending(
                identity.id, now=now, user_agent=user_agent, ip_address=origin
            )
            await self.session.commit()
            log_security_event(
                SecurityEventType.SECOND_FACTOR_REQUIRED,
                user_id=identity.id,
                ip_address=origin,
                user_agent=user_agent,
            )
            return AwaitingSecondFactor(pending=pending)

        issued = await self.sessions.issue(
            identity.id,
            two_factor_complete=True,
            now=now,
            user_agent=user_agent,
            ip_address=origin,
        )
        await self.users.record_login(identity.id, now)
        await self.session.commit()

        log_security_event(
            SecurityEventType.LOGIN_SUCCESS,
            user_id=identity.id,
            ip_address=origin,
            user_agent=user_agent,
        )
        return Authenticated(session=issued)

    async def submit_second_factor(
        self,
        pending_token: str,
        code: str,
        origin: str | None = None,
        user_agent: str | None = None,
        now: datetime | None = None,
    ) -> LoginOutcome:
        """Run the second-factor step.

        A wrong code leaves the pending login in place, so the user may retry
        until it expires or the attempt limiter blocks the account. Spending
        the code and consuming the pending login share one transaction: a
        request that loses the race for the pending login gets its backup
        code or TOTP step back.

        Args:
            pending_token: Raw pending login token
            code: 6-digit TOTP code or backup code
            origin: Client IP address, part of the attempt key
            user_agent: Client user agent
            now: Current time (defaults to the current time)

        Returns:
            Authenticated on success, otherwise
            Rejected(session_expired | too_many_attempts | invalid_second_factor)
        """
        now = now or utc_now()

        pending = await self.sessions.get_pending(pending_token, now)
        user = await self.users.get_by_id(pending.user_id) if pending is not None else None
        if pending is None or user is None or not user.is_active:
            return Rejected(reason=AuthErrorKind.SESSION_EXPIRED)

        # Rollbacks below expire loaded instances
        user_id, email = user.id, user.email

        key = self.limiter.build_key(email, origin)
        attempt_id = await self.limiter.reserve(key, now, user_id=user_id)
        await self.session.commit()
        if attempt_id is None:
            return await self._reject_blocked(key, now, email, origin)

        accepted, used_backup_code = await self.two_factor.verify_second_factor(user_id, code, now)
        if not accepted:
            log_security_event(
                SecurityEventType.SECOND_FACTOR_FAILED,
                user_id=user_id,
                ip_address=origin,
                user_agent=user_agent,
                success=False,
            )
            return Rejected(reason=AuthErrorKind.INVALID_SECOND_FACTOR)

        # Only the request that deletes the pending row may mint a session
        if not await self.sessions.consume_pending(pending_token, now):
            await self.session.rollback()
            await self.limiter.release(attempt_id)
            await self.session.commit()
            return Rejected(reason=AuthErrorKind.SESSION_EXPIRED)

        issued = await self.sessions.issue(
            user_id,
            two_factor_complete=True,
            now=now,
            user_agent=user_agent,
            ip_address=origin,
        )
        await self.limiter.mark_success(attempt_id)
        await self.users.record_login(user_id, now)
        remaining = (
            await self.two_factor.backup_codes.remaining(user_id) if used_backup_code else None
        )
        await self.session.commit()

        log_security_event(
            SecurityEventType.LOGIN_SUCCESS,
            user_id=user_id,
            ip_address=origin,
            user_agent=user_agent,
            details={"second_factor": "backup_code" if used_backup_code else "totp"},
        )
        return Authenticated(
            session=issued,
            used_backup_code=used_backup_code,
            backup_codes_remaining=remaining,
        )
