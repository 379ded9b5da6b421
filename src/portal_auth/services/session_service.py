"""Server-side session registry.

Sessions are bound to the SHA-256 hash of an opaque bearer token and carry
an absolute expiry fixed at issuance. Validation is a pure read: an expired
record is reported as expired, never extended and never deleted on the spot.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.config import get_settings
from portal_auth.models.domain.identity import UserRole
from portal_auth.models.domain.login import (
    ActiveSession,
    IssuedSession,
    PendingLogin,
    SessionStatus,
    SessionValidation,
)
from portal_auth.models.orm.base import utc_now
from portal_auth.models.orm.pending_login import PendingLoginORM
from portal_auth.repositories.session_repository import (
    AuthSessionRepository,
    PendingLoginRepository,
)
from portal_auth.security.tokens import generate_token, hash_token
from portal_auth.utils.security_events import SecurityEventType, log_security_event

logger = logging.getLogger(__name__)


class SessionService:
    """Issues, validates and revokes sessions and pending logins."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session."""
        self.session = session
        self.settings = get_settings()
        self.sessions = AuthSessionRepository(session)
        self.pending = PendingLoginRepository(session)

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(seconds=self.settings.session_ttl_seconds)

    @property
    def pending_ttl(self) -> timedelta:
        return timedelta(seconds=self.settings.pending_login_ttl_seconds)

    async def issue(
        self,
        identity_id: UUID,
        two_factor_complete: bool,
        now: datetime | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> IssuedSession:
        """Mint a new session.

        Args:
            identity_id: Identity UUID
            two_factor_complete: Whether a second factor was verified
            now: Issuance time (defaults to the current time)
            user_agent: Client user agent
            ip_address: Client IP address

        Returns:
            IssuedSession holding the raw token; only its hash is stored
        """
        issued_at = now or utc_now()
        expires_at = issued_at + self.session_ttl
        token = generate_token()

        await self.sessions.create_session(
            user_id=identity_id,
            token_hash=hash_token(token),
            two_factor_complete=two_factor_complete,
            issued_at=issued_at,
            expires_at=expires_at,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        log_security_event(
            SecurityEventType.SESSION_CREATED,
            user_id=identity_id,
            ip_address=ip_address,
            user_agent=user_agent,
            details={"two_factor_complete": two_factor_complete},
        )
        return IssuedSession(
            token=token,
            identity_id=identity_id,
            two_factor_complete=two_factor_complete,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    async def validate(self, token: str, now: datetime | None = None) -> SessionValidation:
        """Validate a bearer token.

        Args:
            token: Raw bearer token
            now: Time of presentation (defaults to the current time)

        Returns:
            SessionValidation with status valid, expired or not_found
        """
        now = now or utc_now()
        record = await self.sessions.get_by_hash(hash_token(token))

        # A deactivated identity invalidates all of its sessions
        if record is None or not record.user.is_active:
            return SessionValidation(status=SessionStatus.NOT_FOUND)

        if now >= record.expires_at:
            return SessionValidation(status=SessionStatus.EXPIRED)

        return SessionValidation(
            status=SessionStatus.VALID,
            session=ActiveSession(
                session_id=record.id,
                identity_id=record.user_id,
                email=record.user.email,
                role=UserRole(record.user.role),
                two_factor_complete=record.two_factor_complete,
                issued_at=record.issued_at,
                expires_at=record.expires_at,
            ),
        )

    async def revoke(self, token: str) -> bool:
        """Delete the session for a raw token (logout).

        Returns:
            True if a session was deleted; revoking twice is harmless
        """
        revoked = await self.sessions.delete_by_hash(hash_token(token))
        if revoked:
            log_security_event(SecurityEventType.SESSION_REVOKED)
        return revoked

    async def revoke_all_for_user(self, identity_id: UUID, keep_token: str | None = None) -> int:
        """Delete every session of an identity.

        Args:
            identity_id: Identity UUID
            keep_token: Raw token of a session to spare

        Returns:
            Number of sessions deleted
        """
        keep_hash = hash_token(keep_token) if keep_token else None
        return await self.sessions.delete_all_for_user(identity_id, keep_hash=keep_hash)

    async def create_pending(
        self,
        identity_id: UUID,
        now: datetime | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> PendingLogin:
        """Create a pending second-factor login.

        Returns:
            PendingLogin holding the raw pending token
        """
        now = now or utc_now()
        expires_at = now + self.pending_ttl
        token = generate_token()

        await self.pending.create_pending(
            user_id=identity_id,
            token_hash=hash_token(token),
            expires_at=expires_at,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        return PendingLogin(token=token, identity_id=identity_id, expires_at=expires_at)

    async def get_pending(self, token: str, now: datetime | None = None) -> PendingLoginORM | None:
        """Look up a live pending login by raw token."""
        return await self.pending.get_live_by_hash(hash_token(token), now or utc_now())

    async def consume_pending(self, token: str, now: datetime | None = None) -> bool:
        """Destroy a pending login; True only for the single caller that removed it."""
        return await self.pending.consume(hash_token(token), now or utc_now())

    async def purge_expired(self, now: datetime | None = None) -> tuple[int, int]:
        """Delete expired sessions and pending logins.

        Returns:
            Tuple of (sessions deleted, pending logins deleted)
        """
        now = now or utc_now()
        sessions = await self.sessions.purge_expired(now)
        pending = await self.pending.purge_expired(now)
        return sessions, pending
