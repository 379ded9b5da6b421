"""Session and pending-login repositories."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import selectinload

from portal_auth.models.orm.auth_session import AuthSessionORM
from portal_auth.models.orm.pending_login import PendingLoginORM
from portal_auth.repositories.base import BaseRepository


class AuthSessionRepository(BaseRepository[AuthSessionORM]):
    """Repository for authenticated sessions."""

    model = AuthSessionORM

    async def get_by_hash(self, token_hash: str) -> AuthSessionORM | None:
        """Get a session and its user by token hash, expired or not.

        Args:
            token_hash: Token hash

        Returns:
            AuthSessionORM or None
        """
        result = await self.session.execute(
            select(AuthSessionORM)
            .options(selectinload(AuthSessionORM.user))
            .where(AuthSessionORM.token_hash == token_hash)
        )
        return result.scalar_one_or_none()

    async def create_session(
        self,
        user_id: UUID,
        token_hash: str,
        two_factor_complete: bool,
        issued_at: datetime,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthSessionORM:
        """Create a session record.

        Args:
            user_id: User UUID
            token_hash: Hashed token
            two_factor_complete: Whether a second factor was verified
            issued_at: Issuance time
            expires_at: Absolute expiry
            user_agent: User agent string
            ip_address: IP address

        Returns:
            Created AuthSessionORM
        """
        return await self.create(
            user_id=user_id,
            token_hash=token_hash,
            two_factor_complete=two_factor_complete,
            issued_at=issued_at,
            expires_at=expires_at,
            user_agent=user_agent,
            ip_address=ip_address,
        )

    async def delete_by_hash(self, token_hash: str) -> bool:
        """Delete a session by token hash.

        Returns:
            True if a session was deleted
        """
        result = await self.session.execute(
            delete(AuthSessionORM)
            .where(AuthSessionORM.token_hash == token_hash)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def delete_all_for_user(self, user_id: UUID, keep_hash: str | None = None) -> int:
        """Delete every session of a user.

        Args:
            user_id: User UUID
            keep_hash: Token hash of a session to spare (the caller's own)

        Returns:
            Number of sessions deleted
        """
        stmt = delete(AuthSessionORM).where(AuthSessionORM.user_id == user_id)
        if keep_hash is not None:
            stmt = stmt.where(AuthSessionORM.token_hash != keep_hash)
        result = await self.session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount

    async def purge_expired(self, now: datetime) -> int:
        """Delete sessions at or past their expiry.

        Returns:
            Number of sessions deleted
        """
        result = await self.session.execute(
            delete(AuthSessionORM)
            .where(AuthSessionORM.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class PendingLoginRepository(BaseRepository[PendingLoginORM]):
    """Repository for pending second-factor logins."""

    model = PendingLoginORM

    async def create_pending(
        self,
        user_id: UUID,
        token_hash: str,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> PendingLoginORM:
        """Create a pending login record."""
        return await self.create(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            user_agent=user_agent,
            ip_address=ip_address,
        )

    async def get_live_by_hash(self, token_hash: str, now: datetime) -> PendingLoginORM | None:
        """Get a pending login that has not yet expired.

        Args:
            token_hash: Token hash
            now: Current time

        Returns:
            PendingLoginORM or None if missing or expired
        """
        result = await self.session.execute(
            select(PendingLoginORM)
            .where(PendingLoginORM.token_hash == token_hash)
            .where(PendingLoginORM.expires_at > now)
        )
        return result.scalar_one_or_none()

    async def consume(self, token_hash: str, now: datetime) -> bool:
        """Atomically delete a live pending login.

        Only the caller whose DELETE removes the row may go on to mint a session.

        Returns:
            True if this call consumed the pending login
        """
        result = await self.session.execute(
            delete(PendingLoginORM)
            .where(PendingLoginORM.token_hash == token_hash)
            .where(PendingLoginORM.expires_at > now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_all_for_user(self, user_id: UUID) -> int:
        """Delete every pending login of a user."""
        result = await self.session.execute(
            delete(PendingLoginORM)
            .where(PendingLoginORM.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def purge_expired(self, now: datetime) -> int:
        """Delete pending logins at or past their expiry."""
        result = await self.session.execute(
            delete(PendingLoginORM)
            .where(PendingLoginORM.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
