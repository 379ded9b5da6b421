"""TOTP secret repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, or_, select, update

from portal_auth.models.orm.base import utc_now
from portal_auth.models.orm.totp_secret import TotpSecretORM
from portal_auth.repositories.base import BaseRepository


class TotpSecretRepository(BaseRepository[TotpSecretORM]):
    """Repository for per-user TOTP secrets."""

    model = TotpSecretORM

    async def get_by_user_id(self, user_id: UUID) -> TotpSecretORM | None:
        """Get the TOTP secret of a user, enabled or not.

        Always reloads from the database since claim_step updates rows
        without touching loaded instances.

        Args:
            user_id: User UUID

        Returns:
            TotpSecretORM or None
        """
        result = await self.session.execute(
            select(TotpSecretORM)
            .where(TotpSecretORM.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[TotpSecretORM]:
        """Get every stored secret, enabled or not."""
        result = await self.session.execute(select(TotpSecretORM))
        return list(result.scalars().all())

    async def store_unconfirmed(self, user_id: UUID, secret_encrypted: bytes) -> TotpSecretORM:
        """Store a new, not yet enabled secret, replacing any unconfirmed one.

        Args:
            user_id: User UUID
            secret_encrypted: Encrypted base32 secret

        Returns:
            The stored TotpSecretORM
        """
        existing = await self.get_by_user_id(user_id)
        if existing is None:
            return await self.create(user_id=user_id, secret_encrypted=secret_encrypted)

        existing.secret_encrypted = secret_encrypted
        existing.is_enabled = False
        existing.last_used_step = None
        existing.confirmed_at = None
        existing.last_used_at = None
        existing.created_at = utc_now()
        await self.session.flush()
        return existing

    async def enable(self, user_id: UUID, step: int, when: datetime) -> bool:
        """Enable an unconfirmed secret, recording the confirming code's step.

        Returns:
            True if a pending secret was enabled
        """
        result = await self.session.execute(
            update(TotpSecretORM)
            .where(TotpSecretORM.user_id == user_id)
            .where(TotpSecretORM.is_enabled.is_(False))
            .values(is_enabled=True, confirmed_at=when, last_used_step=step, last_used_at=when)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def claim_step(self, user_id: UUID, step: int, when: datetime) -> bool:
        """Atomically mark a time step as used.

        A single conditional UPDATE: it only matches while the recorded step
        is older than the one claimed, so two requests presenting the same
        code cannot both succeed.

        Args:
            user_id: User UUID
            step: Time counter of the matched code
            when: Time of use

        Returns:
            True if this call claimed the step
        """
        result = await self.session.execute(
            update(TotpSecretORM)
            .where(TotpSecretORM.user_id == user_id)
            .where(TotpSecretORM.is_enabled.is_(True))
            .where(
                or_(
                    TotpSecretORM.last_used_step.is_(None),
                    TotpSecretORM.last_used_step < step,
                )
            )
            .values(last_used_step=step, last_used_at=when)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_for_user(self, user_id: UUID) -> int:
        """Delete the secret of a user.

        Returns:
            Number of rows deleted
        """
        result = await self.session.execute(
            delete(TotpSecretORM)
            .where(TotpSecretORM.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
