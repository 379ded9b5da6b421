"""Backup code repository."""

from uuid import UUID

from sqlalchemy import delete, func, insert, select

from portal_auth.models.orm.backup_code import BackupCodeORM
from portal_auth.repositories.base import BaseRepository


class BackupCodeRepository(BaseRepository[BackupCodeORM]):
    """Repository for hashed single-use recovery codes."""

    model = BackupCodeORM

    async def replace_all(self, user_id: UUID, code_hashes: list[str]) -> None:
        """Replace the whole code set of a user within the current transaction.

        Args:
            user_id: User UUID
            code_hashes: Hashes of the new codes
        """
        await self.delete_for_user(user_id)
        if code_hashes:
            await self.session.execute(
                insert(BackupCodeORM),
                [{"user_id": user_id, "code_hash": code_hash} for code_hash in code_hashes],
            )
        await self.session.flush()

    async def redeem(self, user_id: UUID, code_hash: str) -> bool:
        """Atomically find and remove a matching code.

        Exactly one concurrent caller can delete the row; every other caller
        sees a rowcount of zero.

        Args:
            user_id: User UUID
            code_hash: Hash of the submitted code

        Returns:
            True if the code existed and was removed by this call
        """
        result = await self.session.execute(
            delete(BackupCodeORM)
            .where(BackupCodeORM.user_id == user_id)
            .where(BackupCodeORM.code_hash == code_hash)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_for_user(self, user_id: UUID) -> int:
        """Count unused codes of a user."""
        result = await self.session.execute(
            select(func.count()).select_from(BackupCodeORM).where(BackupCodeORM.user_id == user_id)
        )
        return result.scalar_one()

    async def delete_for_user(self, user_id: UUID) -> int:
        """Delete every code of a user.

        Returns:
            Number of codes deleted
        """
        result = await self.session.execute(
            delete(BackupCodeORM)
            .where(BackupCodeORM.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
