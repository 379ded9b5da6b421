"""Login attempt log repository."""

import uuid
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite

from portal_auth.models.orm.login_attempt import LoginAttemptGateORM, LoginAttemptORM
from portal_auth.repositories.base import BaseRepository


class LoginAttemptRepository(BaseRepository[LoginAttemptORM]):
    """Append-only log of authentication attempts."""

    model = LoginAttemptORM

    async def record(
        self,
        attempt_key: str,
        success: bool,
        attempted_at: datetime,
        user_id: UUID | None = None,
    ) -> None:
        """Append one attempt.

        A plain INSERT per attempt, so parallel requests for the same key
        never lose an increment.
        """
        await self.session.execute(
            insert(LoginAttemptORM).values(
                attempt_key=attempt_key,
                success=success,
                attempted_at=attempted_at,
                user_id=user_id,
            )
        )

    async def lock_key(self, attempt_key: str, when: datetime) -> None:
        """Take the row lock of a key's gate, creating the gate if needed.

        Held until the current transaction ends. Concurrent callers on the
        same key wait here, one at a time.
        """
        dialect_insert = (
            postgresql.insert
            if self.session.get_bind().dialect.name == "postgresql"
            else sqlite.insert
        )
        await self.session.execute(
            dialect_insert(LoginAttemptGateORM)
            .values(attempt_key=attempt_key, touched_at=when)
            .on_conflict_do_update(
                index_elements=["attempt_key"],
                set_={"touched_at": when},
            )
        )

    async def reserve_failure(
        self,
        attempt_key: str,
        attempted_at: datetime,
        since: datetime,
        max_failures: int,
        user_id: UUID | None = None,
    ) -> UUID | None:
        """Record an attempt as failed unless the key is already at its limit.

        Counting and inserting happen under the gate lock, so concurrent
        attempts can never reserve more than the remaining budget.

        Args:
            attempt_key: Composite account/origin key
            attempted_at: Attempt time
            since: Exclusive lower bound of the window
            max_failures: Failures within the window that block the key
            user_id: Identity, when known

        Returns:
            ID of the reserved attempt, or None if the key is blocked
        """
        await self.lock_key(attempt_key, attempted_at)
        if len(await self.failure_times_since(attempt_key, since)) >= max_failures:
            return None

        attempt_id = uuid.uuid4()
        await self.session.execute(
            insert(LoginAttemptORM).values(
                id=attempt_id,
                attempt_key=attempt_key,
                success=False,
                attempted_at=attempted_at,
                user_id=user_id,
            )
        )
        return attempt_id

    async def mark_success(self, attempt_id: UUID, user_id: UUID | None = None) -> None:
        """Turn a reserved attempt into a successful one."""
        values: dict[str, object] = {"success": True}
        if user_id is not None:
            values["user_id"] = user_id
        await self.session.execute(
            update(LoginAttemptORM)
            .where(LoginAttemptORM.id == attempt_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def release(self, attempt_id: UUID) -> None:
        """Drop a reserved attempt that was never judged."""
        await self.session.execute(
            delete(LoginAttemptORM)
            .where(LoginAttemptORM.id == attempt_id)
            .execution_options(synchronize_session=False)
        )

    async def failure_times_since(self, attempt_key: str, since: datetime) -> list[datetime]:
        """Get failure timestamps for a key after a point in time, oldest first.

        Args:
            attempt_key: Composite account/origin key
            since: Exclusive lower bound

        Returns:
            Ascending list of attempt times
        """
        result = await self.session.execute(
            select(LoginAttemptORM.attempted_at)
            .where(LoginAttemptORM.attempt_key == attempt_key)
            .where(LoginAttemptORM.success.is_(False))
            .where(LoginAttemptORM.attempted_at > since)
            .order_by(LoginAttemptORM.attempted_at.asc())
        )
        return list(result.scalars().all())

    async def purge_older_than(self, cutoff: datetime) -> int:
        """Delete attempts and idle gates older than the cutoff.

        Returns:
            Number of attempt rows deleted
        """
        result = await self.session.execute(
            delete(LoginAttemptORM)
            .where(LoginAttemptORM.attempted_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(
            delete(LoginAttemptGateORM)
            .where(LoginAttemptGateORM.touched_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
