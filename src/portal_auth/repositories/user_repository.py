"""User (identity) repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from portal_auth.models.orm.base import utc_now
from portal_auth.models.orm.user import UserORM
from portal_auth.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserORM]):
    """Repository for identity lookups and mutations."""

    model = UserORM

    async def get_by_email(self, email: str) -> UserORM | None:
        """Get user by email (case-insensitive).

        Emails are stored lower-cased, so the lookup lower-cases its input.

        Args:
            email: User email

        Returns:
            UserORM or None
        """
        result = await self.session.execute(
            select(UserORM).where(UserORM.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def create_user(
        self,
        email: str,
        password_hash: str,
        role: str = "user",
        requires_2fa: bool = False,
    ) -> UserORM:
        """Create a new identity.

        Args:
            email: User email (stored lower-cased)
            password_hash: bcrypt hash
            role: Role flag
            requires_2fa: Whether login requires a second factor

        Returns:
            Created UserORM
        """
        return await self.create(
            email=email.strip().lower(),
            password_hash=password_hash,
            role=role,
            requires_2fa=requires_2fa,
            password_changed_at=utc_now(),
        )

    async def set_password_hash(self, user_id: UUID, password_hash: str) -> UserORM | None:
        """Replace the stored password hash."""
        return await self.update(
            user_id,
            password_hash=password_hash,
            password_changed_at=utc_now(),
        )

    async def record_login(self, user_id: UUID, when: datetime) -> UserORM | None:
        """Record the time of a completed login."""
        return await self.update(user_id, last_login_at=when)

    async def set_requires_2fa(self, user_id: UUID, required: bool) -> UserORM | None:
        """Set or clear the second-factor requirement."""
        return await self.update(user_id, requires_2fa=required)

    async def deactivate(self, user_id: UUID) -> UserORM | None:
        """Deactivate an identity. Identities are never deleted."""
        return await self.update(user_id, is_active=False)
