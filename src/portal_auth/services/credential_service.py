"""Password credential verification and password changes."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.exceptions import (
    IncorrectPasswordError,
    InvalidCredentialsError,
    UserNotFoundError,
    WeakPasswordError,
)
from portal_auth.models.domain.identity import Identity
from portal_auth.repositories.session_repository import AuthSessionRepository
from portal_auth.repositories.user_repository import UserRepository
from portal_auth.security.password import get_password_service
from portal_auth.security.tokens import hash_token
from portal_auth.utils.security_events import SecurityEventType, log_security_event

logger = logging.getLogger(__name__)


class CredentialService:
    """Verifies email/password pairs against stored bcrypt hashes."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session."""
        self.session = session
        self.users = UserRepository(session)
        self.sessions = AuthSessionRepository(session)
        self.passwords = get_password_service()

    async def verify(self, email: str, password: str) -> Identity:
        """Verify credentials.

        Unknown email, wrong password and deactivated account all raise the
        same error. A throwaway bcrypt check runs when no user matches so the
        three cases also take the same time.

        Args:
            email: Email (case-insensitive)
            password: Plain text password

        Returns:
            The verified Identity

        Raises:
            InvalidCredentialsError: If the credentials do not match an active identity
        """
        user = await self.users.get_by_email(email)
        if user is None:
            self.passwords.burn_verification(password)
            raise InvalidCredentialsError()

        if not self.passwords.verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if not user.is_active:
            raise InvalidCredentialsError()

        return Identity.model_validate(user)

    async def change_password(
        self,
        user_id: UUID,
        current_password: str,
        new_password: str,
        current_token: str | None = None,
    ) -> int:
        """Change a password and revoke every other session of the user.

        Args:
            user_id: User UUID
            current_password: Current password for confirmation
            new_password: New password
            current_token: Raw token of the caller's session, which is kept

        Returns:
            Number of other sessions revoked

        Raises:
            UserNotFoundError: If the user does not exist
            IncorrectPasswordError: If the current password is wrong
            WeakPasswordError: If the new password fails the policy
        """
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))

        if not self.passwords.verify_password(current_password, user.password_hash):
            log_security_event(
                SecurityEventType.PASSWORD_CHANGED,
                user_id=user_id,
                details={"reason": "wrong_current_password"},
                success=False,
            )
            raise IncorrectPasswordError()

        is_valid, errors = self.passwords.validate_password_strength(new_password)
        if not is_valid:
            raise WeakPasswordError(errors)

        await self.users.set_password_hash(user_id, self.passwords.hash_password(new_password))
        keep_hash = hash_token(current_token) if current_token else None
        revoked = await self.sessions.delete_all_for_user(user_id, keep_hash=keep_hash)

        log_security_event(
            SecurityEventType.PASSWORD_CHANGED,
            user_id=user_id,
            details={"other_sessions_revoked": revoked},
        )
        return revoked
