"""Two-factor enrollment, verification and management."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.exceptions import (
    IncorrectPasswordError,
    InvalidVerificationCodeError,
    TwoFactorStateError,
    UserNotFoundError,
)
from portal_auth.models.dto.auth import TotpSetupResponse, TotpStatusResponse
from portal_auth.models.orm.base import utc_now
from portal_auth.repositories.totp_repository import TotpSecretRepository
from portal_auth.repositories.user_repository import UserRepository
from portal_auth.security.encryption import EncryptionService, get_encryption_service
from portal_auth.security.password import get_password_service
from portal_auth.services.backup_code_service import BackupCodeService
from portal_auth.services.totp_service import get_totp_service, is_totp_format
from portal_auth.utils.security_events import SecurityEventType, log_security_event
from portal_auth.utils.secure_logging import log_warning

logger = logging.getLogger(__name__)


class TwoFactorService:
    """Service for TOTP enrollment and second-factor checks."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session."""
        self.session = session
        self.users = UserRepository(session)
        self.secrets = TotpSecretRepository(session)
        self.backup_codes = BackupCodeService(session)
        self.totp = get_totp_service()
        self.passwords = get_password_service()

    async def verify_totp_code(self, user_id: UUID, code: str, now: datetime) -> bool:
        """Verify a TOTP code against the user's enabled secret and claim its step.

        Unconfirmed secrets never authenticate. A matched step is claimed
        with a conditional update, so a code cannot be replayed.

        Args:
            user_id: User UUID
            code: Submitted 6-digit code
            now: Current time

        Returns:
            True if the code was accepted
        """
        record = await self.secrets.get_by_user_id(user_id)
        if record is None or not record.is_enabled:
            return False

        secret = self.totp.decrypt_secret(record.secret_encrypted)
        step = self.totp.match_step(secret, code, now, record.last_used_step)
        if step is None:
            return False

        return await self.secrets.claim_step(user_id, step, now)

    async def verify_second_factor(
        self,
        user_id: UUID,
        code: str,
        now: datetime,
    ) -> tuple[bool, bool]:
        """Verify a TOTP code or, failing that, redeem a backup code.

        TOTP codes are exactly six digits and backup codes eight characters,
        so a given input can only ever satisfy one of the two checks.

        Args:
            user_id: User UUID
            code: Submitted code
            now: Current time

        Returns:
            Tuple of (accepted, a backup code was used)
        """
        code = code.strip()
        if is_totp_format(code):
            return await self.verify_totp_code(user_id, code, now), False

        if await self.backup_codes.redeem(user_id, code):
            log_security_event(SecurityEventType.BACKUP_CODE_USED, user_id=user_id)
            return True, True
        return False, False

    async def setup(self, user_id: UUID) -> TotpSetupResponse:
        """Start enrollment by generating and storing an unconfirmed secret.

        Running setup again before confirmation replaces the pending secret.

        Args:
            user_id: User UUID

        Returns:
            Secret, provisioning URI and QR code for the authenticator app

        Raises:
            UserNotFoundError: If the user does not exist
            TwoFactorStateError: If two-factor authentication is already enabled
        """
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))

        existing = await self.secrets.get_by_user_id(user_id)
        if existing is not None and existing.is_enabled:
            raise TwoFactorStateError("Two-factor authentication is already enabled")

        secret = self.totp.generate_secret()
        await self.secrets.store_unconfirmed(user_id, self.totp.encrypt_secret(secret))

        provisioning_uri = self.totp.get_provisioning_uri(secret, user.email)
        log_security_event(SecurityEventType.TOTP_SETUP_STARTED, user_id=user_id)

        return TotpSetupResponse(
            secret=secret,
            provisioning_uri=provisioning_uri,
            qr_code=self.totp.generate_qr_code_data_uri(provisioning_uri),
        )

    async def confirm(self, user_id: UUID, code: str, now: datetime | None = None) -> list[str]:
        """Confirm enrollment with a code from the authenticator app.

        Enables the secret, marks the account as requiring a second factor and
        issues the first batch of backup codes.

        Args:
            user_id: User UUID
            code: 6-digit TOTP code
            now: Current time

        Returns:
            Plain text backup codes, shown once

        Raises:
            TwoFactorStateError: If no setup is pending or 2FA is already enabled
            InvalidVerificationCodeError: If the code does not match
        """
        now = now or utc_now()
        record = await self.secrets.get_by_user_id(user_id)
        if record is None:
            raise TwoFactorStateError("Two-factor setup has not been started")
        if record.is_enabled:
            raise TwoFactorStateError("Two-factor authentication is already enabled")

        secret = self.totp.decrypt_secret(record.secret_encrypted)
        step = self.totp.match_step(secret, code, now)
        if step is None or not await self.secrets.enable(user_id, step, now):
            log_security_event(SecurityEventType.TOTP_ENABLED, user_id=user_id, success=False)
            raise InvalidVerificationCodeError()

        await self.users.set_requires_2fa(user_id, True)
        codes = await self.backup_codes.regenerate(user_id)

        log_security_event(SecurityEventType.TOTP_ENABLED, user_id=user_id)
        return codes

    async def status(self, user_id: UUID) -> TotpStatusResponse:
        """Report the two-factor state of a user."""
        record = await self.secrets.get_by_user_id(user_id)
        enabled = record is not None and record.is_enabled
        return TotpStatusResponse(
            enabled=enabled,
            setup_initiated=record is not None,
            last_used_at=record.last_used_at if record is not None else None,
            backup_codes_remaining=await self.backup_codes.remaining(user_id) if enabled else 0,
        )

    async def disable(
        self,
        user_id: UUID,
        password: str,
        code: str,
        now: datetime | None = None,
    ) -> None:
        """Disable two-factor authentication.

        Requires the account password plus a TOTP or backup code. Removes the
        secret and every backup code.

        Raises:
            UserNotFoundError: If the user does not exist
            TwoFactorStateError: If two-factor authentication is not enabled
            IncorrectPasswordError: If the password is wrong
            InvalidVerificationCodeError: If the code is not accepted
        """
        now = now or utc_now()
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))

        record = await self.secrets.get_by_user_id(user_id)
        if record is None or not record.is_enabled:
            raise TwoFactorStateError("Two-factor authentication is not enabled")

        if not self.passwords.verify_password(password, user.password_hash):
            raise IncorrectPasswordError()

        accepted, _ = await self.verify_second_factor(user_id, code, now)
        if not accepted:
            log_security_event(SecurityEventType.TOTP_DISABLED, user_id=user_id, success=False)
            raise InvalidVerificationCodeError()

        await self.secrets.delete_for_user(user_id)
        await self.backup_codes.clear(user_id)
        await self.users.set_requires_2fa(user_id, False)

        log_security_event(SecurityEventType.TOTP_DISABLED, user_id=user_id)

    async def regenerate_backup_codes(
        self,
        user_id: UUID,
        code: str,
        now: datetime | None = None,
    ) -> list[str]:
        """Replace all backup codes after a fresh TOTP check.

        Raises:
            TwoFactorStateError: If two-factor authentication is not enabled
            InvalidVerificationCodeError: If the TOTP code is not accepted
        """
        now = now or utc_now()
        record = await self.secrets.get_by_user_id(user_id)
        if record is None or not record.is_enabled:
            raise TwoFactorStateError("Two-factor authentication is not enabled")

        if not await self.verify_totp_code(user_id, code, now):
            raise InvalidVerificationCodeError()

        codes = await self.backup_codes.regenerate(user_id)
        log_security_event(SecurityEventType.BACKUP_CODES_REGENERATED, user_id=user_id)
        return codes

    async def reseal_secrets(self, encryption: EncryptionService | None = None) -> tuple[int, int]:
        """Re-encrypt every stored TOTP secret with the current key.

        Run after moving the old key to ENCRYPTION_KEY_LEGACY. Secrets that
        no configured key can open are left untouched and reported.

        Args:
            encryption: Encryption service (defaults to the configured one)

        Returns:
            Tuple of (resealed, unreadable)
        """
        encryption = encryption or get_encryption_service()
        resealed = unreadable = 0
        for record in await self.secrets.list_all():
            try:
                record.secret_encrypted = encryption.re_encrypt(record.secret_encrypted)
            except ValueError as e:
                log_warning(logger, "Could not re-encrypt TOTP secret", e, user_id=str(record.user_id))
                unreadable += 1
                continue
            resealed += 1

        await self.session.flush()
        logger.info("Re-encrypted %d TOTP secrets (%d unreadable)", resealed, unreadable)
        return resealed, unreadable
