"""Single-use backup (recovery) codes."""

import hashlib
import logging
import secrets
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.config import get_settings
from portal_auth.repositories.backup_code_repository import BackupCodeRepository

logger = logging.getLogger(__name__)

BACKUP_CODE_LENGTH = 8
# Upper-case letters and digits without the look-alikes 0/O and 1/I
BACKUP_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def normalize_backup_code(code: str) -> str:
    """Normalize user input: drop dashes and whitespace, upper-case."""
    return "".join(c for c in code if c not in "- \t").upper()


def is_backup_code_format(code: str) -> bool:
    """Whether input has the shape of a backup code (8 alphabet characters)."""
    normalized = normalize_backup_code(code)
    return len(normalized) == BACKUP_CODE_LENGTH and all(
        c in BACKUP_CODE_ALPHABET for c in normalized
    )


def hash_backup_code(code: str) -> str:
    """Hash a backup code for storage.

    Args:
        code: Plain text backup code, with or without formatting

    Returns:
        SHA-256 hex digest of the normalized code
    """
    return hashlib.sha256(normalize_backup_code(code).encode("utf-8")).hexdigest()


def generate_backup_codes(count: int) -> list[str]:
    """Generate distinct plain text backup codes formatted as XXXX-XXXX.

    Args:
        count: Number of codes

    Returns:
        List of codes; only shown to the user once
    """
    codes: set[str] = set()
    while len(codes) < count:
        raw = "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(BACKUP_CODE_LENGTH))
        codes.add(f"{raw[:4]}-{raw[4:]}")
    return list(codes)


class BackupCodeService:
    """Issues and redeems per-user backup codes."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session."""
        self.session = session
        self.codes = BackupCodeRepository(session)
        self.settings = get_settings()

    async def regenerate(self, user_id: UUID, count: int | None = None) -> list[str]:
        """Replace the user's whole code set with a fresh batch.

        All previous codes stop working as part of the same transaction.

        Args:
            user_id: User UUID
            count: Batch size (default BACKUP_CODE_COUNT from settings)

        Returns:
            The new plain text codes
        """
        codes = generate_backup_codes(count or self.settings.backup_code_count)
        await self.codes.replace_all(user_id, [hash_backup_code(code) for code in codes])
        logger.info("Backup codes regenerated for user %s", user_id)
        return codes

    async def redeem(self, user_id: UUID, code: str) -> bool:
        """Redeem a backup code exactly once.

        The lookup and removal are one conditional DELETE, so two concurrent
        requests with the same code cannot both succeed. The removal is part
        of the caller's transaction: rolling it back returns the code.

        Args:
            user_id: User UUID
            code: Submitted code

        Returns:
            True if the code was valid and is now used up
        """
        if not is_backup_code_format(code):
            return False

        return await self.codes.redeem(user_id, hash_backup_code(code))

    async def remaining(self, user_id: UUID) -> int:
        """Count unused backup codes."""
        return await self.codes.count_for_user(user_id)

    async def clear(self, user_id: UUID) -> int:
        """Delete every backup code of a user."""
        return await self.codes.delete_for_user(user_id)
