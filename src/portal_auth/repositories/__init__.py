"""Repository layer for database access."""

from portal_auth.repositories.backup_code_repository import BackupCodeRepository
from portal_auth.repositories.base import BaseRepository
from portal_auth.repositories.login_attempt_repository import LoginAttemptRepository
from portal_auth.repositories.session_repository import (
    AuthSessionRepository,
    PendingLoginRepository,
)
from portal_auth.repositories.totp_repository import TotpSecretRepository
from portal_auth.repositories.user_repository import UserRepository

__all__ = [
    "AuthSessionRepository",
    "BackupCodeRepository",
    "BaseRepository",
    "LoginAttemptRepository",
    "PendingLoginRepository",
    "TotpSecretRepository",
    "UserRepository",
]
