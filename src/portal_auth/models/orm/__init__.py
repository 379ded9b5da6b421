"""SQLAlchemy ORM models package."""

from portal_auth.models.orm.base import Base
from portal_auth.models.orm.user import UserORM
from portal_auth.models.orm.totp_secret import TotpSecretORM
from portal_auth.models.orm.backup_code import BackupCodeORM
from portal_auth.models.orm.auth_session import AuthSessionORM
from portal_auth.models.orm.pending_login import PendingLoginORM
from portal_auth.models.orm.login_attempt import LoginAttemptGateORM, LoginAttemptORM

__all__ = [
    "Base",
    "UserORM",
    "TotpSecretORM",
    "BackupCodeORM",
    "AuthSessionORM",
    "PendingLoginORM",
    "LoginAttemptORM",
    "LoginAttemptGateORM",
]
