"""Service layer for business logic."""

from portal_auth.services.attempt_limiter import AttemptLimiter
from portal_auth.services.backup_code_service import BackupCodeService
from portal_auth.services.credential_service import CredentialService
from portal_auth.services.login_service import LoginService
from portal_auth.services.session_service import SessionService
from portal_auth.services.totp_service import TotpService, get_totp_service
from portal_auth.services.two_factor_service import TwoFactorService

__all__ = [
    "AttemptLimiter",
    "BackupCodeService",
    "CredentialService",
    "LoginService",
    "SessionService",
    "TotpService",
    "TwoFactorService",
    "get_totp_service",
]
