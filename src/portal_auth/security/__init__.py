"""Security package."""

from portal_auth.security.auth import get_current_session, require_admin
from portal_auth.security.encryption import EncryptionService
from portal_auth.security.password import PasswordService
from portal_auth.security.tokens import generate_token, hash_token

__all__ = [
    "EncryptionService",
    "PasswordService",
    "generate_token",
    "get_current_session",
    "hash_token",
    "require_admin",
]
