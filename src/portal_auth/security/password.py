"""Password hashing and validation utilities."""

import re
from functools import cached_property

import bcrypt

from portal_auth.config import get_settings


class PasswordService:
    """Service for bcrypt password hashing and complexity checks."""

    MIN_LENGTH = 12
    SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

    # bcrypt only considers the first 72 bytes of input
    MAX_PASSWORD_BYTES = 72

    def __init__(self, rounds: int | None = None) -> None:
        """Initialize the service.

        Args:
            rounds: bcrypt work factor (defaults to BCRYPT_ROUNDS from settings)
        """
        self.rounds = rounds if rounds is not None else get_settings().bcrypt_rounds

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Hashed password string
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(self._encode(password), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, hashed: str) -> bool:
        """Verify a password against a hash in constant time.

        Args:
            password: Plain text password
            hashed: Hashed password

        Returns:
            True if password matches
        """
        try:
            return bcrypt.checkpw(self._encode(password), hashed.encode("utf-8"))
        except (ValueError, UnicodeDecodeError, UnicodeEncodeError):
            # Invalid hash format or encoding issues
            return False

    @cached_property
    def dummy_hash(self) -> str:
        """A hash of a random value, verified against when no user matches.

        Keeps the response time of "unknown email" equal to "wrong password".
        """
        return self.hash_password("unused-placeholder-password")

    def burn_verification(self, password: str) -> None:
        """Run a full bcrypt verification whose result is discarded."""
        self.verify_password(password, self.dummy_hash)

    def validate_password_strength(self, password: str) -> tuple[bool, list[str]]:
        """Validate password meets complexity requirements.

        Args:
            password: Password to validate

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        errors = []

        if len(password) < self.MIN_LENGTH:
            errors.append(f"Password must be at least {self.MIN_LENGTH} characters")

        if len(password.encode("utf-8")) > self.MAX_PASSWORD_BYTES:
            errors.append(f"Password must not exceed {self.MAX_PASSWORD_BYTES} bytes")

        if not re.search(r"[A-Z]", password):
            errors.append("Password must contain at least one uppercase letter")

        if not re.search(r"[a-z]", password):
            errors.append("Password must contain at least one lowercase letter")

        if not re.search(r"\d", password):
            errors.append("Password must contain at least one digit")

        if not any(c in self.SPECIAL_CHARS for c in password):
            errors.append(
                f"Password must contain at least one special character ({self.SPECIAL_CHARS})"
            )

        if self._contains_common_patterns(password):
            errors.append("Password contains common patterns")

        return len(errors) == 0, errors

    def _encode(self, password: str) -> bytes:
        # bcrypt >= 4.1 raises on inputs longer than 72 bytes
        return password.encode("utf-8")[: self.MAX_PASSWORD_BYTES]

    def _contains_common_patterns(self, password: str) -> bool:
        """Check if password contains common weak patterns."""
        weak_patterns = [
            r"12345",
            r"qwerty",
            r"password",
            r"letmein",
            r"welcome",
            r"(.)\1{3,}",  # Same char repeated 4+ times
        ]

        password_lower = password.lower()
        return any(re.search(pattern, password_lower) for pattern in weak_patterns)


# Singleton instance
_password_service: PasswordService | None = None


def get_password_service() -> PasswordService:
    """Get the password service singleton.

    Returns:
        PasswordService instance
    """
    global _password_service
    if _password_service is None:
        _password_service = PasswordService()
    return _password_service
