"""Opaque bearer token helpers.

Only the SHA-256 digest of a token is ever stored; the raw value exists
solely in the response that hands it to the client.
"""

import hashlib
import secrets

# 32 random bytes, roughly 43 URL-safe characters
TOKEN_BYTES = 32


def generate_token() -> str:
    """Generate a new random opaque token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Hash a token for storage and lookup.

    Args:
        token: Raw token as presented by the client

    Returns:
        Hex-encoded SHA-256 digest
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
