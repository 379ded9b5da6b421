#!/usr/bin/env python
"""Re-encrypt stored TOTP secrets with the current ENCRYPTION_KEY.

Set the new key as ENCRYPTION_KEY and append the old one to
ENCRYPTION_KEY_LEGACY before running. Once every secret is resealed the old
key can be dropped from the legacy list.
"""

import asyncio
import sys

from portal_auth.database import async_session_maker
from portal_auth.services.two_factor_service import TwoFactorService


async def rotate() -> bool:
    """Reseal all secrets in one transaction."""
    async with async_session_maker() as session:
        resealed, unreadable = await TwoFactorService(session).reseal_secrets()
        await session.commit()

    print(f"Resealed {resealed} TOTP secrets")
    if unreadable:
        print(f"{unreadable} secrets could not be decrypted with any configured key")
    return unreadable == 0


if __name__ == "__main__":
    sys.exit(0 if asyncio.run(rotate()) else 1)
