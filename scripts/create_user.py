#!/usr/bin/env python
"""Create a portal user."""

import asyncio
import sys

from portal_auth.database import async_session_maker
from portal_auth.exceptions import UserAlreadyExistsError
from portal_auth.models.domain.identity import UserRole
from portal_auth.repositories.user_repository import UserRepository
from portal_auth.security.password import get_password_service


async def create_user(email: str, password: str, role: UserRole = UserRole.USER) -> bool:
    """Create a user with a local password."""
    password_service = get_password_service()

    is_valid, errors = password_service.validate_password_strength(password)
    if not is_valid:
        print(f"Password validation failed: {errors}")
        return False

    async with async_session_maker() as session:
        users = UserRepository(session)
        if await users.get_by_email(email) is not None:
            print(UserAlreadyExistsError(email).message)
            return False

        await users.create_user(
            email=email,
            password_hash=password_service.hash_password(password),
            role=role.value,
        )
        await session.commit()

    print(f"User created: {email.lower()} ({role.value})")
    return True


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create a portal user")
    parser.add_argument("--email", required=True, help="Email address")
    parser.add_argument("--password", required=True, help="Password (min 12 chars)")
    parser.add_argument(
        "--role",
        choices=[role.value for role in UserRole],
        default=UserRole.USER.value,
        help="Role flag",
    )
    args = parser.parse_args()

    created = asyncio.run(create_user(args.email, args.password, UserRole(args.role)))
    sys.exit(0 if created else 1)
