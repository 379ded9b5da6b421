"""Shared fixtures: a throwaway SQLite database, users and an API client."""

import base64
import os
from datetime import datetime, timezone

# Settings are read once and cached, so the environment must be set before
# anything from portal_auth is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENCRYPTION_KEY"] = base64.urlsafe_b64encode(bytes(range(32))).decode()
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "10"

import httpx
import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from portal_auth.database import get_db
from portal_auth.main import create_app
from portal_auth.models.orm import Base, UserORM
from portal_auth.repositories.totp_repository import TotpSecretRepository
from portal_auth.repositories.user_repository import UserRepository
from portal_auth.security.password import get_password_service
from portal_auth.services.totp_service import get_totp_service

PASSWORD = "Correct-Horse-9-Battery"
NOW = datetime(2026, 3, 2, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine(tmp_path):
    """File-backed database so concurrent sessions get real connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def create_user(session_factory):
    """Factory creating a committed user."""

    async def _create(
        email: str = "alice@example.com",
        password: str = PASSWORD,
        role: str = "user",
        is_active: bool = True,
    ) -> UserORM:
        async with session_factory() as session:
            user = await UserRepository(session).create_user(
                email=email,
                password_hash=get_password_service().hash_password(password),
                role=role,
            )
            user.is_active = is_active
            await session.commit()
            return user

    return _create


@pytest.fixture
def enroll_totp(session_factory):
    """Factory enabling TOTP for a user; returns the base32 secret."""

    async def _enroll(user_id) -> str:
        totp = get_totp_service()
        secret = totp.generate_secret()
        async with session_factory() as session:
            secrets_repo = TotpSecretRepository(session)
            await secrets_repo.store_unconfirmed(user_id, totp.encrypt_secret(secret))
            # Step 0 is the epoch, so every real code is newer
            await secrets_repo.enable(user_id, 0, NOW)
            await UserRepository(session).set_requires_2fa(user_id, True)
            await session.commit()
        return secret

    return _enroll


@pytest.fixture
def app(session_factory):
    application = create_app()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
