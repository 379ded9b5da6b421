"""Centralized dependency injection factories for FastAPI."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.database import get_db
from portal_auth.services.credential_service import CredentialService
from portal_auth.services.login_service import LoginService
from portal_auth.services.session_service import SessionService
from portal_auth.services.two_factor_service import TwoFactorService


def get_login_service(db: AsyncSession = Depends(get_db)) -> LoginService:
    """Get LoginService instance."""
    return LoginService(db)


def get_session_service(db: AsyncSession = Depends(get_db)) -> SessionService:
    """Get SessionService instance."""
    return SessionService(db)


def get_credential_service(db: AsyncSession = Depends(get_db)) -> CredentialService:
    """Get CredentialService instance."""
    return CredentialService(db)


def get_two_factor_service(db: AsyncSession = Depends(get_db)) -> TwoFactorService:
    """Get TwoFactorService instance."""
    return TwoFactorService(db)
