"""Data Transfer Objects package."""

from portal_auth.models.dto.auth import (
    BackupCodesResponse,
    LoginRequest,
    LoginResponse,
    SessionInfo,
    SessionTokenResponse,
    TotpSetupResponse,
    TotpStatusResponse,
)

__all__ = [
    "BackupCodesResponse",
    "LoginRequest",
    "LoginResponse",
    "SessionInfo",
    "SessionTokenResponse",
    "TotpSetupResponse",
    "TotpStatusResponse",
]
