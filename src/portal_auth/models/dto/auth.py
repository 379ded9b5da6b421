"""Authentication DTOs."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Password login request."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class SecondFactorRequest(BaseModel):
    """Second-factor completion request (TOTP or backup code)."""

    pending_token: str = Field(min_length=1, max_length=256)
    code: str = Field(min_length=6, max_length=16)


class SessionTokenResponse(BaseModel):
    """Issued bearer session."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    expires_in: int


class PendingLoginResponse(BaseModel):
    """Pending second-factor login."""

    pending_token: str
    expires_at: datetime


class LoginResponse(BaseModel):
    """Login step response: either an issued session or a pending login."""

    status: Literal["authenticated", "pending"]
    session: SessionTokenResponse | None = None
    pending: PendingLoginResponse | None = None
    warning: str | None = None
    backup_codes_remaining: int | None = None


class SessionInfo(BaseModel):
    """Validated session identity, as consumed by the surrounding system."""

    identity_id: UUID
    email: EmailStr
    role: str
    two_factor_complete: bool
    issued_at: datetime
    expires_at: datetime


class MessageResponse(BaseModel):
    """Simple acknowledgement."""

    message: str


class PasswordChangeRequest(BaseModel):
    """Password change request."""

    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=12, max_length=128)


class SessionsRevokedResponse(BaseModel):
    """Number of sessions revoked."""

    revoked: int


# =============================================================================
# Two-factor setup DTOs
# =============================================================================


class TotpSetupResponse(BaseModel):
    """TOTP setup response with enrollment data."""

    secret: str
    provisioning_uri: str
    qr_code: str  # data:image/png;base64,...


class TotpCodeRequest(BaseModel):
    """Request carrying a 6-digit TOTP code."""

    code: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")


class TotpDisableRequest(BaseModel):
    """Disable two-factor authentication (password plus TOTP or backup code)."""

    password: str = Field(min_length=1, max_length=128)
    code: str = Field(min_length=6, max_length=16)


class BackupCodesResponse(BaseModel):
    """Freshly generated backup codes, shown exactly once."""

    backup_codes: list[str]
    warning: str = (
        "Store these backup codes safely. They can only be used once "
        "and will not be shown again."
    )


class TotpStatusResponse(BaseModel):
    """Two-factor status of the current identity."""

    enabled: bool
    setup_initiated: bool
    last_used_at: datetime | None = None
    backup_codes_remaining: int = 0
