"""Two-factor management router (enrollment, status, disable, backup codes)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from portal_auth.dependencies import get_two_factor_service
from portal_auth.models.domain.login import ActiveSession
from portal_auth.models.dto.auth import (
    BackupCodesResponse,
    MessageResponse,
    TotpCodeRequest,
    TotpDisableRequest,
    TotpSetupResponse,
    TotpStatusResponse,
)
from portal_auth.security.auth import get_current_session
from portal_auth.security.rate_limit import API_DEFAULT_LIMIT, SENSITIVE_OPERATION_LIMIT, limiter
from portal_auth.services.two_factor_service import TwoFactorService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/setup", response_model=TotpSetupResponse)
@limiter.limit(SENSITIVE_OPERATION_LIMIT)
async def setup_second_factor(
    request: Request,
    current: Annotated[ActiveSession, Depends(get_current_session)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> TotpSetupResponse:
    """Start TOTP enrollment; returns the secret, provisioning URI and QR code."""
    return await service.setup(current.identity_id)


@router.post("/confirm", response_model=BackupCodesResponse)
@limiter.limit(SENSITIVE_OPERATION_LIMIT)
async def confirm_second_factor(
    request: Request,
    body: TotpCodeRequest,
    current: Annotated[ActiveSession, Depends(get_current_session)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> BackupCodesResponse:
    """Confirm enrollment with a first code and receive the initial backup codes."""
    codes = await service.confirm(current.identity_id, body.code)
    return BackupCodesResponse(backup_codes=codes)


@router.get("/status", response_model=TotpStatusResponse)
@limiter.limit(API_DEFAULT_LIMIT)
async def second_factor_status(
    request: Request,
    current: Annotated[ActiveSession, Depends(get_current_session)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> TotpStatusResponse:
    """Report whether two-factor authentication is enabled."""
    return await service.status(current.identity_id)


@router.post("/disable", response_model=MessageResponse)
@limiter.limit(SENSITIVE_OPERATION_LIMIT)
async def disable_second_factor(
    request: Request,
    body: TotpDisableRequest,
    current: Annotated[ActiveSession, Depends(get_current_session)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> MessageResponse:
    """Disable two-factor authentication (password plus TOTP or backup code)."""
    await service.disable(current.identity_id, body.password, body.code)
    return MessageResponse(message="Two-factor authentication disabled")


@router.post("/backup-codes", response_model=BackupCodesResponse)
@limiter.limit(SENSITIVE_OPERATION_LIMIT)
async def regenerate_backup_codes(
    request: Request,
    body: TotpCodeRequest,
    current: Annotated[ActiveSession, Depends(get_current_session)],
    service: Annotated[TwoFactorService, Depends(get_two_factor_service)],
) -> BackupCodesResponse:
    """Replace all backup codes; previous codes stop working immediately."""
    codes = await service.regenerate_backup_codes(current.identity_id, body.code)
    return BackupCodesResponse(backup_codes=codes)
