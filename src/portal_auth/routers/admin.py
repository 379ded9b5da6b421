"""Admin router: session revocation and account deactivation."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.database import get_db
from portal_auth.exceptions import UserNotFoundError
from portal_auth.models.domain.login import ActiveSession
from portal_auth.models.dto.auth import SessionsRevokedResponse
from portal_auth.repositories.session_repository import PendingLoginRepository
from portal_auth.repositories.user_repository import UserRepository
from portal_auth.security.auth import get_client_origin, require_admin
from portal_auth.security.rate_limit import SENSITIVE_OPERATION_LIMIT, limiter
from portal_auth.services.session_service import SessionService
from portal_auth.utils.security_events import SecurityEventType, log_security_event

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/users/{user_id}/sessions/revoke", response_model=SessionsRevokedResponse)
@limiter.limit(SENSITIVE_OPERATION_LIMIT)
async def revoke_user_sessions(
    request: Request,
    user_id: UUID,
    admin: Annotated[ActiveSession, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SessionsRevokedResponse:
    """Revoke every session of an identity."""
    if await UserRepository(db).get_by_id(user_id) is None:
        raise UserNotFoundError(str(user_id))

    revoked = await SessionService(db).revoke_all_for_user(user_id)
    log_security_event(
        SecurityEventType.ALL_SESSIONS_REVOKED,
        user_id=admin.identity_id,
        target_user_id=user_id,
        ip_address=get_client_origin(request),
        details={"revoked": revoked},
    )
    return SessionsRevokedResponse(revoked=revoked)


@router.post("/users/{user_id}/deactivate", response_model=SessionsRevokedResponse)
@limiter.limit(SENSITIVE_OPERATION_LIMIT)
async def deactivate_user(
    request: Request,
    user_id: UUID,
    admin: Annotated[ActiveSession, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SessionsRevokedResponse:
    """Deactivate an identity and drop its sessions and pending logins."""
    if await UserRepository(db).deactivate(user_id) is None:
        raise UserNotFoundError(str(user_id))

    revoked = await SessionService(db).revoke_all_for_user(user_id)
    await PendingLoginRepository(db).delete_all_for_user(user_id)
    log_security_event(
        SecurityEventType.USER_DEACTIVATED,
        user_id=admin.identity_id,
        target_user_id=user_id,
        ip_address=get_client_origin(request),
        details={"sessions_revoked": revoked},
    )
    return SessionsRevokedResponse(revoked=revoked)
