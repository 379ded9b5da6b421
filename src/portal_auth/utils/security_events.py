"""Security event logging for authentication and session lifecycle.

Events go to a dedicated ``security`` logger so they can be routed to a
separate sink for monitoring and audit. Raw tokens, codes and passwords are
never part of an event.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID


class SecurityEventType(str, Enum):
    """Types of security events that are logged."""

    # Login protocol
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGIN_BLOCKED = "login_blocked"
    SECOND_FACTOR_REQUIRED = "second_factor_required"
    SECOND_FACTOR_FAILED = "second_factor_failed"
    BACKUP_CODE_USED = "backup_code_used"
    LOGOUT = "logout"

    # Sessions
    SESSION_CREATED = "session_created"
    SESSION_REVOKED = "session_revoked"
    ALL_SESSIONS_REVOKED = "all_sessions_revoked"

    # Two-factor management
    TOTP_SETUP_STARTED = "totp_setup_started"
    TOTP_ENABLED = "totp_enabled"
    TOTP_DISABLED = "totp_disabled"
    BACKUP_CODES_REGENERATED = "backup_codes_regenerated"

    # Account management
    PASSWORD_CHANGED = "password_changed"
    USER_DEACTIVATED = "user_deactivated"


security_logger = logging.getLogger("security")


def log_security_event(
    event_type: SecurityEventType,
    user_id: UUID | str | None = None,
    user_email: str | None = None,
    target_user_id: UUID | str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Log a security event.

    Args:
        event_type: The type of security event
        user_id: The ID of the acting user, if known
        user_email: The email the actor presented
        target_user_id: The user affected by an admin action
        ip_address: The client IP address
        user_agent: The client user agent
        details: Additional event-specific details
        success: Whether the operation succeeded
    """
    event_data: dict[str, Any] = {
        "event_type": event_type.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "success": success,
        "actor": {
            "user_id": str(user_id) if user_id else None,
            "email": user_email,
            "ip_address": ip_address,
            "user_agent": user_agent,
        },
    }

    if target_user_id:
        event_data["target"] = {"user_id": str(target_user_id)}

    if details:
        event_data["details"] = details

    if success:
        security_logger.info(
            "Security event: %s", event_type.value, extra={"security_event": event_data}
        )
    else:
        security_logger.warning(
            "Security event (failed): %s",
            event_type.value,
            extra={"security_event": event_data},
        )
