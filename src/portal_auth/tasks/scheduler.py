"""Background task scheduler using APScheduler.

Expired sessions, pending logins and old attempt-log rows are purged
periodically. This is housekeeping only: expiry is always decided by
timestamp comparison at request time.
"""

import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portal_auth.config import get_settings
from portal_auth.models.orm.base import utc_now
from portal_auth.repositories.login_attempt_repository import LoginAttemptRepository
from portal_auth.services.session_service import SessionService
from portal_auth.utils.secure_logging import log_error

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def purge_expired_records(session: AsyncSession, now: datetime | None = None) -> dict[str, int]:
    """Delete expired sessions and pending logins, and attempts past retention.

    Args:
        session: Database session (committed by the caller)
        now: Current time

    Returns:
        Row counts per table
    """
    now = now or utc_now()
    retention = timedelta(hours=get_settings().attempt_log_retention_hours)

    sessions, pending = await SessionService(session).purge_expired(now)
    attempts = await LoginAttemptRepository(session).purge_older_than(now - retention)
    return {"auth_sessions": sessions, "pending_logins": pending, "login_attempts": attempts}


async def purge_expired_records_job() -> None:
    """Background job wrapping purge_expired_records in its own session."""
    from portal_auth.database import async_session_maker

    async with async_session_maker() as session:
        try:
            counts = await purge_expired_records(session)
            await session.commit()
            logger.info("Purged expired auth records: %s", counts)
        except SQLAlchemyError as e:
            await session.rollback()
            log_error(logger, "Purge of expired auth records failed", e)


async def start_scheduler() -> None:
    """Start the background task scheduler."""
    global _scheduler

    settings = get_settings()
    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        purge_expired_records_job,
        trigger=IntervalTrigger(minutes=settings.cleanup_interval_minutes),
        id="purge_expired_records",
        name="Purge expired sessions and attempt logs",
        replace_existing=True,
    )

    _scheduler.start()
    logger.info("Background scheduler started")


async def stop_scheduler() -> None:
    """Stop the background task scheduler."""
    global _scheduler

    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")
