"""Login attempt log ORM model."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from portal_auth.models.orm.base import Base, UTCDateTime, UUIDMixin


class LoginAttemptORM(Base, UUIDMixin):
    """One authentication attempt, used only to compute rate-limit windows."""

    __tablename__ = "login_attempts"
    __table_args__ = (Index("ix_login_attempts_key_time", "attempt_key", "attempted_at"),)

    attempt_key: Mapped[str] = mapped_column(String(320), nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)


class LoginAttemptGateORM(Base):
    """One row per attempt key, locked while an attempt is reserved.

    Serializes the count-then-reserve step of concurrent attempts on the
    same key; the row itself carries no counts.
    """

    __tablename__ = "login_attempt_gates"

    attempt_key: Mapped[str] = mapped_column(String(320), primary_key=True)
    touched_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
