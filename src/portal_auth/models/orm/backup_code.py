"""Backup code ORM model."""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from portal_auth.models.orm.base import Base, UTCDateTime, UUIDMixin, utc_now


class BackupCodeORM(Base, UUIDMixin):
    """One unused single-use recovery code, stored as a hash.

    Redemption deletes the row; a user's current set is all rows for the user.
    """

    __tablename__ = "backup_codes"
    __table_args__ = (UniqueConstraint("user_id", "code_hash", name="uq_backup_codes_user_hash"),)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)
