"""User (identity) ORM model."""

from datetime import datetime

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal_auth.models.orm.base import Base, TimestampMixin, UTCDateTime, UUIDMixin


class UserORM(Base, UUIDMixin, TimestampMixin):
    """Identity database model with local password auth."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)

    # Security fields
    requires_2fa: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Password management
    password_changed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Login tracking
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Relationships
    totp_secret: Mapped["TotpSecretORM"] = relationship(
        "TotpSecretORM",
        back_populates="user",
        cascade="all, delete-orphan",
        uselist=False,
    )
    sessions: Mapped[list["AuthSessionORM"]] = relationship(
        "AuthSessionORM",
        back_populates="user",
        cascade="all, delete-orphan",
    )
