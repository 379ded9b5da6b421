"""Identity domain model."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr


class UserRole(StrEnum):
    """Role flag exposed to the surrounding system."""

    USER = "user"
    ADMIN = "admin"


class Identity(BaseModel):
    """Identity domain model."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    role: UserRole = UserRole.USER
    requires_2fa: bool = False
    is_active: bool = True
    last_login_at: datetime | None = None
