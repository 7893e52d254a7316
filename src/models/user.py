"""User domain model."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.models.clock import utcnow


class UserRole(str, Enum):
    """User role enumeration."""

    USER = "user"
    SUPPORT = "support"
    STAFF = "staff"
    ADMIN = "admin"


class Principal(BaseModel):
    """Authenticated caller as resolved by the identity provider."""

    id: int
    role: UserRole = UserRole.USER


class User(BaseModel):
    """Registered user (market trader or staff member)."""

    id: int = Field(description="Auto-increment primary key")
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    role: UserRole = Field(default=UserRole.USER)
    push_chat_id: Optional[int] = Field(
        default=None, description="Telegram chat that receives push notifications"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def as_principal(self) -> Principal:
        return Principal(id=self.id, role=self.role)


class UserInput(BaseModel):
    """Input model for user creation."""

    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    role: UserRole = UserRole.USER
