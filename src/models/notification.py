"""In-app notification domain model."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.models.clock import utcnow


class NotificationType(str, Enum):
    """Visual severity of a notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """Persisted notification for one recipient."""

    id: UUID = Field(default_factory=uuid4)
    recipient_id: int
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    type: NotificationType = NotificationType.INFO
    read: bool = False
    link: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class NotificationInput(BaseModel):
    """Input model for notification creation."""

    recipient_id: int
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    type: NotificationType = NotificationType.INFO
    link: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
