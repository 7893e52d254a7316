"""Support ticket and user report domain models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.models.clock import utcnow


class TicketStatus(str, Enum):
    """Support ticket progression (forward only)."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


class ReportStatus(str, Enum):
    """User report progression (forward only)."""

    PENDING = "pending"
    UNDER_REVIEW = "under-review"
    RESOLVED = "resolved"
    ARCHIVED = "archived"


TICKET_ORDER = list(TicketStatus)
REPORT_ORDER = list(ReportStatus)


class Attachment(BaseModel):
    """Stored upload reference (value object)."""

    filename: str
    path: str
    mimetype: str


class AttachmentUpload(BaseModel):
    """Raw upload as received from the client."""

    filename: str = Field(min_length=1)
    content_type: str
    data: bytes


class Resolution(BaseModel):
    """How and by whom a ticket or report was closed."""

    comment: Optional[str] = None
    resolved_at: datetime
    resolved_by: int


class Ticket(BaseModel):
    """Support ticket raised by a user."""

    id: UUID = Field(default_factory=uuid4)
    user_id: int
    subject: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1)
    attachments: list[Attachment] = Field(default_factory=list)
    status: TicketStatus = TicketStatus.PENDING
    assigned_to: Optional[int] = None
    resolution: Optional[Resolution] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class TicketInput(BaseModel):
    """Input model for ticket creation."""

    user_id: int
    subject: str = Field(min_length=1, max_length=200)
    body: str = Field(min_length=1)
    attachments: list[Attachment] = Field(default_factory=list, max_length=5)


class UserReport(BaseModel):
    """Report filed by one user against another."""

    id: UUID = Field(default_factory=uuid4)
    reported_user_id: int
    reported_by: int
    subject: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    attachments: list[Attachment] = Field(default_factory=list)
    status: ReportStatus = ReportStatus.PENDING
    resolution: Optional[Resolution] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserReportInput(BaseModel):
    """Input model for user report creation."""

    reported_user_id: int
    reported_by: int
    subject: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    attachments: list[Attachment] = Field(default_factory=list, max_length=5)
