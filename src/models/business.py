"""Business application domain models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from src.models.clock import utcnow


class ApplicationStatus(str, Enum):
    """Business application review status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MORE_INFO_REQUESTED = "more-info-requested"


class BusinessApplication(BaseModel):
    """A user's request (and, once approved, licence) to operate a business."""

    id: UUID = Field(default_factory=uuid4)
    owner_id: int = Field(description="User ID of the business owner")
    name: str = Field(min_length=1, max_length=200)
    location: Optional[str] = Field(default=None, description="Assigned location name")
    justification_text: str = Field(min_length=1)
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING)
    admin_feedback: str = ""
    contract_fee: Decimal = Field(gt=0)
    rent_fee: Decimal = Field(default=Decimal("0"), ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def validate_rent_fee(self) -> "BusinessApplication":
        """An approved business must carry a positive rent fee."""
        if self.status == ApplicationStatus.APPROVED and self.rent_fee <= 0:
            raise ValueError("approved business requires rent_fee > 0")
        return self

    @property
    def is_approved(self) -> bool:
        return self.status == ApplicationStatus.APPROVED


class BusinessApplicationInput(BaseModel):
    """Input model for submitting an application."""

    owner_id: int
    name: str = Field(min_length=1, max_length=200)
    justification_text: str = Field(min_length=1)
    contract_fee: Decimal = Field(gt=0)


class BusinessApplicationEdit(BaseModel):
    """Owner edits to an application still under review."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    justification_text: Optional[str] = Field(default=None, min_length=1)
