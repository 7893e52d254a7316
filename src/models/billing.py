"""Contract and rent billing domain models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from src.models.clock import utcnow

RENT_DUE_DAY = 5


class FeeKind(str, Enum):
    """Which obligation a payment settles."""

    CONTRACT = "contract"
    RENT = "rent"


class PaymentMethod(str, Enum):
    """Payment rail used for a fee."""

    CARD = "card"
    MOBILE = "mobile"


class ContractStatus(str, Enum):
    """Contract fee lifecycle."""

    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"


class RentStatus(str, Enum):
    """Monthly rent lifecycle."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class Contract(BaseModel):
    """Annual contract fee obligation of an approved business."""

    id: UUID = Field(default_factory=uuid4)
    business_id: UUID
    owner_id: int
    status: ContractStatus = ContractStatus.PENDING
    amount: Decimal = Field(gt=0)
    payment_date: Optional[datetime] = None
    expiry: Optional[datetime] = None
    order_reference: Optional[str] = None
    transaction_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_paid(self) -> bool:
        return self.status == ContractStatus.PAID


class ContractInput(BaseModel):
    """Input model for contract creation."""

    business_id: UUID
    owner_id: int
    amount: Decimal = Field(gt=0)


class Rent(BaseModel):
    """Monthly rent obligation, unique per business and month."""

    id: UUID = Field(default_factory=uuid4)
    business_id: UUID
    owner_id: int
    amount: Decimal = Field(gt=0)
    month: date = Field(description="First day of the billed month")
    status: RentStatus = RentStatus.PENDING
    payment_date: Optional[datetime] = None
    order_reference: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("month")
    @classmethod
    def validate_month(cls, v: date) -> date:
        """Rent months are keyed by their first day."""
        if v.day != 1:
            raise ValueError("month must be the first day of a month")
        return v

    @property
    def is_paid(self) -> bool:
        return self.status == RentStatus.PAID

    @property
    def due_date(self) -> date:
        """Rent is due on the 5th of its month."""
        return self.month.replace(day=RENT_DUE_DAY)


class RentInput(BaseModel):
    """Input model for rent creation."""

    business_id: UUID
    owner_id: int
    amount: Decimal = Field(gt=0)
    month: date


class RentScheduleEntry(BaseModel):
    """One upcoming month in a business's rent schedule."""

    month: date
    amount: Decimal
    status: RentStatus
    due_date: date


class RevenueBreakdown(BaseModel):
    """Revenue split by source."""

    contract_revenue: Decimal
    total_rent_revenue: Decimal
    last_month_rent_revenue: Decimal


class RevenueSummary(BaseModel):
    """Total revenue computed on demand from paid records."""

    total_revenue: Decimal
    breakdown: RevenueBreakdown


class PaymentIssues(BaseModel):
    """Why a business is listed as unpaid."""

    contract_unpaid: bool
    rent_overdue: bool
    last_rent_due_date: Optional[date] = None
    rent_amount: Optional[Decimal] = None
    contract_amount: Optional[Decimal] = None


class UnpaidBusiness(BaseModel):
    """Delinquency report row."""

    business_id: UUID
    business_name: str
    owner_id: int
    location: Optional[str] = None
    payment_issues: PaymentIssues


class ContractFeeStatus(BaseModel):
    """Current status of the latest contract."""

    status: ContractStatus
    payment_date: Optional[datetime] = None


class RentFeeStatus(BaseModel):
    """Current status of one month's rent."""

    status: RentStatus
    payment_date: Optional[datetime] = None


class PaymentOverview(BaseModel):
    """Contract status plus the current month's rent status."""

    contract: Optional[ContractFeeStatus] = None
    rent: Optional[RentFeeStatus] = None
    rent_month: date
