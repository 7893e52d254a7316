"""Payment gateway value objects.

Provider responses are normalized into these types at the adapter boundary
so nothing past the gateway needs to know the provider's field names.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.models.billing import FeeKind, PaymentMethod


class PaymentOutcome(str, Enum):
    """Normalized payment state."""

    PAID = "paid"
    PENDING = "pending"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentOutcome.PAID, PaymentOutcome.FAILED)


class GatewayResult(BaseModel):
    """Normalized status check result with the raw provider payload."""

    outcome: PaymentOutcome
    reference: str
    message: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)


class CardOrder(BaseModel):
    """Card redirect order created with the provider."""

    order_reference: str
    payment_page_url: str
    raw: dict[str, Any] = Field(default_factory=dict)


class MobilePayment(BaseModel):
    """Mobile push payment created with the provider."""

    transaction_id: str
    message: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)


class PaymentInitiation(BaseModel):
    """What the caller needs to continue a payment."""

    fee_kind: FeeKind
    method: PaymentMethod
    record_id: UUID
    amount: Decimal
    reference: str
    payment_page_url: Optional[str] = None
    message: Optional[str] = None


class PaymentStatusResult(BaseModel):
    """Reconciled status of a billing record after a status check."""

    fee_kind: FeeKind
    record_id: UUID
    reference: str
    outcome: PaymentOutcome
    message: Optional[str] = None
    newly_paid: bool = False
    gateway_checked: bool = True
    raw: dict[str, Any] = Field(default_factory=dict)
