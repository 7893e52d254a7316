"""Models package - Pydantic domain models."""

from .billing import (
    Contract,
    ContractInput,
    ContractStatus,
    FeeKind,
    PaymentMethod,
    Rent,
    RentInput,
    RentStatus,
)
from .business import (
    ApplicationStatus,
    BusinessApplication,
    BusinessApplicationEdit,
    BusinessApplicationInput,
)
from .location import Location, LocationInput
from .notification import Notification, NotificationInput, NotificationType
from .payment import GatewayResult, PaymentOutcome
from .support import (
    Attachment,
    AttachmentUpload,
    ReportStatus,
    Ticket,
    TicketStatus,
    UserReport,
)
from .user import Principal, User, UserInput, UserRole

__all__ = [
    "Contract",
    "ContractInput",
    "ContractStatus",
    "FeeKind",
    "PaymentMethod",
    "Rent",
    "RentInput",
    "RentStatus",
    "ApplicationStatus",
    "BusinessApplication",
    "BusinessApplicationEdit",
    "BusinessApplicationInput",
    "Location",
    "LocationInput",
    "Notification",
    "NotificationInput",
    "NotificationType",
    "GatewayResult",
    "PaymentOutcome",
    "Attachment",
    "AttachmentUpload",
    "ReportStatus",
    "Ticket",
    "TicketStatus",
    "UserReport",
    "Principal",
    "User",
    "UserInput",
    "UserRole",
]
