"""Domain error taxonomy.

Validation and conflict errors are caller-fixable and carry the field or fee
period that needs attention. Gateway errors are retryable by the caller; the
services never retry provider calls on their own.
"""

from typing import Any, Optional


class LicensingError(Exception):
    """Base class for all domain errors."""

    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses and structured logs."""
        return {"code": self.code, "message": self.message}


class ValidationError(LicensingError):
    """Missing or invalid input."""

    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class InvalidPhoneFormatError(ValidationError):
    """Phone number is not in a supported Malawian format."""

    code = "invalid_phone_format"

    def __init__(self, phone_number: str):
        super().__init__(
            f"Invalid phone number format: {phone_number!r}", field="phone_number"
        )
        self.phone_number = phone_number


class ContractRequiredError(ValidationError):
    """Rent cannot be paid before the contract fee."""

    code = "contract_required"

    def __init__(self, business_id: Any):
        super().__init__("Contract must be paid first", field="contract")
        self.business_id = business_id


class ConflictError(LicensingError):
    """Operation conflicts with the current state of a record."""

    code = "conflict"

    def __init__(self, message: str, period: Optional[str] = None):
        super().__init__(message)
        self.period = period

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.period:
            data["period"] = self.period
        return data


class AlreadyPaidError(ConflictError):
    """The fee for this period has already been paid."""

    code = "already_paid"

    def __init__(self, fee_kind: str, period: Optional[str] = None):
        label = "Contract already paid" if fee_kind == "contract" else "Rent already paid"
        if period:
            label = f"{label} for {period}"
        super().__init__(label, period=period)
        self.fee_kind = fee_kind


class LocationInUseError(ConflictError):
    """Location is assigned to a business."""

    code = "location_in_use"

    def __init__(self, location_name: str):
        super().__init__(f"Cannot delete location '{location_name}': it is currently in use")
        self.location_name = location_name


class LocationUnavailableError(ConflictError):
    """Location has already been taken."""

    code = "location_unavailable"

    def __init__(self, location_name: str):
        super().__init__(f"Location '{location_name}' is not available")
        self.location_name = location_name


class NotFoundError(LicensingError):
    """Referenced record does not exist (or is not visible to the caller)."""

    code = "not_found"

    def __init__(self, resource: str, identifier: Any = None, message: Optional[str] = None):
        super().__init__(message or f"{resource} not found")
        self.resource = resource
        self.identifier = identifier


class AuthorizationError(LicensingError):
    """Principal lacks the role or ownership required."""

    code = "forbidden"

    def __init__(self, action: str, role: Optional[str] = None):
        super().__init__(f"Not allowed to {action}")
        self.action = action
        self.role = role


class GatewayError(LicensingError):
    """Payment provider failure (network, 4xx, 5xx or rejected request)."""

    code = "gateway_error"
    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retryable"] = self.retryable
        return data


class PollingTimeoutError(LicensingError):
    """Status polling hit its ceiling without a terminal result.

    Not a payment failure: the outcome is unknown and the caller should
    check the status again later.
    """

    code = "polling_timeout"

    def __init__(self, elapsed_seconds: float, last_result: Any = None):
        super().__init__(
            f"Payment status still unknown after {elapsed_seconds:.0f}s; check again later"
        )
        self.elapsed_seconds = elapsed_seconds
        self.last_result = last_result
