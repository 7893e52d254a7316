"""Structured audit logging for licensing and billing actions.

Provides detailed audit trails for compliance and security monitoring.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from src.logging import get_logger
from src.models.clock import utcnow

logger = get_logger(__name__)


class AuditEventType(str, Enum):
    """Types of auditable events."""

    # Application workflow
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_APPROVED = "application_approved"
    APPLICATION_REJECTED = "application_rejected"
    APPLICATION_INFO_REQUESTED = "application_info_requested"

    # Locations
    LOCATION_CREATED = "location_created"
    LOCATION_ASSIGNED = "location_assigned"
    LOCATION_DELETED = "location_deleted"

    # Payments
    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_FAILED = "payment_failed"

    # Support desk
    SUPPORT_CASE_RESOLVED = "support_case_resolved"

    # Security
    PERMISSION_DENIED = "permission_denied"


class AuditLogger:
    """Centralized audit logging service."""

    @staticmethod
    def log_event(
        event_type: AuditEventType,
        actor_id: int,
        resource_type: str,
        resource_id: UUID | str,
        action: str,
        success: bool = True,
        metadata: Optional[dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Log an auditable event with structured context.

        Args:
            event_type: Type of audit event
            actor_id: User ID performing the action
            resource_type: Type of resource (business, location, contract, rent, ...)
            resource_id: ID of the affected resource
            action: Human-readable action description
            success: Whether the action succeeded
            metadata: Additional context (amounts, references, etc.)
            error: Error message if action failed
        """
        audit_entry = {
            "event_type": event_type.value,
            "actor_id": actor_id,
            "resource_type": resource_type,
            "resource_id": str(resource_id),
            "action": action,
            "success": success,
            "timestamp": utcnow().isoformat(),
            "metadata": metadata or {},
        }

        if error:
            audit_entry["error"] = error

        logger.info(
            "audit_event",
            **audit_entry,
        )

    @staticmethod
    def log_application_submitted(actor_id: int, business_id: UUID, name: str) -> None:
        """Log a new business application."""
        AuditLogger.log_event(
            event_type=AuditEventType.APPLICATION_SUBMITTED,
            actor_id=actor_id,
            resource_type="business",
            resource_id=business_id,
            action=f"Submitted application: {name}",
            metadata={"name": name},
        )

    @staticmethod
    def log_application_decision(
        actor_id: int,
        business_id: UUID,
        name: str,
        status: str,
        rent_fee: Optional[Decimal] = None,
    ) -> None:
        """Log an admin decision on an application."""
        event_type = {
            "approved": AuditEventType.APPLICATION_APPROVED,
            "rejected": AuditEventType.APPLICATION_REJECTED,
        }.get(status, AuditEventType.APPLICATION_INFO_REQUESTED)

        metadata: dict[str, Any] = {"name": name, "status": status}
        if rent_fee is not None:
            metadata["rent_fee"] = str(rent_fee)

        AuditLogger.log_event(
            event_type=event_type,
            actor_id=actor_id,
            resource_type="business",
            resource_id=business_id,
            action=f"Set application status to {status}: {name}",
            metadata=metadata,
        )

    @staticmethod
    def log_location_change(
        event_type: AuditEventType,
        actor_id: int,
        location_id: UUID,
        location_name: str,
        business_id: Optional[UUID] = None,
    ) -> None:
        """Log location creation, assignment or deletion."""
        metadata: dict[str, Any] = {"location": location_name}
        if business_id is not None:
            metadata["business_id"] = str(business_id)

        AuditLogger.log_event(
            event_type=event_type,
            actor_id=actor_id,
            resource_type="location",
            resource_id=location_id,
            action=f"{event_type.value.replace('_', ' ').capitalize()}: {location_name}",
            metadata=metadata,
        )

    @staticmethod
    def log_payment_initiated(
        actor_id: int,
        fee_kind: str,
        record_id: UUID,
        amount: Decimal,
        method: str,
        reference: str,
    ) -> None:
        """Log a payment handed to the gateway."""
        AuditLogger.log_event(
            event_type=AuditEventType.PAYMENT_INITIATED,
            actor_id=actor_id,
            resource_type=fee_kind,
            resource_id=record_id,
            action=f"Initiated {method} payment for {fee_kind}",
            metadata={"amount": str(amount), "method": method, "reference": reference},
        )

    @staticmethod
    def log_payment_result(
        actor_id: int,
        fee_kind: str,
        record_id: UUID,
        reference: str,
        paid: bool,
        message: Optional[str] = None,
    ) -> None:
        """Log a terminal payment outcome reported by the gateway."""
        AuditLogger.log_event(
            event_type=(
                AuditEventType.PAYMENT_CONFIRMED if paid else AuditEventType.PAYMENT_FAILED
            ),
            actor_id=actor_id,
            resource_type=fee_kind,
            resource_id=record_id,
            action=f"{'Confirmed' if paid else 'Failed'} payment for {fee_kind}",
            success=paid,
            metadata={"reference": reference},
            error=None if paid else message,
        )

    @staticmethod
    def log_support_resolved(
        actor_id: int, resource_type: str, resource_id: UUID, comment: Optional[str]
    ) -> None:
        """Log a ticket or report resolution."""
        AuditLogger.log_event(
            event_type=AuditEventType.SUPPORT_CASE_RESOLVED,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=resource_id,
            action=f"Resolved {resource_type}",
            metadata={"comment": comment or ""},
        )

    @staticmethod
    def log_permission_denied(
        actor_id: int,
        resource_type: str,
        resource_id: UUID | str,
        attempted_action: str,
    ) -> None:
        """Log unauthorized access attempts."""
        AuditLogger.log_event(
            event_type=AuditEventType.PERMISSION_DENIED,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=resource_id,
            action=f"Permission denied: {attempted_action}",
            success=False,
            metadata={"attempted_action": attempted_action},
        )
