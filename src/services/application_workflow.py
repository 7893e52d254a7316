"""Business application workflow: submission, owner edits and admin review."""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from src.logging import get_logger
from src.logging.audit import AuditLogger
from src.models.business import (
    ApplicationStatus,
    BusinessApplication,
    BusinessApplicationEdit,
    BusinessApplicationInput,
)
from src.models.notification import NotificationType
from src.models.user import Principal
from src.security.permissions import Permission, PermissionChecker
from src.services.errors import ConflictError, NotFoundError, ValidationError
from src.services.notification_dispatcher import NotificationDispatcher
from src.storage.postgres_business_repo import PostgresBusinessRepository

logger = get_logger(__name__)

_DECISION_MESSAGES = {
    ApplicationStatus.APPROVED: (
        "Application Approved",
        "Your business application has been approved!",
        NotificationType.SUCCESS,
    ),
    ApplicationStatus.REJECTED: (
        "Application Rejected",
        "Your business application was not approved.",
        NotificationType.ERROR,
    ),
    ApplicationStatus.MORE_INFO_REQUESTED: (
        "More Information Needed",
        "Please update your business application with the requested information.",
        NotificationType.WARNING,
    ),
    ApplicationStatus.PENDING: (
        "Application Under Review",
        "Your business application has been returned to review.",
        NotificationType.INFO,
    ),
}


class ApplicationWorkflow:
    """Drive a business application through its review states."""

    def __init__(
        self,
        business_repo: PostgresBusinessRepository,
        dispatcher: NotificationDispatcher,
        contract_fee: Decimal,
        permissions: Optional[PermissionChecker] = None,
    ):
        """
        Initialize workflow.

        Args:
            business_repo: Business application repository
            dispatcher: Notifies owners of review decisions
            contract_fee: Fixed contract fee stamped on new applications
            permissions: Role checks for admin operations
        """
        self.business_repo = business_repo
        self.dispatcher = dispatcher
        self.contract_fee = contract_fee
        self.permissions = permissions or PermissionChecker()

    async def submit(
        self, principal: Principal, name: str, justification_text: str
    ) -> BusinessApplication:
        """
        Submit the caller's application (one per owner).

        Raises:
            ConflictError: Caller already has an application
        """
        if await self.business_repo.get_by_owner_id(principal.id) is not None:
            raise ConflictError("You already have a business application")

        try:
            business = await self.business_repo.create(
                BusinessApplicationInput(
                    owner_id=principal.id,
                    name=name,
                    justification_text=justification_text,
                    contract_fee=self.contract_fee,
                )
            )
        except IntegrityError as e:
            await self.business_repo.session.rollback()
            raise ConflictError("You already have a business application") from e

        AuditLogger.log_application_submitted(principal.id, business.id, business.name)
        return business

    async def get_mine(self, principal: Principal) -> BusinessApplication:
        """
        The caller's application.

        Raises:
            NotFoundError: Caller has not applied
        """
        business = await self.business_repo.get_by_owner_id(principal.id)
        if business is None:
            raise NotFoundError("business", principal.id, "No business application found")
        return business

    async def list_all(self, principal: Principal) -> list[BusinessApplication]:
        """Every application (admin only)."""
        self.permissions.require(principal, Permission.REVIEW_APPLICATIONS, "business")
        return await self.business_repo.list_all()

    async def edit(
        self, principal: Principal, business_id: UUID, changes: BusinessApplicationEdit
    ) -> BusinessApplication:
        """
        Owner edit of an application still under review.

        An application waiting on more information goes back to pending and
        its feedback is cleared. Pending and rejected applications keep their
        status.

        Raises:
            NotFoundError: No such application
            AuthorizationError: Caller is not the owner
            ConflictError: Application already approved
        """
        business = await self.business_repo.get_by_id(business_id)
        if business is None:
            raise NotFoundError("business", business_id, "Business not found")
        self.permissions.require_owner(
            principal, business.owner_id, "business", business_id, "edit application"
        )
        if business.is_approved:
            raise ConflictError("Approved applications cannot be edited")

        status = business.status
        feedback = business.admin_feedback
        if status == ApplicationStatus.MORE_INFO_REQUESTED:
            status = ApplicationStatus.PENDING
            feedback = ""

        return await self.business_repo.update_details(
            business_id,
            name=changes.name or business.name,
            justification_text=changes.justification_text or business.justification_text,
            status=status,
            admin_feedback=feedback,
        )

    async def set_status(
        self,
        principal: Principal,
        business_id: UUID,
        status: ApplicationStatus,
        feedback: str = "",
        rent_fee: Optional[Decimal] = None,
    ) -> BusinessApplication:
        """
        Record an admin decision.

        Args:
            principal: Caller; must be an admin
            business_id: Application under review
            status: New review status
            feedback: Message for the owner
            rent_fee: Monthly rent; required (and only written) on approval

        Raises:
            AuthorizationError: Caller is not an admin
            ValidationError: Approval without a positive rent fee
            NotFoundError: No such application
            ConflictError: Application already approved
        """
        self.permissions.require(principal, Permission.REVIEW_APPLICATIONS, "business", business_id)

        approving = status == ApplicationStatus.APPROVED
        if approving and (rent_fee is None or rent_fee <= 0):
            raise ValidationError("Valid rent fee is required for approval", field="rent_fee")

        business = await self.business_repo.get_by_id(business_id)
        if business is None:
            raise NotFoundError("business", business_id, "Business not found")
        if business.is_approved:
            raise ConflictError("Application is already approved")

        updated = await self.business_repo.set_status(
            business_id,
            status,
            admin_feedback=feedback or "",
            rent_fee=rent_fee if approving else None,
        )
        if updated is None:
            raise ConflictError("Application is already approved")

        AuditLogger.log_application_decision(
            principal.id,
            business_id,
            updated.name,
            status.value,
            rent_fee=rent_fee if approving else None,
        )

        title, message, kind = _DECISION_MESSAGES[status]
        if feedback:
            message = f"{message}\n\n{feedback}"
        await self.dispatcher.notify(
            recipient_id=updated.owner_id,
            title=title,
            message=message,
            type=kind,
            link="/dashboard",
            metadata={"business_id": str(business_id)},
        )

        return updated
