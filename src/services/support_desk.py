"""Support desk: tickets raised by users and reports filed against users.

Both follow a forward-only status progression handled by support staff.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from src.logging import get_logger
from src.logging.audit import AuditLogger
from src.models.clock import utcnow
from src.models.notification import NotificationType
from src.models.support import (
    REPORT_ORDER,
    TICKET_ORDER,
    AttachmentUpload,
    ReportStatus,
    Resolution,
    Ticket,
    TicketInput,
    TicketStatus,
    UserReport,
    UserReportInput,
)
from src.models.user import Principal
from src.security.permissions import Permission, PermissionChecker
from src.services.attachment_processing import AttachmentProcessor
from src.services.errors import ConflictError, NotFoundError
from src.services.notification_dispatcher import NotificationDispatcher
from src.storage.postgres_support_repo import (
    PostgresTicketRepository,
    PostgresUserReportRepository,
)
from src.storage.postgres_user_repo import PostgresUserRepository

logger = get_logger(__name__)

TICKET_NOTIFY_ON = {TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED}
REPORT_NOTIFY_ON = {ReportStatus.UNDER_REVIEW, ReportStatus.RESOLVED}


def _require_forward(order: list, current, new) -> None:
    if order.index(new) <= order.index(current):
        raise ConflictError(f"Cannot move from '{current.value}' to '{new.value}'")


class SupportDesk:
    """Ticket and user report handling."""

    def __init__(
        self,
        ticket_repo: PostgresTicketRepository,
        report_repo: PostgresUserReportRepository,
        user_repo: PostgresUserRepository,
        attachments: AttachmentProcessor,
        dispatcher: NotificationDispatcher,
        permissions: Optional[PermissionChecker] = None,
    ):
        self.ticket_repo = ticket_repo
        self.report_repo = report_repo
        self.user_repo = user_repo
        self.attachments = attachments
        self.dispatcher = dispatcher
        self.permissions = permissions or PermissionChecker()

    # Tickets

    async def create_ticket(
        self,
        principal: Principal,
        subject: str,
        body: str,
        uploads: Optional[list[AttachmentUpload]] = None,
    ) -> Ticket:
        """
        Raise a ticket.

        Raises:
            ValidationError: Attachments break the upload limits
        """
        stored = await self.attachments.process(uploads or [])
        return await self.ticket_repo.create(
            TicketInput(user_id=principal.id, subject=subject, body=body, attachments=stored)
        )

    async def list_tickets(
        self, principal: Principal, status: Optional[TicketStatus] = None
    ) -> list[Ticket]:
        """All tickets (support only)."""
        self.permissions.require(principal, Permission.MANAGE_SUPPORT, "ticket")
        return await self.ticket_repo.list_all(status)

    async def list_my_tickets(self, principal: Principal) -> list[Ticket]:
        return await self.ticket_repo.list_for_user(principal.id)

    async def _get_ticket(self, ticket_id: UUID) -> Ticket:
        ticket = await self.ticket_repo.get_by_id(ticket_id)
        if ticket is None:
            raise NotFoundError("ticket", ticket_id, "Ticket not found")
        return ticket

    async def assign_ticket(self, principal: Principal, ticket_id: UUID) -> Ticket:
        """
        Take ownership of a pending ticket and move it to in-progress.

        Raises:
            NotFoundError: No such ticket
            ConflictError: Ticket already assigned or past pending
        """
        self.permissions.require(principal, Permission.MANAGE_SUPPORT, "ticket", ticket_id)
        ticket = await self._get_ticket(ticket_id)

        if not await self.ticket_repo.assign(ticket_id, principal.id):
            raise ConflictError("Ticket is already assigned")

        logger.info("ticket_assigned", ticket_id=str(ticket_id), assigned_to=principal.id)
        await self._notify_ticket_owner(ticket, TicketStatus.IN_PROGRESS)
        return await self._get_ticket(ticket_id)

    async def update_ticket_status(
        self,
        principal: Principal,
        ticket_id: UUID,
        status: TicketStatus,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Ticket:
        """
        Move a ticket forward; resolving stamps the resolution.

        Raises:
            NotFoundError: No such ticket
            ConflictError: Backward or repeated transition
        """
        self.permissions.require(principal, Permission.MANAGE_SUPPORT, "ticket", ticket_id)
        ticket = await self._get_ticket(ticket_id)
        _require_forward(TICKET_ORDER, ticket.status, status)

        resolution = None
        if status == TicketStatus.RESOLVED:
            resolution = Resolution(
                comment=comment, resolved_at=now or utcnow(), resolved_by=principal.id
            )

        if not await self.ticket_repo.set_status(ticket_id, ticket.status, status, resolution):
            raise ConflictError("Ticket was updated concurrently; reload and retry")

        logger.info(
            "ticket_status_updated",
            ticket_id=str(ticket_id),
            from_status=ticket.status.value,
            to_status=status.value,
        )
        if resolution is not None:
            AuditLogger.log_support_resolved(principal.id, "ticket", ticket_id, comment)
        if status in TICKET_NOTIFY_ON:
            await self._notify_ticket_owner(ticket, status)

        return await self._get_ticket(ticket_id)

    async def unanswered_count(self, principal: Principal) -> int:
        """Pending tickets nobody has picked up (support or admin)."""
        self.permissions.require(principal, Permission.VIEW_SUPPORT_COUNTS, "ticket")
        return await self.ticket_repo.count_by_status(TicketStatus.PENDING)

    async def _notify_ticket_owner(self, ticket: Ticket, status: TicketStatus) -> None:
        await self.dispatcher.notify(
            recipient_id=ticket.user_id,
            title="Ticket Updated",
            message=f"Your ticket '{ticket.subject}' is now {status.value}",
            type=NotificationType.INFO,
            link="/dashboard",
            metadata={"ticket_id": str(ticket.id)},
        )

    # User reports

    async def create_report(
        self,
        principal: Principal,
        reported_user_id: int,
        subject: str,
        description: str,
        uploads: Optional[list[AttachmentUpload]] = None,
    ) -> UserReport:
        """
        File a report against another user.

        Raises:
            NotFoundError: Reported user does not exist
            ValidationError: Attachments break the upload limits
        """
        if await self.user_repo.get_by_id(reported_user_id) is None:
            raise NotFoundError("user", reported_user_id, "Reported user not found")

        stored = await self.attachments.process(uploads or [])
        return await self.report_repo.create(
            UserReportInput(
                reported_user_id=reported_user_id,
                reported_by=principal.id,
                subject=subject,
                description=description,
                attachments=stored,
            )
        )

    async def list_reports(
        self, principal: Principal, status: Optional[ReportStatus] = None
    ) -> list[UserReport]:
        """All reports (support only)."""
        self.permissions.require(principal, Permission.MANAGE_SUPPORT, "user_report")
        return await self.report_repo.list_all(status)

    async def list_my_reports(self, principal: Principal) -> list[UserReport]:
        return await self.report_repo.list_by_reporter(principal.id)

    async def update_report_status(
        self,
        principal: Principal,
        report_id: UUID,
        status: ReportStatus,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> UserReport:
        """
        Move a report forward and tell the reporter.

        Raises:
            NotFoundError: No such report
            ConflictError: Backward or repeated transition
        """
        self.permissions.require(principal, Permission.MANAGE_SUPPORT, "user_report", report_id)
        report = await self.report_repo.get_by_id(report_id)
        if report is None:
            raise NotFoundError("user_report", report_id, "Report not found")
        _require_forward(REPORT_ORDER, report.status, status)

        resolution = None
        if status == ReportStatus.RESOLVED:
            resolution = Resolution(
                comment=comment, resolved_at=now or utcnow(), resolved_by=principal.id
            )

        if not await self.report_repo.set_status(report_id, report.status, status, resolution):
            raise ConflictError("Report was updated concurrently; reload and retry")

        logger.info(
            "user_report_status_updated",
            report_id=str(report_id),
            from_status=report.status.value,
            to_status=status.value,
        )
        if resolution is not None:
            AuditLogger.log_support_resolved(principal.id, "user_report", report_id, comment)
        if status in REPORT_NOTIFY_ON:
            message = f"Your report '{report.subject}' is now {status.value}"
            if comment:
                message = f"{message}: {comment}"
            await self.dispatcher.notify(
                recipient_id=report.reported_by,
                title="Feedback on user report",
                message=message,
                type=NotificationType.INFO,
                link="/dashboard",
                metadata={"report_id": str(report_id)},
            )

        updated = await self.report_repo.get_by_id(report_id)
        return updated if updated is not None else report
