"""PostgreSQL repositories for support tickets and user reports."""

from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.logging import get_logger
from src.models.clock import utcnow
from src.models.support import (
    Attachment,
    ReportStatus,
    Resolution,
    Ticket,
    TicketInput,
    TicketStatus,
    UserReport,
    UserReportInput,
)
from src.storage.db_models import TicketTable, UserReportTable
from src.storage.repository_base import RepositoryBase

logger = get_logger(__name__)


def _resolution(row) -> Optional[Resolution]:
    if row.resolved_at is None or row.resolved_by is None:
        return None
    return Resolution(
        comment=row.resolution_comment,
        resolved_at=row.resolved_at,
        resolved_by=row.resolved_by,
    )


class PostgresTicketRepository(RepositoryBase[Ticket]):
    """Support ticket repository using PostgreSQL."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        super().__init__(session)

    async def get_by_id(self, id: UUID) -> Optional[Ticket]:
        """Retrieve ticket by ID."""
        stmt = (
            select(TicketTable)
            .where(TicketTable.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        db_ticket = result.scalar_one_or_none()

        return self._to_domain_model(db_ticket) if db_ticket else None

    async def create(self, entity: TicketInput) -> Ticket:
        """Create new pending ticket."""
        db_ticket = TicketTable(
            user_id=entity.user_id,
            subject=entity.subject,
            body=entity.body,
            attachments=[a.model_dump() for a in entity.attachments],
            status=TicketStatus.PENDING,
        )

        self.session.add(db_ticket)
        await self._commit()

        logger.info(
            "ticket_created",
            ticket_id=str(db_ticket.id),
            user_id=entity.user_id,
            attachments=len(entity.attachments),
        )

        return self._to_domain_model(db_ticket)

    async def list_all(self, status: Optional[TicketStatus] = None) -> list[Ticket]:
        """All tickets, newest first, optionally filtered by status."""
        stmt = select(TicketTable).order_by(TicketTable.created_at.desc())
        if status is not None:
            stmt = stmt.where(TicketTable.status == status)
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def list_for_user(self, user_id: int) -> list[Ticket]:
        """Tickets raised by one user, newest first."""
        stmt = (
            select(TicketTable)
            .where(TicketTable.user_id == user_id)
            .order_by(TicketTable.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def assign(self, id: UUID, staff_id: int) -> bool:
        """Set the assignee of an unassigned pending ticket and start work on it."""
        result = await self.session.execute(
            update(TicketTable)
            .where(
                TicketTable.id == id,
                TicketTable.assigned_to.is_(None),
                TicketTable.status == TicketStatus.PENDING,
            )
            .values(assigned_to=staff_id, status=TicketStatus.IN_PROGRESS, updated_at=utcnow())
        )
        await self._commit()
        return result.rowcount == 1

    async def set_status(
        self,
        id: UUID,
        expected: TicketStatus,
        status: TicketStatus,
        resolution: Optional[Resolution] = None,
    ) -> bool:
        """Move a ticket from the expected status to a new one."""
        values = {"status": status, "updated_at": utcnow()}
        if resolution is not None:
            values.update(
                resolution_comment=resolution.comment,
                resolved_at=resolution.resolved_at,
                resolved_by=resolution.resolved_by,
            )
        result = await self.session.execute(
            update(TicketTable)
            .where(TicketTable.id == id, TicketTable.status == expected)
            .values(**values)
        )
        await self._commit()
        return result.rowcount == 1

    async def count_by_status(self, status: TicketStatus) -> int:
        """Number of tickets in a status."""
        stmt = select(func.count()).select_from(TicketTable).where(TicketTable.status == status)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    def _to_domain_model(self, db_ticket: TicketTable) -> Ticket:
        """Convert database model to domain model."""
        return Ticket(
            id=db_ticket.id,
            user_id=db_ticket.user_id,
            subject=db_ticket.subject,
            body=db_ticket.body,
            attachments=[Attachment(**a) for a in db_ticket.attachments or []],
            status=db_ticket.status,
            assigned_to=db_ticket.assigned_to,
            resolution=_resolution(db_ticket),
            created_at=db_ticket.created_at,
            updated_at=db_ticket.updated_at,
        )


class PostgresUserReportRepository(RepositoryBase[UserReport]):
    """User report repository using PostgreSQL."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        super().__init__(session)

    async def get_by_id(self, id: UUID) -> Optional[UserReport]:
        """Retrieve report by ID."""
        stmt = (
            select(UserReportTable)
            .where(UserReportTable.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        db_report = result.scalar_one_or_none()

        return self._to_domain_model(db_report) if db_report else None

    async def create(self, entity: UserReportInput) -> UserReport:
        """Create new pending report."""
        db_report = UserReportTable(
            reported_user_id=entity.reported_user_id,
            reported_by=entity.reported_by,
            subject=entity.subject,
            description=entity.description,
            attachments=[a.model_dump() for a in entity.attachments],
            status=ReportStatus.PENDING,
        )

        self.session.add(db_report)
        await self._commit()

        logger.info(
            "user_report_created",
            report_id=str(db_report.id),
            reported_user_id=entity.reported_user_id,
            reported_by=entity.reported_by,
        )

        return self._to_domain_model(db_report)

    async def list_all(self, status: Optional[ReportStatus] = None) -> list[UserReport]:
        """All reports, newest first, optionally filtered by status."""
        stmt = select(UserReportTable).order_by(UserReportTable.created_at.desc())
        if status is not None:
            stmt = stmt.where(UserReportTable.status == status)
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def list_by_reporter(self, user_id: int) -> list[UserReport]:
        """Reports filed by one user, newest first."""
        stmt = (
            select(UserReportTable)
            .where(UserReportTable.reported_by == user_id)
            .order_by(UserReportTable.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def set_status(
        self,
        id: UUID,
        expected: ReportStatus,
        status: ReportStatus,
        resolution: Optional[Resolution] = None,
    ) -> bool:
        """Move a report from the expected status to a new one."""
        values = {"status": status, "updated_at": utcnow()}
        if resolution is not None:
            values.update(
                resolution_comment=resolution.comment,
                resolved_at=resolution.resolved_at,
                resolved_by=resolution.resolved_by,
            )
        result = await self.session.execute(
            update(UserReportTable)
            .where(UserReportTable.id == id, UserReportTable.status == expected)
            .values(**values)
        )
        await self._commit()
        return result.rowcount == 1

    def _to_domain_model(self, db_report: UserReportTable) -> UserReport:
        """Convert database model to domain model."""
        return UserReport(
            id=db_report.id,
            reported_user_id=db_report.reported_user_id,
            reported_by=db_report.reported_by,
            subject=db_report.subject,
            description=db_report.description,
            attachments=[Attachment(**a) for a in db_report.attachments or []],
            status=db_report.status,
            resolution=_resolution(db_report),
            created_at=db_report.created_at,
            updated_at=db_report.updated_at,
        )
