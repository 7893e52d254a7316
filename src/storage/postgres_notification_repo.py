"""PostgreSQL repository for Notification entities."""

from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.logging import get_logger
from src.models.notification import Notification, NotificationInput
from src.storage.db_models import NotificationTable
from src.storage.repository_base import RepositoryBase

logger = get_logger(__name__)


class PostgresNotificationRepository(RepositoryBase[Notification]):
    """Notification repository using PostgreSQL."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session."""
        super().__init__(session)

    async def get_by_id(self, id: UUID) -> Optional[Notification]:
        """Retrieve notification by ID."""
        stmt = (
            select(NotificationTable)
            .where(NotificationTable.id == id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        db_notification = result.scalar_one_or_none()

        return self._to_domain_model(db_notification) if db_notification else None

    async def create(self, entity: NotificationInput) -> Notification:
        """Persist a new unread notification."""
        db_notification = NotificationTable(
            recipient_id=entity.recipient_id,
            title=entity.title,
            message=entity.message,
            type=entity.type,
            link=entity.link,
            extra=entity.metadata,
            read=False,
        )

        self.session.add(db_notification)
        await self._commit()

        return self._to_domain_model(db_notification)

    async def list_for_recipient(self, recipient_id: int, limit: int = 50) -> list[Notification]:
        """Latest notifications of one recipient."""
        stmt = (
            select(NotificationTable)
            .where(NotificationTable.recipient_id == recipient_id)
            .order_by(NotificationTable.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._to_domain_model(row) for row in result.scalars().all()]

    async def mark_read(self, id: UUID, recipient_id: int) -> bool:
        """Mark read; only matches the recipient's own notification."""
        result = await self.session.execute(
            update(NotificationTable)
            .where(NotificationTable.id == id, NotificationTable.recipient_id == recipient_id)
            .values(read=True)
        )
        await self._commit()
        return result.rowcount == 1

    async def count_unread(self, recipient_id: int) -> int:
        """Unread notifications of one recipient."""
        stmt = (
            select(func.count())
            .select_from(NotificationTable)
            .where(
                NotificationTable.recipient_id == recipient_id,
                NotificationTable.read.is_(False),
            )
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    def _to_domain_model(self, db_notification: NotificationTable) -> Notification:
        """Convert database model to domain model."""
        return Notification(
            id=db_notification.id,
            recipient_id=db_notification.recipient_id,
            title=db_notification.title,
            message=db_notification.message,
            type=db_notification.type,
            read=db_notification.read,
            link=db_notification.link,
            metadata=dict(db_notification.extra or {}),
            created_at=db_notification.created_at,
        )
