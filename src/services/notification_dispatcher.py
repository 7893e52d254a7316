"""Notification dispatcher.

Persists in-app notifications and fans them out to push. Persistence is the
source of truth; push delivery is best-effort and never fails the caller.
"""

from typing import Any, Optional
from uuid import UUID

from src.logging import get_logger
from src.models.notification import Notification, NotificationInput, NotificationType
from src.models.user import Principal, User
from src.services.errors import NotFoundError
from src.services.push_sender import TelegramPushSender
from src.storage.postgres_notification_repo import PostgresNotificationRepository
from src.storage.postgres_user_repo import PostgresUserRepository

logger = get_logger(__name__)

LIST_LIMIT = 50


class NotificationDispatcher:
    """Create, list and deliver notifications."""

    def __init__(
        self,
        notification_repo: PostgresNotificationRepository,
        user_repo: PostgresUserRepository,
        push_sender: Optional[TelegramPushSender] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            notification_repo: Notification persistence
            user_repo: Used to look up the recipient's linked push chat
            push_sender: Push transport; push is skipped when None
        """
        self.notification_repo = notification_repo
        self.user_repo = user_repo
        self.push_sender = push_sender

    async def notify(
        self,
        recipient_id: int,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        link: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Notification:
        """
        Persist a notification and attempt push delivery.

        Returns:
            The stored notification, whether or not push succeeded
        """
        notification = await self.notification_repo.create(
            NotificationInput(
                recipient_id=recipient_id,
                title=title,
                message=message,
                type=type,
                link=link,
                metadata=metadata or {},
            )
        )

        logger.info(
            "notification_created",
            notification_id=str(notification.id),
            recipient_id=recipient_id,
            type=type.value,
        )

        await self._push(notification)
        return notification

    async def _push(self, notification: Notification) -> None:
        if self.push_sender is None:
            return

        try:
            user = await self.user_repo.get_by_id(notification.recipient_id)
            if user is None or user.push_chat_id is None:
                return
            await self.push_sender.send(
                user.push_chat_id, notification.title, notification.message, notification.link
            )
        except Exception as e:
            logger.warning(
                "push_delivery_failed",
                notification_id=str(notification.id),
                recipient_id=notification.recipient_id,
                error=str(e),
            )

    async def list_for(self, principal: Principal) -> list[Notification]:
        """The caller's latest notifications, newest first."""
        return await self.notification_repo.list_for_recipient(principal.id, limit=LIST_LIMIT)

    async def mark_read(self, principal: Principal, notification_id: UUID) -> Notification:
        """
        Mark one of the caller's notifications as read.

        Raises:
            NotFoundError: No such notification for this recipient
        """
        if not await self.notification_repo.mark_read(notification_id, principal.id):
            raise NotFoundError("notification", notification_id, "Notification not found")

        notification = await self.notification_repo.get_by_id(notification_id)
        if notification is None:
            raise NotFoundError("notification", notification_id, "Notification not found")
        return notification

    async def unread_count(self, principal: Principal) -> int:
        return await self.notification_repo.count_unread(principal.id)

    async def subscribe_push(self, principal: Principal, chat_id: int) -> User:
        """Link a Telegram chat for push delivery."""
        user = await self.user_repo.set_push_chat(principal.id, chat_id)
        logger.info("push_subscribed", user_id=principal.id)
        return user

    async def unsubscribe_push(self, principal: Principal) -> User:
        """Stop push delivery for the caller."""
        user = await self.user_repo.set_push_chat(principal.id, None)
        logger.info("push_unsubscribed", user_id=principal.id)
        return user
