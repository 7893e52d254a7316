"""Push delivery through a Telegram bot."""

from telegram import Bot

from src.logging import get_logger

logger = get_logger(__name__)


class TelegramPushSender:
    """Deliver a notification as a Telegram message to the user's linked chat."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send(self, chat_id: int, title: str, message: str, link: str | None = None) -> None:
        """Send one push message. Errors propagate to the caller."""
        text = f"{title}\n\n{message}"
        if link:
            text = f"{text}\n{link}"

        await self.bot.send_message(chat_id=chat_id, text=text)

        logger.info("push_sent", chat_id=chat_id)
