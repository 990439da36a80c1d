"""Telegram notification channel."""

from aiogram import Bot

from autorules.actions.channels.base import NotificationChannel, NotificationMessage
from autorules.core.config import get_settings
from autorules.core.logging import get_logger

logger = get_logger(__name__)


class TelegramChannel(NotificationChannel):
    """Telegram Bot notification channel."""

    def __init__(self, bot: Bot | None = None):
        settings = get_settings()
        self._bot = bot
        if self._bot is None and settings.telegram_bot_token:
            self._bot = Bot(token=settings.telegram_bot_token)

    @property
    def channel_type(self) -> str:
        return "telegram"

    async def send(self, message: NotificationMessage) -> bool:
        """Send the message to every chat id in ``recipients``."""
        if not self._bot:
            logger.warning("Telegram bot not configured")
            return False

        if not message.recipients:
            logger.warning("Telegram notification missing chat ids")
            return False

        text = f"*{message.subject}*\n\n{message.body}" if message.subject else message.body
        sent = 0
        for chat_id in message.recipients:
            try:
                await self._bot.send_message(chat_id=chat_id, text=text, parse_mode="Markdown")
                sent += 1
            except Exception as e:
                logger.error("Telegram send failed", chat_id=chat_id, error=str(e))

        logger.info(
            "Telegram notification sent",
            sent=sent,
            recipients=len(message.recipients),
            execution_id=message.execution_id,
        )
        return sent == len(message.recipients)

    async def close(self) -> None:
        """Close bot session."""
        if self._bot:
            await self._bot.session.close()
