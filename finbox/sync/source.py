import asyncio

from loguru import logger
from telegram import Bot
from telegram.error import TelegramError

from finbox.models.schemas import RawMessage


class SourceUnavailable(Exception):
    """The chat history could not be fetched."""


class TelegramMessageSource:
    """Pulls the recent window of chat messages through ``getUpdates``."""

    def __init__(
        self,
        token: str,
        limit: int = 100,
        retries: int = 3,
        retry_delay: float = 2.0,
        bot: Bot | None = None,
    ):
        self.token = token
        self.limit = limit
        self.retries = max(retries, 1)
        self.retry_delay = retry_delay
        self._bot = bot

    def _get_bot(self) -> Bot:
        if self._bot is None:
            if not self.token:
                raise SourceUnavailable("TELEGRAM_BOT_TOKEN not set")
            self._bot = Bot(self.token)
        return self._bot

    @staticmethod
    def _to_raw(update) -> RawMessage | None:
        message = update.edited_message or update.message
        if message is None:
            return None
        return RawMessage(
            id=message.message_id,
            chat_id=message.chat.id,
            text=message.text or "",
            timestamp=message.edit_date or message.date,
        )

    async def fetch_recent_messages(self) -> list[RawMessage]:
        bot = self._get_bot()

        for attempt in range(1, self.retries + 1):
            try:
                async with bot:
                    # a negative offset returns the newest updates in the queue
                    updates = await bot.get_updates(
                        offset=-self.limit,
                        limit=self.limit,
                        timeout=0,
                        allowed_updates=["message", "edited_message"],
                    )
                break
            except TelegramError as e:
                logger.warning(
                    "getUpdates failed (attempt {}/{}): {}", attempt, self.retries, e
                )
                if attempt == self.retries:
                    raise SourceUnavailable(str(e)) from e
                await asyncio.sleep(self.retry_delay * attempt)

        messages = [raw for raw in map(self._to_raw, updates) if raw is not None]
        logger.info("Fetched {} messages from {} updates", len(messages), len(updates))
        return messages
