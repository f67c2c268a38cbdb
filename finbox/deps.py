from functools import lru_cache

from finbox.config import get_settings
from finbox.db.repository import LedgerRepository
from finbox.sync.service import SyncService
from finbox.sync.source import TelegramMessageSource


@lru_cache
def get_repo() -> LedgerRepository:
    return LedgerRepository(get_settings().db_path)


@lru_cache
def get_service() -> SyncService:
    settings = get_settings()
    source = TelegramMessageSource(
        settings.telegram_bot_token,
        limit=settings.fetch_limit,
        retries=settings.fetch_retries,
        retry_delay=settings.fetch_retry_delay,
    )
    return SyncService(source, get_repo(), settings)
