from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    telegram_bot_token: str = ""
    chat_id: int = 0
    db_path: str = "finbox_ledger.json"
    timezone: str = "America/Sao_Paulo"

    # getUpdates page size; Telegram caps it at 100
    fetch_limit: int = 100
    fetch_retries: int = 3
    fetch_retry_delay: float = 2.0

    # Only keys inside the polled window may be deleted for being absent from it
    scope_deletions_to_window: bool = True
    vanished_delete_mode: Literal["hard", "soft"] = "hard"
    soft_delete_grace_days: int = 30

    accrual_max_catchup_days: int = 31
    sync_on_startup: bool = True
    run_scheduler: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
