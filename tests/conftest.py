"""
Shared pytest fixtures: in-memory TinyDB ledger with a controllable clock.
"""
from datetime import datetime, timezone

import pytest
from tinydb.storages import MemoryStorage

from finbox.config import Settings
from finbox.db.repository import LedgerRepository


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock():
    return Clock(datetime(2024, 3, 1, 15, 0, tzinfo=timezone.utc))


@pytest.fixture()
def repo(clock):
    return LedgerRepository(storage=MemoryStorage, clock=clock)


@pytest.fixture()
def settings():
    return Settings(
        _env_file=None,
        telegram_bot_token="",
        chat_id=42,
        timezone="America/Sao_Paulo",
        fetch_limit=100,
        fetch_retries=2,
        fetch_retry_delay=0,
        run_scheduler=False,
        sync_on_startup=False,
    )
