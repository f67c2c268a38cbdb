import asyncio
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from loguru import logger

# Fire slightly after midnight so the new local date is already in effect
MIDNIGHT_GRACE = timedelta(seconds=5)


def seconds_until_next_run(now: datetime, tz: ZoneInfo) -> float:
    local = now.astimezone(tz)
    next_midnight = datetime.combine(local.date() + timedelta(days=1), time.min, tzinfo=tz)
    return (next_midnight + MIDNIGHT_GRACE - local).total_seconds()


async def accrual_loop(service, tz: ZoneInfo) -> None:
    """Check the daily accrual now and after every local midnight."""
    while True:
        try:
            run = service.run_accrual()
            if not run.skipped:
                logger.info("Daily accrual credited {} entries", len(run.entries))
        except Exception as e:
            logger.error("Daily accrual failed: {}", e)

        delay = seconds_until_next_run(datetime.now(tz), tz)
        logger.debug("Next accrual check in {:.0f}s", delay)
        await asyncio.sleep(delay)
