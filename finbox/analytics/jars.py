"""
Caixinha (jar) balances and simulated CDI interest.

A jar's balance is always folded from its ledger. Interest is credited back
into the ledger once per local calendar day by ``run_daily_accrual``, guarded
by a durable ``last_accrual_date`` marker so restarts neither skip nor repeat
a day.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from loguru import logger

from finbox.db.repository import JARS
from finbox.models.schemas import (
    AccrualRun,
    InterestAccrual,
    JarEntry,
    JarEvent,
    JarSummary,
    StoreFailure,
)
from finbox.parsing.colors import color_for

MONTHLY_RATE = Decimal("0.0079")
TAX_RATE = Decimal("0.20")
CENT = Decimal("0.01")

LAST_ACCRUAL_MARKER = "last_accrual_date"


def _signed(entry: JarEntry | JarEvent) -> Decimal:
    return entry.amount if entry.direction == "credit" else -entry.amount


def jar_balance(ledger: list[JarEntry | JarEvent], jar_name: str | None = None) -> Decimal:
    """Credits minus debits, optionally restricted to one jar."""
    return sum(
        (_signed(entry) for entry in ledger if jar_name is None or entry.jar_name == jar_name),
        Decimal(0),
    )


def balances_by_jar(ledger: list[JarEntry | JarEvent]) -> dict[str, Decimal]:
    balances: dict[str, Decimal] = defaultdict(Decimal)
    for entry in ledger:
        balances[entry.jar_name] += _signed(entry)
    return dict(balances)


def is_business_day(day: date) -> bool:
    return day.weekday() < 5


def compute_accrual(balance: Decimal, day: date) -> InterestAccrual:
    if not is_business_day(day) or balance <= 0:
        return InterestAccrual()
    gross = balance * MONTHLY_RATE
    tax = gross * TAX_RATE
    # only the net credit is rounded; gross and tax are rounded for display
    return InterestAccrual(
        gross_gain=gross.quantize(CENT, rounding=ROUND_HALF_UP),
        tax=tax.quantize(CENT, rounding=ROUND_HALF_UP),
        net_gain=(gross - tax).quantize(CENT, rounding=ROUND_HALF_UP),
    )


def accrue_interest(balance: Decimal, day: date) -> Decimal:
    return compute_accrual(balance, day).net_gain


def accrual_key(day: date, jar_name: str) -> str:
    return f"accrual:{day.isoformat()}:{jar_name}"


def jar_summaries(ledger: list[JarEntry], today: date) -> list[JarSummary]:
    return [
        JarSummary(
            jar_name=name,
            balance=balance,
            projected_accrual=compute_accrual(balance, today),
            color=color_for(name),
        )
        for name, balance in sorted(balances_by_jar(ledger).items())
    ]


def _days_to_process(last: date | None, today: date, max_catchup_days: int) -> list[date]:
    if last is None:
        return [today]
    first = max(last + timedelta(days=1), today - timedelta(days=max_catchup_days - 1))
    return [first + timedelta(days=n) for n in range((today - first).days + 1)]


def run_daily_accrual(store, today: date, max_catchup_days: int = 31) -> AccrualRun:
    """Credit each jar's net interest for every day not yet accrued, up to ``today``."""
    marker = store.get_marker(LAST_ACCRUAL_MARKER)
    last = date.fromisoformat(marker) if marker else None
    if last is not None and last >= today:
        logger.info("Accrual already done for {}", last)
        return AccrualRun(skipped=True)

    run = AccrualRun(days=_days_to_process(last, today, max_catchup_days))
    for day in run.days:
        if not is_business_day(day):
            continue
        for name, balance in sorted(balances_by_jar(store.jar_entries()).items()):
            key = accrual_key(day, name)
            if store.exists(JARS, key):
                continue
            gain = accrue_interest(balance, day)
            if gain <= 0:
                continue
            try:
                entry = store.upsert(
                    JARS,
                    key,
                    {
                        "jar_name": name,
                        "amount": gain,
                        "direction": "credit",
                        "source": "accrual",
                        "accrued_for": day,
                    },
                )
            except Exception as e:
                logger.error("Accrual for {} on {} failed: {}", name, day, e)
                run.failures.append(
                    StoreFailure(table=JARS, key=key, operation="upsert", error=str(e))
                )
                continue
            run.entries.append(entry)

    if run.failures:
        logger.warning("Accrual incomplete, marker left at {}", marker)
    else:
        store.set_marker(LAST_ACCRUAL_MARKER, today.isoformat())
    logger.info("Accrued {} entries over {} days", len(run.entries), len(run.days))
    return run
