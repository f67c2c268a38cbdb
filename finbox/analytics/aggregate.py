"""
Monthly expense aggregation.

Every function here builds fresh structures from the records it is given;
nothing is cached between calls.
"""
from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from finbox.models.schemas import (
    DailyDelta,
    MonthlyReport,
    RecordShare,
    StoredExpense,
)

CENT = Decimal("0.01")


def parse_month(value: str) -> date:
    """``"2024-03"`` -> ``date(2024, 3, 1)``; raises ``ValueError`` otherwise."""
    year, _, month = value.partition("-")
    if not year.isdigit() or not month.isdigit():
        raise ValueError(f"Invalid month: {value!r} (expected YYYY-MM)")
    return date(int(year), int(month), 1)


def month_bounds(month: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Aware start and end instants of ``month`` in local time, both inclusive."""
    last_day = calendar.monthrange(month.year, month.month)[1]
    start = datetime.combine(month.replace(day=1), time.min, tzinfo=tz)
    end = datetime.combine(month.replace(day=last_day), time.max, tzinfo=tz)
    return start, end


def local_day(moment: datetime, tz: ZoneInfo) -> date:
    return moment.astimezone(tz).date()


def _percent(part: Decimal, whole: Decimal) -> float:
    if whole == 0:
        return 0.0
    return float((part / whole * 100).quantize(CENT, rounding=ROUND_HALF_UP))


def daily_deltas(daily_totals: dict[date, Decimal]) -> list[DailyDelta]:
    days = sorted(daily_totals)
    deltas = []
    for previous_day, day in zip(days, days[1:]):
        previous = daily_totals[previous_day]
        difference = daily_totals[day] - previous
        deltas.append(
            DailyDelta(
                day=day,
                previous_day=previous_day,
                difference=difference,
                percentage_change=_percent(difference, previous),
            )
        )
    return deltas


def record_shares(
    records: list[StoredExpense], daily_totals: dict[date, Decimal], tz: ZoneInfo
) -> list[RecordShare]:
    shares = []
    for record in records:
        day = local_day(record.created_at, tz)
        shares.append(
            RecordShare(
                key=record.key,
                day=day,
                amount=record.amount,
                percentage=_percent(record.amount, daily_totals.get(day, Decimal(0))),
            )
        )
    return shares


def aggregate(records: list[StoredExpense], month: date, tz: ZoneInfo) -> MonthlyReport:
    start, end = month_bounds(month, tz)
    in_month = [
        record
        for record in records
        if not record.is_deleted and start <= record.created_at <= end
    ]

    by_category: dict[str, Decimal] = defaultdict(Decimal)
    by_label: dict[str, Decimal] = defaultdict(Decimal)
    by_day: dict[date, Decimal] = defaultdict(Decimal)
    for record in in_month:
        by_category[record.category] += record.amount
        by_label[record.label] += record.amount
        by_day[local_day(record.created_at, tz)] += record.amount

    daily_totals = {day: by_day[day] for day in sorted(by_day)}
    monthly_total = sum((record.amount for record in in_month), Decimal(0))

    return MonthlyReport(
        month=month.replace(day=1),
        totals_by_category=dict(by_category),
        category_shares={
            category: _percent(total, monthly_total) for category, total in by_category.items()
        },
        totals_by_label=dict(by_label),
        monthly_total=monthly_total,
        daily_totals=daily_totals,
        daily_deltas=daily_deltas(daily_totals),
        record_shares=record_shares(in_month, daily_totals, tz),
    )
