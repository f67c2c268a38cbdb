"""
Converge the ledger tables with the latest polled window.

``plan_reconciliation`` is pure: it decides which keys are upserted, which are
soft-deleted (explicit tombstones) and which vanished from the window.
``apply_plan`` performs the writes one key at a time so a failing write only
affects its own key.
"""
from __future__ import annotations

from typing import Literal

from loguru import logger

from finbox.db.repository import EXPENSES, JARS
from finbox.models.schemas import (
    ClassifiedBatch,
    ExpenseEvent,
    JarEvent,
    ReconcilePlan,
    ReconcileReport,
    StoreFailure,
)


def _expense_fields(event: ExpenseEvent) -> dict:
    return {
        "label": event.label,
        "amount": event.amount,
        "paid": event.paid,
        "category": event.category,
        "sent_at": event.timestamp,
    }


def _jar_fields(event: JarEvent) -> dict:
    return {
        "jar_name": event.jar_name,
        "amount": event.amount,
        "direction": event.direction,
        "source": "message",
        "sent_at": event.timestamp,
    }


def _vanished(
    live: set[int], current: set[int], tombstoned: set[int], window_floor: int | None
) -> set[int]:
    missing = live - current - tombstoned
    if window_floor is None:
        return missing
    return {key for key in missing if key >= window_floor}


def plan_reconciliation(
    batch: ClassifiedBatch,
    live_expense_keys: set[int],
    live_jar_keys: set[int],
    window_floor: int | None = None,
    vanished_mode: Literal["hard", "soft"] = "hard",
    prune_vanished: bool = True,
) -> ReconcilePlan:
    """Work out the writes that make the store match ``batch``.

    Keys explicitly tombstoned by the parser are soft-deleted. Live keys that
    are simply absent from the batch are deleted according to
    ``vanished_mode``; with a ``window_floor`` only keys at or above it are
    considered, since older messages are outside what the source returned.
    With ``prune_vanished`` off only explicit tombstones delete anything.
    """
    expense_keys = {event.message_id for event in batch.expense_events}
    jar_keys = {event.message_id for event in batch.jar_events}
    tombstoned = batch.tombstones

    soft: dict[str, set[int]] = {
        EXPENSES: live_expense_keys & tombstoned,
        JARS: live_jar_keys & tombstoned,
    }
    vanished: dict[str, set[int]] = {EXPENSES: set(), JARS: set()}
    if prune_vanished:
        vanished = {
            EXPENSES: _vanished(live_expense_keys, expense_keys, tombstoned, window_floor),
            JARS: _vanished(live_jar_keys, jar_keys, tombstoned, window_floor),
        }

    hard: dict[str, set[int]] = {EXPENSES: set(), JARS: set()}
    if vanished_mode == "soft":
        for table, keys in vanished.items():
            soft[table] |= keys
    else:
        hard = vanished

    return ReconcilePlan(
        expense_upserts=list(batch.expense_events),
        jar_upserts=list(batch.jar_events),
        soft_deletes=soft,
        hard_deletes=hard,
    )


def apply_plan(plan: ReconcilePlan, store) -> ReconcileReport:
    """Write ``plan`` to ``store``; failures are recorded per key, never rolled back."""
    report = ReconcileReport()

    def attempt(table: str, key, operation: str, write) -> bool:
        try:
            write()
        except Exception as e:
            logger.error("{} of {}#{} failed: {}", operation, table, key, e)
            report.failures.append(
                StoreFailure(table=table, key=key, operation=operation, error=str(e))
            )
            return False
        return True

    for event in plan.expense_upserts:
        if attempt(
            EXPENSES,
            event.message_id,
            "upsert",
            lambda: store.upsert(EXPENSES, event.message_id, _expense_fields(event)),
        ):
            report.upserted += 1

    for event in plan.jar_upserts:
        if attempt(
            JARS,
            event.message_id,
            "upsert",
            lambda: store.upsert(JARS, event.message_id, _jar_fields(event)),
        ):
            report.upserted += 1

    for table, keys in plan.soft_deletes.items():
        for key in sorted(keys):
            if attempt(table, key, "soft_delete", lambda: store.soft_delete(table, key)):
                report.soft_deleted += 1

    for table, keys in plan.hard_deletes.items():
        for key in sorted(keys):
            if attempt(table, key, "hard_delete", lambda: store.hard_delete(table, key)):
                report.hard_deleted += 1

    logger.info(
        "Reconciled: {} upserted, {} soft-deleted, {} hard-deleted, {} failed",
        report.upserted,
        report.soft_deleted,
        report.hard_deleted,
        len(report.failures),
    )
    return report
