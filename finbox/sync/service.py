"""
One fetch → classify → reconcile cycle per trigger, plus the
read side (dashboard, jars) and the daily accrual.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from loguru import logger

from finbox.analytics.aggregate import aggregate, month_bounds
from finbox.analytics.jars import jar_summaries, run_daily_accrual
from finbox.config import Settings
from finbox.db.repository import EXPENSES, JARS
from finbox.models.schemas import AccrualRun, JarSummary, MonthlyReport, SyncReport
from finbox.parsing.classifier import classify
from finbox.sync.reconcile import apply_plan, plan_reconciliation
from finbox.sync.source import SourceUnavailable


class SyncService:
    def __init__(self, source, store, settings: Settings):
        self.source = source
        self.store = store
        self.settings = settings
        self.tz = ZoneInfo(settings.timezone)
        self.last_report: SyncReport | None = None
        self._reports: dict[date, MonthlyReport] = {}

    def today(self) -> date:
        return datetime.now(self.tz).date()

    async def run_cycle(self) -> SyncReport:
        """Fetch the chat window and converge the store with it."""
        try:
            messages = await self.source.fetch_recent_messages()
        except SourceUnavailable as e:
            logger.error("Sync aborted, message source unavailable: {}", e)
            report = SyncReport(status="source_unavailable", error=str(e))
            self.last_report = report
            return report

        if len(messages) >= self.settings.fetch_limit:
            logger.warning(
                "Source returned a full page of {} updates; messages older than the window are left untouched",
                len(messages),
            )

        batch = classify(messages, self.settings.chat_id)

        try:
            live_expenses = {row["key"] for row in self.store.select_non_deleted(EXPENSES)}
            live_jars = {row["key"] for row in self.store.select_non_deleted(JARS)}
        except Exception as e:
            logger.error("Sync aborted, could not read live keys: {}", e)
            report = SyncReport(status="store_unavailable", fetched=len(messages), error=str(e))
            self.last_report = report
            return report

        scoped = self.settings.scope_deletions_to_window
        prune = not (scoped and not batch.window_ids)
        if not prune:
            logger.info("Empty window, skipping deletion of vanished keys")
        plan = plan_reconciliation(
            batch,
            live_expenses,
            live_jars,
            window_floor=batch.window_floor if scoped else None,
            vanished_mode=self.settings.vanished_delete_mode,
            prune_vanished=prune,
        )
        applied = apply_plan(plan, self.store)

        report = SyncReport(
            status="ok",
            fetched=len(messages),
            expenses=len(batch.expense_events),
            jars=len(batch.jar_events),
            tombstones=len(batch.tombstones),
            upserted=applied.upserted,
            soft_deleted=applied.soft_deleted,
            hard_deleted=applied.hard_deleted,
            failures=applied.failures,
        )
        self.last_report = report
        return report

    def monthly_report(self, month: date) -> MonthlyReport:
        """Aggregate ``month``; serve the last good report if the store is unreadable."""
        start, end = month_bounds(month, self.tz)
        try:
            records = self.store.select_range(EXPENSES, start, end)
        except Exception as e:
            cached = self._reports.get(month)
            if cached is None:
                raise
            logger.warning("Store read failed, serving cached report for {}: {}", month, e)
            return cached.model_copy(update={"stale": True})

        report = aggregate(records, month, self.tz)
        self._reports[month] = report
        return report

    def jars(self, today: date | None = None) -> list[JarSummary]:
        return jar_summaries(self.store.jar_entries(), today or self.today())

    def run_accrual(self, today: date | None = None) -> AccrualRun:
        return run_daily_accrual(
            self.store,
            today or self.today(),
            max_catchup_days=self.settings.accrual_max_catchup_days,
        )

    def purge(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=self.settings.soft_delete_grace_days)
        purged = self.store.purge_deleted(cutoff)
        logger.info("Purged {} soft-deleted rows older than {}", purged, cutoff)
        return purged
