from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from finbox.analytics.aggregate import month_bounds, parse_month
from finbox.db.repository import EXPENSES
from finbox.deps import get_service
from finbox.models.schemas import (
    AccrualRun,
    ExpenseView,
    JarSummary,
    MonthlyReport,
    SyncReport,
)
from finbox.parsing.colors import color_for
from finbox.sync.service import SyncService

router = APIRouter()


def _month(value: str | None, service: SyncService) -> date:
    if value is None:
        return service.today().replace(day=1)
    try:
        return parse_month(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/sync", response_model=SyncReport)
async def sync(service: SyncService = Depends(get_service)):
    report = await service.run_cycle()
    logger.info("Sync finished with status {}", report.status)
    return report


@router.get("/dashboard", response_model=MonthlyReport)
def dashboard(month: str | None = None, service: SyncService = Depends(get_service)):
    target = _month(month, service)
    try:
        return service.monthly_report(target)
    except Exception as e:
        logger.error("Dashboard for {} unavailable: {}", target, e)
        raise HTTPException(status_code=503, detail="Ledger store unavailable")


@router.get("/expenses", response_model=list[ExpenseView])
def list_expenses(
    month: str | None = None,
    category: str | None = None,
    service: SyncService = Depends(get_service),
):
    target = _month(month, service)
    try:
        report = service.monthly_report(target)
        start, end = month_bounds(target, service.tz)
        records = service.store.select_range(EXPENSES, start, end)
    except Exception as e:
        logger.error("Expenses for {} unavailable: {}", target, e)
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    shares = {share.key: share.percentage for share in report.record_shares}
    views = [
        ExpenseView(
            record=record,
            color=color_for(record.label),
            day_percentage=shares.get(record.key, 0.0),
        )
        for record in records
        if category is None or record.category == category
    ]
    views.sort(key=lambda view: view.record.created_at, reverse=True)
    return views


@router.get("/jars", response_model=list[JarSummary])
def list_jars(service: SyncService = Depends(get_service)):
    return service.jars()


@router.post("/jars/accrue", response_model=AccrualRun)
def accrue(service: SyncService = Depends(get_service)):
    run = service.run_accrual()
    if run.failures:
        logger.warning("Accrual finished with {} failures", len(run.failures))
    return run


@router.post("/maintenance/purge")
def purge(service: SyncService = Depends(get_service)):
    purged = service.purge()
    return {"purged": purged}
