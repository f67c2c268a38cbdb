from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN_CATEGORY = "Desconhecido"

Direction = Literal["credit", "debit"]


def coerce_amount(value) -> Decimal:
    """Turn a stored amount into a Decimal, falling back to 0 on garbage."""
    if isinstance(value, Decimal) and value.is_finite():
        return value
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.warning("Invalid amount {!r}, counting it as 0", value)
        return Decimal(0)
    if not amount.is_finite():
        logger.warning("Non-finite amount {!r}, counting it as 0", value)
        return Decimal(0)
    return amount


def as_utc(value):
    """Naive datetimes read back from older rows are taken as UTC."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Source and parser output ────────────────────────────────────────────


class RawMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    chat_id: int
    text: str = ""
    timestamp: datetime


class ExpenseEvent(BaseModel):
    kind: Literal["expense"] = "expense"
    label: str
    amount: Decimal = Field(ge=0)
    paid: bool
    category: str = UNKNOWN_CATEGORY
    message_id: int | None = None
    timestamp: datetime | None = None


class JarEvent(BaseModel):
    kind: Literal["jar"] = "jar"
    jar_name: str
    amount: Decimal = Field(ge=0)
    direction: Direction
    message_id: int | None = None
    timestamp: datetime | None = None


class Ignored(BaseModel):
    """Parser verdict for messages carrying the deletion keyword."""

    kind: Literal["ignored"] = "ignored"
    reason: str = "deletion keyword"


FinancialEvent = ExpenseEvent | JarEvent


class ClassifiedBatch(BaseModel):
    jar_events: list[JarEvent] = []
    expense_events: list[ExpenseEvent] = []
    tombstones: set[int] = set()
    window_ids: set[int] = set()

    @property
    def window_floor(self) -> int | None:
        return min(self.window_ids) if self.window_ids else None


# ── Stored records ──────────────────────────────────────────────────────


class StoredExpense(BaseModel):
    key: int
    label: str
    amount: Decimal
    paid: bool = False
    category: str = UNKNOWN_CATEGORY
    sent_at: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    normalize_amount = field_validator("amount", mode="before")(coerce_amount)
    normalize_datetimes = field_validator(
        "created_at", "updated_at", "deleted_at", "sent_at"
    )(as_utc)


class JarEntry(BaseModel):
    key: int | str
    jar_name: str
    amount: Decimal
    direction: Direction
    source: Literal["message", "accrual"] = "message"
    accrued_for: date | None = None
    sent_at: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    normalize_amount = field_validator("amount", mode="before")(coerce_amount)
    normalize_datetimes = field_validator(
        "created_at", "updated_at", "deleted_at", "sent_at"
    )(as_utc)


# ── Reconciliation ──────────────────────────────────────────────────────


class ReconcilePlan(BaseModel):
    expense_upserts: list[ExpenseEvent] = []
    jar_upserts: list[JarEvent] = []
    soft_deletes: dict[str, set[int]] = {}
    hard_deletes: dict[str, set[int]] = {}


class StoreFailure(BaseModel):
    table: str
    key: int | str
    operation: Literal["upsert", "soft_delete", "hard_delete"]
    error: str


class ReconcileReport(BaseModel):
    upserted: int = 0
    soft_deleted: int = 0
    hard_deleted: int = 0
    failures: list[StoreFailure] = []


class SyncReport(BaseModel):
    status: Literal["ok", "source_unavailable", "store_unavailable"]
    started_at: datetime = Field(default_factory=datetime.now)
    fetched: int = 0
    expenses: int = 0
    jars: int = 0
    tombstones: int = 0
    upserted: int = 0
    soft_deleted: int = 0
    hard_deleted: int = 0
    failures: list[StoreFailure] = []
    error: str | None = None


# ── Aggregates ──────────────────────────────────────────────────────────


class DailyDelta(BaseModel):
    day: date
    previous_day: date
    difference: Decimal
    percentage_change: float


class RecordShare(BaseModel):
    key: int
    day: date
    amount: Decimal
    percentage: float


class MonthlyReport(BaseModel):
    month: date
    totals_by_category: dict[str, Decimal] = {}
    category_shares: dict[str, float] = {}
    totals_by_label: dict[str, Decimal] = {}
    monthly_total: Decimal = Decimal(0)
    daily_totals: dict[date, Decimal] = {}
    daily_deltas: list[DailyDelta] = []
    record_shares: list[RecordShare] = []
    stale: bool = False


class ExpenseView(BaseModel):
    record: StoredExpense
    color: str
    day_percentage: float


class InterestAccrual(BaseModel):
    gross_gain: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    net_gain: Decimal = Decimal("0.00")


class JarSummary(BaseModel):
    jar_name: str
    balance: Decimal
    projected_accrual: InterestAccrual
    color: str


class AccrualRun(BaseModel):
    days: list[date] = []
    entries: list[JarEntry] = []
    skipped: bool = False
    failures: list[StoreFailure] = []
