from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable

from tinydb import Query, TinyDB

from finbox.models.schemas import JarEntry, StoredExpense

EXPENSES = "expenses"
JARS = "jars"
META = "meta"

TABLES = (EXPENSES, JARS)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_json(value):
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


class LedgerRepository:
    """Expense and jar ledgers keyed by chat message id."""

    def __init__(
        self,
        db_path: str = "finbox_ledger.json",
        storage=None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if storage is not None:
            self.db = TinyDB(storage=storage)
        else:
            self.db = TinyDB(db_path, ensure_ascii=False, encoding="utf-8")
        self.clock = clock

    def _table(self, table: str):
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        return self.db.table(table)

    def _record(self, table: str, doc: dict) -> StoredExpense | JarEntry:
        if table == EXPENSES:
            return StoredExpense.model_validate(doc)
        return JarEntry.model_validate(doc)

    def exists(self, table: str, key: int | str) -> bool:
        Row = Query()
        return self._table(table).contains(Row.key == key)

    def upsert(self, table: str, key: int | str, fields: dict) -> StoredExpense | JarEntry:
        """Insert or update the row for ``key``.

        ``created_at`` is written on insert only; updates overwrite every
        other field and revive soft-deleted rows.
        """
        tbl = self._table(table)
        Row = Query()
        now = self.clock()

        data = {k: _to_json(v) for k, v in fields.items()}
        data.pop("created_at", None)
        data.update(
            key=key,
            is_deleted=False,
            deleted_at=None,
            updated_at=_to_json(now),
        )

        if tbl.contains(Row.key == key):
            tbl.update(data, Row.key == key)
        else:
            data["created_at"] = _to_json(now)
            tbl.insert(data)
        return self._record(table, tbl.get(Row.key == key))

    def select_non_deleted(self, table: str) -> list[dict]:
        """Live rows that originate from chat messages, as ``{key, created_at}``."""
        Row = Query()
        docs = self._table(table).search(
            (Row.is_deleted == False)  # noqa: E712
            & (Row.source.test(lambda val: val in (None, "message")) | ~Row.source.exists())
        )
        return [{"key": doc["key"], "created_at": doc.get("created_at")} for doc in docs]

    def soft_delete(self, table: str, key: int | str) -> bool:
        tbl = self._table(table)
        Row = Query()
        if not tbl.contains(Row.key == key):
            return False
        now = _to_json(self.clock())
        tbl.update({"is_deleted": True, "deleted_at": now, "updated_at": now}, Row.key == key)
        return True

    def hard_delete(self, table: str, key: int | str) -> bool:
        Row = Query()
        removed = self._table(table).remove(Row.key == key)
        return bool(removed)

    def select_range(
        self, table: str, start: datetime, end: datetime
    ) -> list[StoredExpense | JarEntry]:
        """Non-deleted rows whose ``created_at`` falls in ``[start, end]``."""
        Row = Query()

        def in_range(val) -> bool:
            if not val:
                return False
            created = datetime.fromisoformat(val)
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            return start <= created <= end

        docs = self._table(table).search(
            (Row.is_deleted == False) & Row.created_at.test(in_range)  # noqa: E712
        )
        return [self._record(table, doc) for doc in docs]

    def list_expenses(self, include_deleted: bool = False) -> list[StoredExpense]:
        tbl = self._table(EXPENSES)
        if include_deleted:
            docs = tbl.all()
        else:
            Row = Query()
            docs = tbl.search(Row.is_deleted == False)  # noqa: E712
        return [StoredExpense.model_validate(doc) for doc in docs]

    def jar_entries(self) -> list[JarEntry]:
        Row = Query()
        docs = self._table(JARS).search(Row.is_deleted == False)  # noqa: E712
        return [JarEntry.model_validate(doc) for doc in docs]

    def get_marker(self, name: str) -> str | None:
        Marker = Query()
        doc = self.db.table(META).get(Marker.name == name)
        if doc is None:
            return None
        return doc["value"]

    def set_marker(self, name: str, value: str) -> None:
        Marker = Query()
        self.db.table(META).upsert({"name": name, "value": value}, Marker.name == name)

    def purge_deleted(self, older_than: datetime) -> int:
        """Hard-delete soft-deleted rows whose ``deleted_at`` precedes the cutoff."""
        Row = Query()

        def expired(val) -> bool:
            if not val:
                return False
            deleted = datetime.fromisoformat(val)
            if deleted.tzinfo is None:
                deleted = deleted.replace(tzinfo=timezone.utc)
            return deleted < older_than

        purged = 0
        for table in TABLES:
            removed = self._table(table).remove(
                (Row.is_deleted == True) & Row.deleted_at.test(expired)  # noqa: E712
            )
            purged += len(removed)
        return purged
