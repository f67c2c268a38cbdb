"""
API tests: routes wired to an in-memory ledger through dependency overrides.
"""
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from finbox.db.repository import EXPENSES, JARS
from finbox.deps import get_service
from finbox.models.schemas import RawMessage
from finbox.sync.service import SyncService
from main import app


class StaticSource:
    def __init__(self, messages):
        self.messages = messages

    async def fetch_recent_messages(self):
        return self.messages


class FixedDayService(SyncService):
    def today(self) -> date:
        return date(2024, 3, 1)


@pytest.fixture()
def service(repo, settings, clock):
    messages = [
        RawMessage(id=1, chat_id=42, text="Mercado - 100 - Pago Categoria:Alimentação", timestamp=clock.now),
        RawMessage(id=2, chat_id=42, text="Uber - 50 - Não Pago Categoria:Transporte", timestamp=clock.now),
        RawMessage(id=3, chat_id=42, text="Caixinha: Viagem - mais 1000", timestamp=clock.now),
    ]
    return FixedDayService(StaticSource(messages), repo, settings)


@pytest.fixture()
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_sync_then_dashboard(client, repo):
    resp = client.post("/sync")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["upserted"] == 3

    resp = client.get("/dashboard", params={"month": "2024-03"})
    assert resp.status_code == 200
    data = resp.json()
    assert Decimal(data["monthly_total"]) == Decimal(150)
    assert Decimal(data["totals_by_category"]["Transporte"]) == Decimal(50)
    assert data["stale"] is False


def test_dashboard_defaults_to_current_month(client, repo):
    repo.upsert(EXPENSES, 9, {"label": "Lazer", "amount": Decimal(30)})
    data = client.get("/dashboard").json()
    assert data["month"] == "2024-03-01"
    assert Decimal(data["monthly_total"]) == Decimal(30)


def test_dashboard_rejects_bad_month(client):
    resp = client.get("/dashboard", params={"month": "march"})
    assert resp.status_code == 400


def test_dashboard_unavailable(client, repo, monkeypatch):
    def broken(*args):
        raise OSError("store offline")

    monkeypatch.setattr(repo, "select_range", broken)
    resp = client.get("/dashboard", params={"month": "2024-03"})
    assert resp.status_code == 503


def test_expenses_filtered_by_category(client):
    client.post("/sync")
    resp = client.get("/expenses", params={"month": "2024-03", "category": "Alimentação"})
    assert resp.status_code == 200
    views = resp.json()
    assert [v["record"]["key"] for v in views] == [1]
    assert views[0]["color"] == "#388E3C"
    assert views[0]["day_percentage"] == pytest.approx(66.67)


def test_jars_and_accrual(client, repo):
    client.post("/sync")

    [jar] = client.get("/jars").json()
    assert jar["jar_name"] == "Viagem"
    assert Decimal(jar["balance"]) == Decimal(1000)
    assert Decimal(jar["projected_accrual"]["net_gain"]) == Decimal("6.32")

    run = client.post("/jars/accrue").json()
    assert len(run["entries"]) == 1
    assert client.post("/jars/accrue").json()["skipped"] is True

    [jar] = client.get("/jars").json()
    assert Decimal(jar["balance"]) == Decimal("1006.32")


def test_purge(client, repo, clock):
    repo.upsert(JARS, 4, {"jar_name": "Viagem", "amount": Decimal(5), "direction": "credit"})
    repo.soft_delete(JARS, 4)
    # deleted_at is 2024 on the test clock, far beyond the grace period
    assert client.post("/maintenance/purge").json() == {"purged": 1}
