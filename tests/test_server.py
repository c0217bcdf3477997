"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from sales_analytics import server
from sales_analytics.models import AnalyticsSnapshot
from sales_analytics.repository import SnapshotRepository


class FakeRepository(SnapshotRepository):
    def __init__(self, snapshot):
        self.snapshot = snapshot
        self.calls = 0

    def load(self):
        self.calls += 1
        return self.snapshot


@pytest.fixture()
def client(monkeypatch):
    monkeypatch.setattr(server, "repository", None)
    monkeypatch.setattr(server, "_cached_service", None)
    return TestClient(server.app)


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_dashboard_with_inline_snapshot(client, payload):
    r = client.post(
        "/analytics/dashboard",
        json={"date_filter": "today", "now": "2024-01-01T10:00:00Z", "snapshot": payload},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["source"] == "inline"
    assert body["data"]["totals"]["total_sellers"] == 2
    assert body["data"]["trends"]["total_sellers"]["data"][8] == 2


def test_dashboard_without_any_snapshot_source(client):
    r = client.post("/analytics/dashboard", json={"date_filter": "week"})
    assert r.status_code == 500


def test_dashboard_rejects_unknown_filter(client, payload):
    r = client.post("/analytics/dashboard", json={"date_filter": "decade", "snapshot": payload})
    assert r.status_code == 422


def test_dashboard_rejects_reversed_custom_range(client, payload):
    r = client.post(
        "/analytics/dashboard",
        json={
            "date_filter": "custom",
            "custom_start": "2024-01-05",
            "custom_end": "2024-01-01",
            "snapshot": payload,
        },
    )
    assert r.status_code == 422


def test_dashboard_from_repository_reuses_service(client, monkeypatch, payload):
    fake = FakeRepository(AnalyticsSnapshot.from_payload(payload, snapshot_id="42"))
    monkeypatch.setattr(server, "repository", fake)
    body = {"date_filter": "week", "now": "2024-01-01T10:00:00Z"}

    first = client.post("/analytics/dashboard", json=body)
    cached = server._cached_service
    second = client.post("/analytics/dashboard", json=body)

    assert first.status_code == 200
    assert first.json()["source"] == "database"
    assert first.json()["data"]["totals"]["total_sellers"] == 3
    assert second.json() == first.json()
    assert server._cached_service is cached
    assert fake.calls == 2


def test_dashboard_repository_without_snapshot(client, monkeypatch):
    monkeypatch.setattr(server, "repository", FakeRepository(None))
    r = client.post("/analytics/dashboard", json={"date_filter": "week"})
    assert r.status_code == 404


def test_growth_endpoint(client):
    r = client.post("/analytics/growth", json={"current": 5, "previous": 0})
    assert r.status_code == 200
    assert r.json() == {"growthRate": "∞", "isInfinite": True, "isNew": True, "trend": "New"}

    r = client.post("/analytics/growth", json={"current": 80, "previous": 100})
    assert r.json()["growthRate"] == "-20.0"
    assert r.json()["trend"] == "Declining"
