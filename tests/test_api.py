"""Tests for the HTTP API."""

import io

import pandas as pd
import pytest
from fastapi.testclient import TestClient

import api.main as api_main
from trendboard import store as store_module
from trendboard.export import EXPORT_COLUMNS
from trendboard.store import TrendSnapshotStore


@pytest.fixture
def store(sample_records, monkeypatch):
    store = TrendSnapshotStore()
    store.refresh(lambda: sample_records)
    monkeypatch.setattr(store_module, "_STORE", store)
    monkeypatch.setattr(store_module, "load_dashboard_data", lambda *args, **kwargs: store.snapshot())
    monkeypatch.setattr(api_main, "load_dashboard_data", lambda *args, **kwargs: store.snapshot())
    return store


@pytest.fixture
def client(store):
    return TestClient(api_main.app)



def test_meta_categories(client):
    resp = client.get("/meta/categories")
    assert resp.status_code == 200
    assert resp.json() == {"values": ["Marketing", "Spotify", "Wettbewerb"]}


def test_meta_slots(client):
    resp = client.get("/meta/slots", params={"group_by": "month"})
    assert resp.status_code == 200
    assert [s["label"] for s in resp.json()["slots"]] == ["Februar 2026", "Januar 2026", "Ohne Monat"]


def test_meta_weeks(client):
    body = client.get("/meta/weeks").json()
    assert 1 <= body["current_week"] <= 53
    assert 1 <= body["previous_week"] <= 53


def test_overview(client):
    resp = client.post("/overview", json={"min_score": 0.6})
    assert resp.status_code == 200
    kpis = resp.json()["kpis"]
    assert kpis["count"] == 3
    assert kpis["high_priority"] == 2
    assert kpis["top_category"] == "Spotify"


def test_groups_with_expand_state(client):
    resp = client.post("/groups", json={"filters": {"group_by": "week"}, "expanded": {"1": True}})
    assert resp.status_code == 200
    groups = resp.json()["groups"]
    assert [g["label"] for g in groups] == ["KW 7", "KW 6", "KW 4", "Ohne KW"]
    assert groups[0]["items"][0]["expanded"] is True
    assert groups[3]["items"][0]["week_number"] is None


def test_sources(client):
    resp = client.post("/sources", json={"group_by": "week", "selected_category": "Spotify"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["clustered"] is False
    assert sum(g["count"] for g in body["groups"]) == 2


def test_invalid_group_mode_is_rejected(client):
    assert client.post("/overview", json={"group_by": "year"}).status_code == 422


def test_export_week(client):
    resp = client.post("/export", json={"scope": "week", "week": 7})
    assert resp.status_code == 200
    assert resp.headers["content-disposition"] == "attachment; filename=trends_KW7.xlsx"
    rows = pd.read_excel(io.BytesIO(resp.content))
    assert list(rows.columns) == EXPORT_COLUMNS
    assert rows["Thema"].tolist() == ["Podcast ads grow", "Competitor launches audiobooks"]


def test_errors_are_reported_as_json(monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(api_main, "dashboard_context", broken)
    monkeypatch.setattr(api_main, "load_dashboard_data", broken)
    client = TestClient(api_main.app)
    for resp in (client.post("/overview", json={}), client.post("/export", json={"scope": "all"})):
        assert resp.status_code == 500
        assert resp.json() == {"error": "boom", "type": "RuntimeError"}


def test_filter_contexts_are_shared_across_requests(client, store):
    first = client.post("/overview", json={"min_score": 0.6}).json()
    second = client.post("/groups", json={"filters": {"min_score": 0.6}}).json()
    assert first["kpis"]["count"] == second["total"] == 3
    assert len(store._contexts) == 1
