"""
API tests for the spaced-repetition routes.

The engine dependency is overridden with one backed by in-memory stores, so
no database is needed.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from src.api.deps import get_engine
from src.api.main import app
from src.db.session import get_db


class _FakeDB:
    def __init__(self, healthy: bool = True) -> None:
        self.healthy = healthy

    async def execute(self, _query: Any) -> None:
        if not self.healthy:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))


@pytest.fixture
def client(world):
    engine = world.engine(max_retries=1)
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_db] = lambda: _FakeDB()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client: TestClient):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "database": "ok"}


def test_health_reports_unavailable_database(client: TestClient):
    app.dependency_overrides[get_db] = lambda: _FakeDB(healthy=False)
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "degraded"


def test_record_attempt_and_read_back(client: TestClient):
    r = client.post(
        "/api/srs/learners/alice/attempts",
        json={"item_id": "os-1", "selected_index": 0, "response_time_ms": 2500},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["is_correct"] is True
    assert data["quality_rating"] == 5
    assert data["schedule"]["interval_days"] == 1
    assert data["schedule"]["ease_factor"] == pytest.approx(2.65)
    assert data["schedule"]["mastery"] == "learning"
    assert data["replayed"] is False
    assert data["degraded"] == []

    r_streak = client.get("/api/srs/learners/alice/streak")
    assert r_streak.status_code == 200
    assert r_streak.json()["current_streak_days"] == 1
    assert r_streak.json()["total_learned"] == 1

    r_mastery = client.get("/api/srs/learners/alice/mastery")
    assert r_mastery.json()["learning"] == 1

    r_forecast = client.get("/api/srs/learners/alice/forecast", params={"days": 3})
    assert r_forecast.status_code == 200
    days = r_forecast.json()["days"]
    assert len(days) == 3
    assert sum(d["count"] for d in days) == 1


def test_idempotent_resubmission(client: TestClient):
    body = {"item_id": "os-1", "selected_index": 1, "idempotency_key": "tap-1"}
    first = client.post("/api/srs/learners/alice/attempts", json=body)
    second = client.post("/api/srs/learners/alice/attempts", json=body)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["replayed"] is True
    assert second.json()["schedule"] == first.json()["schedule"]


def test_errors_map_to_status_codes(client: TestClient):
    r_learner = client.post(
        "/api/srs/learners/mallory/attempts",
        json={"item_id": "os-1", "selected_index": 0},
    )
    assert r_learner.status_code == 404
    assert r_learner.json()["entity"] == "learner"

    r_item = client.post(
        "/api/srs/learners/alice/attempts",
        json={"item_id": "zzz", "selected_index": 0},
    )
    assert r_item.status_code == 404
    assert r_item.json()["entity"] == "item"

    r_index = client.post(
        "/api/srs/learners/alice/attempts",
        json={"item_id": "os-1", "selected_index": 9},
    )
    assert r_index.status_code == 422

    r_strategy = client.post(
        "/api/srs/learners/alice/study-plan",
        json={"set_ids": ["os"], "target_date": "2030-01-01", "strategy": "cramming"},
    )
    assert r_strategy.status_code == 422


def test_unresolved_duplicate_key_is_409(client: TestClient, world):
    body = {"item_id": "os-1", "selected_index": 0, "idempotency_key": "tap-1"}
    assert client.post("/api/srs/learners/alice/attempts", json=body).status_code == 200

    world.attempts.stale_lookups = 2
    r = client.post("/api/srs/learners/alice/attempts", json=body)

    assert r.status_code == 409
    assert r.json()["idempotency_key"] == "tap-1"


def test_store_outage_is_503(client: TestClient, world):
    world.schedules.fail("list_by_learner")

    r = client.get("/api/srs/learners/alice/due")

    assert r.status_code == 503


def test_due_items(client: TestClient):
    r_init = client.post("/api/srs/learners/alice/schedules", json={"item_id": "os-2"})
    assert r_init.status_code == 201
    assert r_init.json()["repetitions"] == 0

    r_due = client.get("/api/srs/learners/alice/due")
    assert r_due.status_code == 200
    assert r_due.json()["item_ids"] == ["os-2"]
    assert r_due.json()["count"] == 1

    r_set = client.post("/api/srs/learners/alice/sets/net/schedules")
    assert r_set.status_code == 201
    assert {s["item_id"] for s in r_set.json()} == {"net-1", "net-2"}


def test_study_plan_and_templates(client: TestClient):
    target = (dt.date.today() + dt.timedelta(days=10)).isoformat()
    r_plan = client.post(
        "/api/srs/learners/alice/study-plan",
        json={"set_ids": ["os", "net"], "target_date": target, "strategy": "sequential"},
    )
    assert r_plan.status_code == 200
    plan = r_plan.json()
    assert plan["total_items"] == 5
    assert plan["remaining_items"] == 5
    assert all(day["total_load"] >= 0 for day in plan["schedule"])

    assert client.get("/api/srs/learners/alice/study-plan").status_code == 404

    r_template = client.post(
        "/api/srs/plan-templates",
        json={"title": "Finals", "set_ids": ["db"], "target_date": target},
    )
    assert r_template.status_code == 201
    template_id = r_template.json()["template_id"]

    r_assign = client.post(
        f"/api/srs/plan-templates/{template_id}/assign",
        json={"learner_id": "alice"},
    )
    assert r_assign.status_code == 200

    r_assigned = client.get("/api/srs/learners/alice/study-plan")
    assert r_assigned.status_code == 200
    assert r_assigned.json()["total_items"] == 1

    r_missing = client.post("/api/srs/plan-templates/nope/assign", json={"learner_id": "alice"})
    assert r_missing.status_code == 404


def test_session_lifecycle(client: TestClient):
    url = "/api/srs/learners/alice/sessions/os"
    assert client.get(url).status_code == 404

    r_put = client.put(url, json={"item_ids": ["os-1", "os-2"], "current_index": 0})
    assert r_put.status_code == 200
    assert r_put.json()["started_at"] is not None

    client.post(
        "/api/srs/learners/alice/attempts",
        json={"item_id": "os-1", "selected_index": 0, "session_set_id": "os"},
    )
    r_get = client.get(url)
    assert r_get.json()["current_index"] == 1
    assert r_get.json()["completed"] is False

    assert client.put(url, json={"item_ids": ["os-1"], "current_index": 5}).status_code == 422

    assert client.delete(url).status_code == 204
    assert client.get(url).status_code == 404
