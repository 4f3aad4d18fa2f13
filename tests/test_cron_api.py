from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import FakeSupabase, make_item
from progresspath import cron_api, pipeline
from progresspath.errors import GenerationError
from progresspath.main import app
from progresspath.repository import today_bucket

STALE_DAY = "2000-01-01"


@pytest.fixture()
def client(full_env, fake_db: FakeSupabase, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    async def fake_batch(count, settings):
        return [make_item(i) for i in range(count)]

    monkeypatch.setattr(pipeline, "generate_quote_batch", fake_batch)
    monkeypatch.setattr(pipeline, "get_store_client", lambda settings=None: fake_db)
    monkeypatch.setattr(cron_api, "get_store_client", lambda settings=None: fake_db)
    return TestClient(app)


# ── /api/cron/daily-quotes ───────────────────────────────────────────


def test_cron_success(client: TestClient, fake_db: FakeSupabase) -> None:
    fake_db.seed(STALE_DAY, 30)

    r = client.get("/api/cron/daily-quotes", headers={"Authorization": "Bearer cron-secret"})

    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-store"
    body = r.json()
    assert body["success"] is True
    assert body["executionId"].startswith("run-")
    assert body["statistics"]["quotesGenerated"] == 30
    assert body["statistics"]["quotesDeleted"] == 30
    assert body["statistics"]["quotesInserted"] == 30
    assert fake_db.rows(STALE_DAY) == []


def test_cron_wrong_secret(client: TestClient, fake_db: FakeSupabase) -> None:
    fake_db.seed(STALE_DAY, 30)

    r = client.get("/api/cron/daily-quotes", headers={"Authorization": "Bearer nope"})

    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized", "message": "Invalid trigger secret"}
    assert len(fake_db.rows(STALE_DAY)) == 30


def test_cron_missing_config(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ANTHROPIC_API_KEY")

    r = client.get("/api/cron/daily-quotes", headers={"Authorization": "Bearer cron-secret"})

    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "configuration_error"
    assert body["missing"] == ["GENERATION_SERVICE_KEY"]


def test_cron_generation_failure(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing_batch(count, settings):
        raise GenerationError("Anthropic API error 529: overloaded")

    monkeypatch.setattr(pipeline, "generate_quote_batch", failing_batch)

    r = client.get("/api/cron/daily-quotes", headers={"Authorization": "Bearer cron-secret"})

    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "generation_error"
    assert body["statistics"]["generationAttempts"] == 4


def test_cron_run_in_progress(client: TestClient) -> None:
    pipeline._run_in_progress = True

    r = client.get("/api/cron/daily-quotes", headers={"Authorization": "Bearer cron-secret"})

    assert r.status_code == 409
    assert r.json()["error"] == "run_in_progress"


# ── /api/test/daily-quotes ───────────────────────────────────────────


def test_manual_trigger_uses_test_secret(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEST_SECRET", "test-secret")

    r = client.post("/api/test/daily-quotes", headers={"Authorization": "Bearer test-secret"})

    assert r.status_code == 200
    body = r.json()
    assert body["testRun"] is True
    assert body["testId"].startswith("test-")
    assert body["status"] == 200
    assert body["result"]["success"] is True


def test_manual_trigger_falls_back_to_cron_secret(client: TestClient) -> None:
    r = client.post("/api/test/daily-quotes", headers={"Authorization": "Bearer cron-secret"})
    assert r.status_code == 200


def test_manual_trigger_unauthorized(client: TestClient) -> None:
    r = client.post("/api/test/daily-quotes")

    assert r.status_code == 401
    body = r.json()
    assert body["error"] == "Unauthorized"
    assert "hint" in body
    assert body["testId"].startswith("test-")


# ── GET /api/test/daily-quotes ───────────────────────────────────────


def test_inspect_complete_day(client: TestClient, fake_db: FakeSupabase) -> None:
    fake_db.seed(today_bucket(), 30)

    r = client.get("/api/test/daily-quotes", headers={"Authorization": "Bearer cron-secret"})

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["queryId"].startswith("query-")
    assert body["summary"]["todayQuotesCount"] == 30
    assert body["summary"]["otherQuotesCount"] == 0
    assert body["statistics"]["languageDistribution"] == {"en": 30}
    assert len(body["todayQuotes"]) == 30
    assert "otherQuotes" not in body
    assert body["diagnostics"]["todayStatus"] == "Complete"
    assert "recommendation" not in body["diagnostics"]


def test_inspect_flags_leftover_days(client: TestClient, fake_db: FakeSupabase) -> None:
    today = today_bucket()
    fake_db.seed(STALE_DAY, 7)
    fake_db.seed(today, 12)

    r = client.get("/api/test/daily-quotes", headers={"Authorization": "Bearer cron-secret"})

    body = r.json()
    assert body["summary"]["datesInDatabase"] == [today, STALE_DAY]
    assert body["summary"]["totalQuotes"] == 19
    assert body["otherQuotes"]["count"] == 7
    assert body["otherQuotes"]["dates"] == [STALE_DAY]
    assert len(body["otherQuotes"]["samples"]) == 5
    assert body["diagnostics"]["todayStatus"] == "Incomplete"
    assert "found 12" in body["diagnostics"]["recommendation"]


def test_inspect_unauthorized(client: TestClient, fake_db: FakeSupabase) -> None:
    r = client.get("/api/test/daily-quotes", headers={"Authorization": "Bearer nope"})

    assert r.status_code == 401
    assert r.json()["queryId"].startswith("query-")
    assert fake_db.log == []


def test_inspect_does_not_need_generation_key(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ANTHROPIC_API_KEY")

    r = client.get("/api/test/daily-quotes", headers={"Authorization": "Bearer cron-secret"})

    assert r.status_code == 200


def test_inspect_store_timeout(client: TestClient, fake_db: FakeSupabase, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DB_TIMEOUT_MS", "50")
    fake_db.delays["select"] = 0.3

    r = client.get("/api/test/daily-quotes", headers={"Authorization": "Bearer cron-secret"})

    assert r.status_code == 500
    body = r.json()
    assert body["success"] is False
    assert body["errorType"] == "OperationTimeoutError"
    assert "timed out after 50ms" in body["error"]


# ── /healthz ─────────────────────────────────────────────────────────


def test_healthz_lists_routes(client: TestClient) -> None:
    r = client.get("/healthz")

    assert r.status_code == 200
    routes = r.json()["routes"]
    assert "/api/cron/daily-quotes" in routes
    assert "/api/quotes/refresh" in routes
