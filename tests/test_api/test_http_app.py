"""Tests for the FastAPI trigger and helper endpoints."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from trendily.api.app import create_app, extract_credential
from trendily.config import SecurityConfig
from trendily.errors import PersistenceError

SECRET = "s3cret"


@pytest.fixture
def client(app_config, make_orchestrator, trend_source, mailer) -> TestClient:
    app = create_app(
        config=app_config,
        orchestrator_factory=lambda cfg: make_orchestrator(config=cfg),
        trend_source_factory=lambda cfg: trend_source,
        mailer_factory=lambda cfg: mailer,
    )
    return TestClient(app)


class TestExtractCredential:
    def test_precedence(self):
        assert extract_credential("q", "Bearer b", "h") == "q"
        assert extract_credential(None, "Bearer b", "h") == "b"
        assert extract_credential(None, None, "h") == "h"
        assert extract_credential(None, "Basic zzz", None) is None


class TestCheckAlerts:
    def test_missing_credential_is_401(self, client):
        resp = client.get("/api/check-alerts")
        assert resp.status_code == 401
        assert resp.json() == {"ok": False, "error": "unauthorized", "kind": "authorization"}

    def test_unset_secret_is_401(self, app_config, make_orchestrator):
        config = app_config.model_copy(update={"security": SecurityConfig()})
        app = create_app(config=config, orchestrator_factory=lambda cfg: make_orchestrator(config=cfg))
        resp = TestClient(app).get("/api/check-alerts", params={"key": "anything"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("kwargs", [
        {"params": {"key": SECRET}},
        {"headers": {"Authorization": f"Bearer {SECRET}"}},
        {"headers": {"X-Alert-Secret": SECRET}},
    ])
    def test_credential_locations(self, client, kwargs):
        resp = client.get("/api/check-alerts", **kwargs)
        assert resp.status_code == 200

    def test_empty_run(self, client):
        body = client.post("/api/check-alerts", params={"key": SECRET}).json()
        assert body["ok"] is True
        assert body["sent"] == 0
        assert body["attempts"] == 0
        assert body["details"] == []

    def test_sent_details(self, client, store, trend_source, make_subscription):
        sub = make_subscription(email="a@x.io")
        store.subscriptions = [sub]
        trend_source.series["ai agents"] = [50, 65]

        body = client.get("/api/check-alerts", params={"key": SECRET}).json()

        assert body["sent"] == 1
        assert body["details"] == [
            {"id": sub.id, "email": "a@x.io", "query": "ai agents", "pct": 30, "status": "sent"},
        ]

    @pytest.mark.parametrize("force,expected", [("true", True), ("1", True), ("false", False), ("yes", False)])
    def test_force_flag(self, client, force, expected):
        body = client.get("/api/check-alerts", params={"key": SECRET, "force": force}).json()
        assert body["forced"] is expected

    def test_missing_mailer_is_500(self, app_config, make_orchestrator):
        app = create_app(
            config=app_config,
            orchestrator_factory=lambda cfg: make_orchestrator(config=cfg, mailer=None),
        )
        resp = TestClient(app).get("/api/check-alerts", params={"key": SECRET})
        assert resp.status_code == 500
        assert resp.json()["kind"] == "configuration"

    def test_unreadable_store_is_500(self, client, store):
        store.list_error = PersistenceError("Failed to load subscriptions: locked")
        resp = client.get("/api/check-alerts", params={"key": SECRET})
        assert resp.status_code == 500
        assert resp.json()["kind"] == "persistence"

    def test_failed_fetch_is_still_200(self, client, store, trend_source, make_subscription):
        store.subscriptions = [make_subscription()]
        trend_source.errors["ai agents"] = "SerpAPI 500: upstream"

        resp = client.get("/api/check-alerts", params={"key": SECRET})

        assert resp.status_code == 200
        detail = resp.json()["details"][0]
        assert detail["status"] == "errored"
        assert detail["error"] == {
            "kind": "fetch", "scope": "group",
            "message": "SerpAPI 500: upstream", "keyword": "ai agents",
        }


class TestTrends:
    def test_series(self, client, trend_source):
        trend_source.series["rust"] = [10, 20]
        body = client.get("/api/trends", params={"q": "rust"}).json()
        assert body == {
            "trends": [{"label": "w01", "interest": 10.0}, {"label": "w02", "interest": 20.0}],
            "source": "fake",
        }

    def test_default_query(self, client, trend_source):
        trend_source.series["artificial intelligence"] = [1, 2]
        assert client.get("/api/trends").status_code == 200
        assert trend_source.calls[0][0] == "artificial intelligence"

    def test_no_data_is_502(self, client, trend_source):
        trend_source.errors["rust"] = "SerpAPI 429: quota | google_trends: interest_over_time empty"
        resp = client.get("/api/trends", params={"q": "rust"})
        assert resp.status_code == 502
        assert resp.json()["trends"] == []
        assert "google_trends" in resp.json()["error"]


class TestChart:
    def test_missing_points(self, client):
        assert client.get("/api/chart").status_code == 400

    def test_invalid_points(self, client):
        resp = client.get("/api/chart", params={"points": "{not json"})
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("invalid points")

    def test_url(self, client):
        points = json.dumps([{"title": "w1", "interest": 3}, {"label": "w2", "interest": 5}])
        body = client.get("/api/chart", params={"q": "ai", "points": points}).json()
        assert body["ok"] is True
        assert body["url"].startswith("https://quickchart.io/chart?c=")


class TestEmailTest:
    def test_requires_credential(self, client):
        assert client.get("/api/email-test", params={"to": "a@x.io"}).status_code == 401

    def test_requires_recipient(self, client):
        assert client.get("/api/email-test", params={"key": SECRET}).status_code == 400

    def test_sends(self, client, mailer):
        body = client.get("/api/email-test", params={"key": SECRET, "to": "a@x.io"}).json()
        assert body == {"ok": True, "id": "msg-1"}
        assert mailer.sent[0].to == "a@x.io"

    def test_rejection_is_500(self, client, mailer):
        mailer.reject.add("a@x.io")
        resp = client.get("/api/email-test", params={"key": SECRET, "to": "a@x.io"})
        assert resp.status_code == 500
        assert resp.json()["error"] == "Resend 422: invalid recipient"

    def test_no_mailer_is_500(self, app_config):
        app = create_app(config=app_config, mailer_factory=lambda cfg: None)
        resp = TestClient(app).get("/api/email-test", params={"key": SECRET, "to": "a@x.io"})
        assert resp.status_code == 500
        assert resp.json()["kind"] == "configuration"


def test_ping(client):
    assert client.get("/api/ping").json() == {"pong": True, "version": "1.0.0"}
