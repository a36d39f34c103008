"""Tests for the HTTP and WebSocket API.

Each test gets its own app over a temporary database; the lifespan runs
inside the TestClient context so the store is initialized and flushed.
"""

import time

import pytest
from fastapi.testclient import TestClient

from clicksand.api import create_app
from clicksand.config import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(
        db_path=tmp_path / "clicksand.db",
        crash_log_path=tmp_path / "crash.log",
        save_debounce_seconds=60,
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def log(client, user="alice", domain="example.com", active=10, video=0, **extra):
    body = {"userId": user, "domain": domain, "activeSeconds": active, "videoSeconds": video, **extra}
    return client.post("/api/log", json=body)


class TestBasics:
    def test_root(self, client):
        assert client.get("/").json()["name"] == "Clicksand API"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_recent_logs(self, client):
        response = client.get("/api/logs/recent?limit=5")
        assert response.status_code == 200
        assert response.json()["count"] <= 5


class TestLogAndStats:
    def test_log_then_stats(self, client):
        response = log(client)
        assert response.json() == {"success": True, "accepted": True, "achievement": None}
        stats = client.get("/api/stats", params={"userId": "alice"}).json()
        assert stats["view"] == "today"
        assert stats["stats"]["example.com"]["activeTime"] == 10
        assert stats["todayStats"]["browser_time"] == 10

    def test_missing_user_acknowledged(self, client):
        response = client.post("/api/log", json={"domain": "example.com", "activeSeconds": 10})
        assert response.status_code == 200
        assert response.json()["accepted"] is False

    def test_garbage_seconds_count_as_zero(self, client):
        response = log(client, active="lots", video=None)
        assert response.status_code == 200
        stats = client.get("/api/stats", params={"userId": "alice"}).json()
        assert stats["todayStats"]["example.com"]["activeTime"] == 0

    def test_achievement_in_response(self, client):
        response = log(client, domain="www.youtube.com", active=120)
        achievement = response.json()["achievement"]
        assert achievement["message"] == "YouTube Limit Reached!"
        assert achievement["triggerType"] == "limit_reached"

    def test_weekly_view(self, client):
        log(client)
        stats = client.get("/api/stats", params={"userId": "alice", "view": "weekly"}).json()
        assert stats["view"] == "weekly"
        assert stats["stats"]["example.com"]["activeTime"] == 10
        assert stats["stats"]["browser_time"] == 10

    def test_unknown_view_rejected(self, client):
        response = client.get("/api/stats", params={"userId": "alice", "view": "yearly"})
        assert response.status_code == 400

    def test_stats_without_user(self, client):
        stats = client.get("/api/stats").json()
        assert stats["todayStats"] == {}
        assert stats["history"] == {}


class TestHeartbeatAndReset:
    def test_heartbeat_requires_user(self, client):
        assert client.post("/api/heartbeat", json={}).status_code == 400

    def test_heartbeat(self, client):
        assert client.post("/api/heartbeat", json={"userId": "alice"}).json() == {"success": True}
        stats = client.get("/api/stats", params={"userId": "alice"}).json()
        assert stats["todayStats"]["browser_time"] == 1

    def test_reset_requires_user(self, client):
        assert client.post("/api/reset", json={}).status_code == 400

    def test_reset(self, client):
        log(client)
        assert client.post("/api/reset", json={"userId": "alice"}).json() == {"success": True}
        stats = client.get("/api/stats", params={"userId": "alice"}).json()
        assert stats["todayStats"] == {}
        rules = client.get("/api/settings", params={"userId": "alice"}).json()["achievementRules"]
        assert "youtube.com" in rules


class TestSettings:
    def test_defaults(self, client):
        rules = client.get("/api/settings", params={"userId": "alice"}).json()["achievementRules"]
        assert rules["youtube.com"] == {"limitSeconds": 120, "intervalSeconds": 60, "message": "YouTube Limit Reached!"}

    def test_replace_with_rule_map(self, client):
        body = {"userId": "alice", "achievementRules": {"reddit.com": {"limitSeconds": 10, "message": "Stop"}}}
        response = client.post("/api/settings", json=body)
        assert list(response.json()["achievementRules"]) == ["reddit.com"]
        achievement = log(client, domain="old.reddit.com", active=10).json()["achievement"]
        assert achievement["message"] == "Stop"

    def test_flat_site_list_in_minutes(self, client):
        body = {"userId": "alice", "achievement_sites": ["x.com"], "achievement_limit": 5, "achievement_interval": 1}
        rules = client.post("/api/settings", json=body).json()["achievementRules"]
        assert rules["x.com"]["limitSeconds"] == 300
        assert rules["x.com"]["intervalSeconds"] == 60

    def test_non_finite_minutes_accepted_as_zero(self, client):
        body = {"userId": "alice", "achievement_sites": ["x.com"], "achievement_limit": "nan", "achievement_interval": "inf"}
        response = client.post("/api/settings", json=body)
        assert response.status_code == 200
        assert response.json()["achievementRules"]["x.com"]["limitSeconds"] == 0
        assert response.json()["achievementRules"]["x.com"]["intervalSeconds"] == 0

    def test_no_rules_rejected(self, client):
        assert client.post("/api/settings", json={"userId": "alice"}).status_code == 400

    def test_user_required(self, client):
        assert client.post("/api/settings", json={"achievementRules": {}}).status_code == 400


class TestCategories:
    def test_set_and_list(self, client):
        response = client.post("/api/categories", json={"userId": "alice", "domain": "example.com", "category": "work"})
        assert response.json()["category"] == "work"
        overrides = client.get("/api/categories", params={"userId": "alice"}).json()["categoryOverrides"]
        assert overrides == {"example.com": "work"}

    def test_cycle_without_category(self, client):
        response = client.post("/api/categories", json={"userId": "alice", "domain": "example.com"})
        assert response.json()["category"] == "work"

    def test_invalid_category(self, client):
        response = client.post("/api/categories", json={"userId": "alice", "domain": "a.com", "category": "fun"})
        assert response.status_code == 400

    def test_breakdown_in_stats(self, client):
        log(client, domain="github.com", active=30)
        log(client, domain="reddit.com", active=20)
        categories = client.get("/api/stats", params={"userId": "alice"}).json()["categories"]
        assert categories == {"neutral": 0, "work": 30, "distraction": 20}


class TestPersistence:
    def test_stats_survive_restart(self, settings):
        with TestClient(create_app(settings)) as first:
            log(first, active=42)
        with TestClient(create_app(settings)) as second:
            stats = second.get("/api/stats", params={"userId": "alice"}).json()
        assert stats["todayStats"]["example.com"]["activeTime"] == 42


class TestWebSocket:
    def test_stats_update_pushed(self, client):
        with client.websocket_connect("/ws/alice") as ws:
            log(client)
            message = ws.receive_json()
        assert message["event"] == "stats_update"
        assert message["data"]["example.com"]["activeTime"] == 10

    def test_disconnect_stops_sender_and_unsubscribes(self, client):
        hub = client.app.state.service.events
        with client.websocket_connect("/ws/alice") as ws:
            log(client)
            ws.receive_json()
            assert hub.subscriber_count("alice") == 1

        deadline = time.monotonic() + 2
        while hub.subscriber_count("alice") and time.monotonic() < deadline:
            time.sleep(0.01)
        assert hub.subscriber_count("alice") == 0
        assert log(client).json()["accepted"]
