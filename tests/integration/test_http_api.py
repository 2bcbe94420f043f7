"""End-to-end tests for the Detour HTTP surface.

The app runs through its real lifespan (TestClient as a context manager) with
DETOUR_STORAGE_PATH=":memory:" and no tab bridge configured, so navigation
intents are logged only. Background side effects are drained through the
client's portal before asserting on the audit log.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from detour.constants import DEFAULT_RULES
from detour.main import create_app

SENTINEL = "http://127.0.0.1:4343/blocked"


@pytest.fixture
def client():
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


def _drain(client: TestClient) -> None:
    client.portal.call(client.app.state.engine.wait_idle)


def _send(client: TestClient, message) -> dict:
    response = client.post("/messages", json=message)
    assert response.status_code == 200
    return response.json()


class TestStartup:
    def test_health_ready_with_default_rules(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["rules_active"] == len(DEFAULT_RULES)
        assert body["rules_invalid"] == 0
        assert body["logging_enabled"] is True
        assert body["sentinel_url"] == SENTINEL

    def test_defaults_seeded(self, client):
        assert _send(client, {"type": "LIST_RULES"}) == {"rules": list(DEFAULT_RULES)}

    def test_root(self, client):
        assert client.get("/").json()["service"] == "Detour"

    def test_blocked_page(self, client):
        response = client.get("/blocked")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]

    def test_not_ready_without_lifespan(self):
        client = TestClient(create_app())
        assert client.get("/health").status_code == 503
        response = client.post("/events/before-request", json={"url": "https://tiktok.com/"})
        assert response.status_code == 503
        assert client.post("/messages", json={"type": "LIST_RULES"}).status_code == 503

    def test_rules_file_loaded_at_startup(self, tmp_path, monkeypatch: pytest.MonkeyPatch):
        rules_path = tmp_path / "rules.yaml"
        rules_path.write_text("rules:\n  - reddit.com\n")
        config_path = tmp_path / "config.yaml"
        config_path.write_text(f"version: 1\nrules_file: {rules_path}\n")
        monkeypatch.setenv("DETOUR_CONFIG", str(config_path))

        with TestClient(create_app()) as client:
            assert _send(client, {"type": "LIST_RULES"}) == {"rules": ["reddit.com"]}
            assert client.get("/health").json()["rules_active"] == 1

    def test_port_override_moves_sentinel(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DETOUR_PORT", "5000")
        with TestClient(create_app()) as client:
            assert client.get("/health").json()["sentinel_url"] == "http://127.0.0.1:5000/blocked"
            response = client.post(
                "/events/before-request", json={"url": "https://tiktok.com/@a", "tabId": 1}
            )
            assert response.json()["redirectUrl"] == "http://127.0.0.1:5000/blocked"
            # The service's own blocked page is the sentinel, never redirected.
            response = client.post(
                "/events/before-request", json={"url": "http://127.0.0.1:5000/blocked", "tabId": 1}
            )
            assert response.json() == {}


class TestBeforeRequest:
    def test_matching_navigation_redirected(self, client):
        response = client.post(
            "/events/before-request",
            json={"url": "https://youtube.com/shorts/abc", "tabId": 5, "type": "main_frame"},
        )
        assert response.status_code == 200
        assert response.json() == {"cancel": True, "redirectUrl": SENTINEL}

        _drain(client)
        seen = _send(client, {"type": "LIST_SEEN"})["seen"]
        assert seen[0]["url"] == "https://youtube.com/shorts/abc"
        assert seen[0]["source"] == "webRequest"
        assert seen[0]["matchedRule"] == "youtube.com/shorts/*"

    def test_other_navigation_allowed(self, client):
        response = client.post(
            "/events/before-request", json={"url": "https://youtube.com/watch?v=1", "tabId": 5}
        )
        assert response.json() == {}

    def test_google_wrapped_destination(self, client):
        wrapped = "https://www.google.com/url?q=https%3A%2F%2Finstagram.com%2Fp%2F1"
        response = client.post("/events/before-request", json={"url": wrapped, "tabId": 1})
        assert response.json()["cancel"] is True

        _drain(client)
        seen = _send(client, {"type": "LIST_SEEN"})["seen"]
        assert seen[0]["url"] == "https://instagram.com/p/1"
        assert seen[0]["source"] == "Google-wrapped"

    def test_sentinel_allowed(self, client):
        response = client.post("/events/before-request", json={"url": SENTINEL, "tabId": 1})
        assert response.json() == {}

    def test_sub_frame_allowed(self, client):
        response = client.post(
            "/events/before-request",
            json={"url": "https://tiktok.com/@a", "tabId": 1, "type": "sub_frame"},
        )
        assert response.json() == {}

    def test_missing_url_is_422(self, client):
        assert client.post("/events/before-request", json={"tabId": 1}).status_code == 422


class TestSpaEvents:
    def test_history_state_redirect(self, client):
        response = client.post(
            "/events/history-state-updated",
            json={"url": "https://www.youtube.com/shorts/xyz", "tabId": 3, "frameId": 0},
        )
        assert response.json() == {"redirected": True}

        _drain(client)
        seen = _send(client, {"type": "LIST_SEEN"})["seen"]
        assert seen[0]["source"] == "SPA-historyState"
        assert seen[0]["matchedRule"] is None

    def test_committed_subframe_ignored(self, client):
        response = client.post(
            "/events/committed",
            json={"url": "https://tiktok.com/@a", "tabId": 3, "frameId": 7},
        )
        assert response.json() == {"redirected": False}


class TestMessages:
    def test_add_rule_takes_effect(self, client):
        url = "https://www.reddit.com/r/all"
        assert client.post("/events/before-request", json={"url": url}).json() == {}

        assert _send(client, {"type": "ADD_RULE", "value": "/REDDIT\\.com/i"}) == {"ok": True}

        assert client.post("/events/before-request", json={"url": url}).json()["cancel"] is True

    def test_remove_rule(self, client):
        assert _send(client, {"type": "REMOVE_RULE", "value": "tiktok.com/*"}) == {"ok": True}
        assert "tiktok.com/*" not in _send(client, {"type": "LIST_RULES"})["rules"]
        assert client.post("/events/before-request", json={"url": "https://tiktok.com/@a"}).json() == {}

    def test_invalid_rule_reported_in_health(self, client):
        _send(client, {"type": "ADD_RULE", "value": "(broken"})
        body = client.get("/health").json()
        assert body["rules_invalid"] == 1
        assert body["rules_active"] == len(DEFAULT_RULES)

    def test_logging_toggle(self, client):
        assert _send(client, {"type": "SET_LOGGING", "enabled": False}) == {"ok": True}
        client.post("/events/before-request", json={"url": "https://tiktok.com/@a"})
        _drain(client)
        assert _send(client, {"type": "LIST_SEEN"}) == {"seen": []}

    def test_clear_seen(self, client):
        client.post("/events/before-request", json={"url": "https://tiktok.com/@a"})
        _drain(client)
        assert _send(client, {"type": "CLEAR_SEEN"}) == {"ok": True}
        assert _send(client, {"type": "LIST_SEEN"}) == {"seen": []}

    def test_validate_rule(self, client):
        assert _send(client, {"type": "VALIDATE_RULE", "value": "ok"}) == {"ok": True, "error": None}

    def test_unknown_message(self, client):
        assert _send(client, {"type": "NOPE"}) == {}

    def test_non_string_value(self, client):
        assert _send(client, {"type": "ADD_RULE", "value": 5}) == {}

    def test_non_json_body(self, client):
        response = client.post(
            "/messages", content=b"not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 200
        assert response.json() == {}

    def test_list_seen_filter(self, client):
        client.post("/events/before-request", json={"url": "https://tiktok.com/@a"})
        client.post("/events/before-request", json={"url": "https://www.instagram.com/reel/1"})
        _drain(client)

        seen = _send(client, {"type": "LIST_SEEN", "filter": "Instagram"})["seen"]
        assert [row["url"] for row in seen] == ["https://www.instagram.com/reel/1"]
        assert len(_send(client, {"type": "LIST_SEEN", "filter": ""})["seen"]) == 2
