"""Tests for the Daedalus parse API."""
import threading
from http.server import HTTPServer

import pytest
import requests

from daedalus.api.endpoints.parse import ParseRequestError
from daedalus.api.http_server import DaedalusApp, DaedalusRequestHandler


@pytest.fixture
def app():
    return DaedalusApp()


@pytest.fixture
def live_server(app):
    """Serve the app on an ephemeral port for the duration of one test."""
    server = HTTPServer(("127.0.0.1", 0), DaedalusRequestHandler)
    server.app = app
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    yield f"http://{host}:{port}"
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


class TestParseHandler:
    """Tests for the framework-agnostic handlers."""

    def test_rrweb_object_payload(self, app, shop_page, ev):
        payload = {
            "session_id": "abc",
            "snapshots": [e.to_dict() for e in shop_page + [ev.click(10, 100)]],
        }
        body = app.route_post("/parse/rrweb", payload)
        assert body["status"] == "ok"
        assert body["sessionId"] == "abc"
        assert body["bundle"]["summary"]["totalClicks"] == 1
        assert body["decodeReport"]["decoded"] == 3

    def test_bare_list_payload(self, app, shop_page):
        body = app.route_post("/parse/rrweb", [e.to_dict() for e in shop_page])
        assert body["sessionId"] is None
        assert body["bundle"]["pageTitle"] == "Shop"

    def test_invalid_payloads(self, app):
        with pytest.raises(ParseRequestError):
            app.route_post("/parse/rrweb", {"events": []})
        with pytest.raises(ParseRequestError):
            app.route_post("/parse/rrweb", {"snapshots": "nope"})
        with pytest.raises(ParseRequestError):
            app.route_post("/parse/analytics", "text")
        with pytest.raises(ParseRequestError):
            app.route_post("/parse/analytics", {"events": [], "config": 3})

    def test_threshold_overrides(self, app, shop_page, ev):
        clicks = [ev.click(10, 100), ev.click(10, 900), ev.click(10, 1500)]
        payload = {
            "snapshots": [e.to_dict() for e in shop_page + clicks],
            "config": {"rage_click_prior_clicks": 2, "not_a_threshold": 1},
        }
        body = app.route_post("/parse/rrweb", payload)
        assert body["bundle"]["summary"]["rageClicks"] == 1

    def test_analytics_with_prompt_data(self, app, mixpanel_rows):
        body = app.route_post(
            "/parse/analytics",
            {"events": mixpanel_rows, "session_id": "mp", "include_prompt_data": True},
        )
        assert body["source"] == "analytics"
        assert body["promptData"]["sessionId"] == "mp"
        assert "=== CLICK METRICS ===" in body["promptData"]["sessionContext"]

    def test_batch(self, app, shop_page, mixpanel_rows):
        payload = {
            "sessions": [
                {"session_id": "r1", "source": "rrweb", "items": [e.to_dict() for e in shop_page]},
                {"session_id": "m1", "source": "mixpanel", "items": mixpanel_rows},
                {"session_id": "x1", "source": "heatmap", "items": []},
            ]
        }
        body = app.route_post("/parse/batch", payload)
        assert set(body["results"]) == {"r1", "m1"}
        assert body["results"]["r1"]["sessionId"] == "r1"
        assert "heatmap" in body["failures"]["x1"]

    def test_batch_validation(self, app):
        with pytest.raises(ParseRequestError):
            app.route_post("/parse/batch", {"sessions": [{"source": "rrweb"}]})
        duplicate = {"session_id": "a", "source": "rrweb", "items": []}
        with pytest.raises(ParseRequestError):
            app.route_post("/parse/batch", {"sessions": [duplicate, duplicate]})

    def test_health_counts(self, app, shop_page):
        app.route_post("/parse/rrweb", [e.to_dict() for e in shop_page])
        details = app.health.health()["details"]
        assert details["sessions_parsed"] == 1
        assert details["requests_failed"] == 0
        assert "mixpanel" in details["sources"]

    def test_unknown_path(self, app):
        assert app.route_post("/parse/heatmap", []) is None


class TestHttpServer:
    """Round trips through a real socket."""

    def test_health(self, live_server):
        response = requests.get(f"{live_server}/health", timeout=5)
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_parse(self, live_server, shop_page):
        response = requests.post(
            f"{live_server}/parse/rrweb",
            json={"snapshots": [e.to_dict() for e in shop_page]},
            timeout=5,
        )
        assert response.status_code == 200
        assert response.json()["bundle"]["pageUrl"] == "https://shop.example.com/cart"

    def test_bad_request(self, live_server):
        response = requests.post(f"{live_server}/parse/rrweb", data="{oops", timeout=5)
        assert response.status_code == 400
        assert response.json()["error"] == "parse_error"

    def test_internal_error_is_500(self, app, live_server, monkeypatch):
        def broken(payload):
            raise ValueError("bad internal state")

        monkeypatch.setattr(app.parse, "parse_rrweb", broken)
        response = requests.post(f"{live_server}/parse/rrweb", json=[], timeout=5)
        assert response.status_code == 500
        assert response.json()["error"] == "internal_error"

    def test_not_found(self, live_server):
        assert requests.get(f"{live_server}/nope", timeout=5).status_code == 404
        assert requests.post(f"{live_server}/nope", json={}, timeout=5).status_code == 404
