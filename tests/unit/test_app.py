"""
Integration Tests for the Display Service API

These tests run the FastAPI app with a MarketDisplayService backed by the
fake transport and verify:
- /health follows the feed state
- /display returns the rendered view
- /display/send is gated on the connection
- /ws/display pushes the current view first

Run with:
    pytest tests/unit/test_app.py -v
"""

import time

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient

from app.main import app
from core.schemas import ConnectionConfig
from services.event_bus import EventBus
from services.market_display import MarketDisplayService


URL = "ws://localhost:8000/status"


def poll(client: TestClient, predicate, attempts: int = 200) -> dict:
    """GET /health until predicate(body) holds"""
    for _ in range(attempts):
        body = client.get("/health").json()
        if predicate(body):
            return body
        time.sleep(0.01)
    raise AssertionError(f"Health never matched, last: {body}")


@pytest.fixture
def make_client(transport):
    def factory(config: ConnectionConfig):
        service = MarketDisplayService(URL, config, transport=transport, event_bus=EventBus())
        patcher = patch("app.main.get_market_display_service", return_value=service)
        patcher.start()
        return TestClient(app), service, patcher

    patchers = []

    def tracked(config: ConnectionConfig = ConnectionConfig()):
        client, service, patcher = factory(config)
        patchers.append(patcher)
        return client, service

    yield tracked

    for patcher in patchers:
        patcher.stop()


class TestConnectedFeed:
    """Tests with a feed that opens successfully"""

    def test_root(self, make_client):
        client, _ = make_client()

        with client:
            body = client.get("/").json()

        assert body["feed_url"] == URL

    def test_health_and_waiting_view(self, make_client):
        """Verify healthy status and the waiting view once open"""
        client, _ = make_client()

        with client:
            health = poll(client, lambda b: b["state"] == "open")
            view = client.get("/display").json()

        assert health["status"] == "healthy"
        assert health["reconnect_count"] == 0
        assert view["status"] == "Live"
        assert view["waiting"] is True
        assert view["alert"] is None

    def test_send_forwards_message(self, make_client, transport):
        """Verify POST /display/send reaches the socket"""
        client, _ = make_client()

        with client:
            poll(client, lambda b: b["state"] == "open")
            response = client.post("/display/send", json={"action": "refresh"})

        assert response.status_code == 200
        assert response.json() == {"sent": True}
        assert transport.connections[0].sent == ['{"action": "refresh"}']

    def test_service_stopped_on_shutdown(self, make_client):
        client, service = make_client()

        with client:
            poll(client, lambda b: b["state"] == "open")

        assert service.running is False
        assert service.feed.disposed is True


class TestClosedFeed:
    """Tests with a feed whose connection is refused"""

    def test_health_degraded_and_alert(self, make_client, transport):
        """Verify the closed error shows up in /health and /display"""
        transport.fail_with = ConnectionRefusedError("refused")
        client, _ = make_client(ConnectionConfig(reconnect_enabled=False))

        with client:
            health = poll(client, lambda b: b["state"] == "closed")
            view = client.get("/display").json()

        assert health["status"] == "degraded"
        assert health["error_kind"] == "closed"
        assert view["alert"] == "WebSocket connection closed"
        assert view["cards"] == []

    def test_send_rejected_with_409(self, make_client, transport):
        """Verify nothing is sent while disconnected"""
        transport.fail_with = ConnectionRefusedError("refused")
        client, _ = make_client(ConnectionConfig(reconnect_enabled=False))

        with client:
            poll(client, lambda b: b["state"] == "closed")
            response = client.post("/display/send", json={"action": "refresh"})

        assert response.status_code == 409
        assert response.json()["detail"] == "WebSocket is not connected"

    def test_ws_display_pushes_current_view(self, make_client, transport):
        """Verify the first WebSocket message is the current view"""
        transport.fail_with = ConnectionRefusedError("refused")
        client, _ = make_client(ConnectionConfig(reconnect_enabled=False))

        with client:
            poll(client, lambda b: b["state"] == "closed")
            with client.websocket_connect("/ws/display") as ws:
                view = ws.receive_json()

        assert view["alert"] == "WebSocket connection closed"
        assert view["title"] == "Market Data"
