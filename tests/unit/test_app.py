"""
Tests for the HTTP and WebSocket API

Runs the FastAPI app in-process with a BookService whose transports are fakes,
so no venue is ever contacted.

Run with:
    pytest tests/unit/test_app.py -v
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

import app.main as main
from core.schemas import Instrument, Venue
from core.venue_manager import venue_manager
from services.book_service import BookService
from services.event_bus import EventBus
from tests.fakes import FakeConnector


OKX_SNAPSHOT = json.dumps({
    "arg": {"channel": "books", "instId": "BTC-USDT"},
    "action": "snapshot",
    "data": [{
        "bids": [["100", "2", "0", "1"], ["99", "3", "0", "1"]],
        "asks": [["101", "1", "0", "1"], ["102", "2", "0", "1"]],
        "ts": "1704110400000",
    }],
})


@pytest.fixture
def client(monkeypatch):
    service = BookService(
        event_bus=EventBus(),
        transport_factory=FakeConnector(frames=[OKX_SNAPSHOT]),
        throttle=0.0,
        heartbeat_interval=60.0,
    )
    monkeypatch.setattr(main, "book_service", service)
    with TestClient(main.app) as test_client:
        yield test_client


# ============================================
# System Endpoints
# ============================================

class TestSystemEndpoints:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["status"] == "operational"
        assert body["venues"] == ["OKX", "Bybit", "Deribit"]

    def test_health_without_subscriptions(self, client):
        assert client.get("/health").json() == {"status": "healthy", "subscriptions": []}

    def test_venues(self, client):
        venues = client.get("/venues").json()["venues"]
        assert [venue["name"] for venue in venues] == ["OKX", "Bybit", "Deribit"]
        assert venues[0]["ws_url"] == "wss://ws.okx.com/ws/v5/public"


# ============================================
# Market Data Endpoints
# ============================================

class TestInstruments:

    def test_instruments(self, client, monkeypatch):
        instrument = Instrument(
            venue=Venue.OKX, instrument_id="BTC-USDT", base_currency="BTC", quote_currency="USDT",
            tick_size=Decimal("0.1"), lot_size=Decimal("0.00000001"), kind="spot",
        )
        monkeypatch.setattr(venue_manager.get_venue("okx"), "fetch_instruments", AsyncMock(return_value=[instrument]))

        response = client.get("/OKX/instruments")

        assert response.status_code == 200
        assert response.json()[0]["instrument_id"] == "BTC-USDT"

    def test_unknown_venue(self, client):
        response = client.get("/kraken/instruments")
        assert response.status_code == 404
        assert "not supported" in response.json()["detail"]


class TestImpact:

    def test_no_live_book(self, client):
        response = client.post("/okx/BTC-USDT/impact", json={"side": "Buy", "type": "Market", "quantity": "1"})
        assert response.status_code == 409

    def test_unknown_venue(self, client):
        response = client.post("/kraken/XBTUSD/impact", json={"side": "Buy", "type": "Market", "quantity": "1"})
        assert response.status_code == 404

    def test_invalid_order(self, client):
        response = client.post("/okx/BTC-USDT/impact", json={"side": "Buy", "type": "Market", "quantity": "0"})
        assert response.status_code == 422


# ============================================
# WebSocket Stream
# ============================================

class TestBookStream:

    def test_stream_then_simulate(self, client):
        with client.websocket_connect("/ws/okx/BTC-USDT/book") as ws:
            messages = [ws.receive_json() for _ in range(3)]

            assert [message["status"] for message in messages] == ["connecting", "connected", "connected"]
            assert messages[0]["snapshot"] is None
            snapshot = messages[2]["snapshot"]
            assert [Decimal(level["price"]) for level in snapshot["bids"]] == [Decimal("100"), Decimal("99")]
            assert Decimal(snapshot["spread"]) == Decimal("1")

            health = client.get("/health").json()
            assert health["subscriptions"][0]["status"] == "connected"

            response = client.post(
                "/okx/BTC-USDT/impact",
                json={"side": "Buy", "type": "Market", "quantity": "2"},
            )
            assert response.status_code == 200
            report = response.json()
            assert report["venue"] == "OKX"
            assert report["metrics"]["time_to_fill"] == "Immediate"
            assert Decimal(report["metrics"]["estimated_price"]) == Decimal("101.5")
            assert len(report["consumed_levels"]) == 2
            assert Decimal(report["metrics"]["total_value"]) == Decimal("203")
            assert [Decimal(level["percentage"]) for level in report["executed_levels"]] == [Decimal("50"), Decimal("50")]

    def test_unknown_venue_closes_with_policy_violation(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/kraken/XBTUSD/book") as ws:
                ws.receive_json()
        assert exc_info.value.code == 1008
