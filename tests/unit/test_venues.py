"""
Unit Tests for Venue Connectors and the Venue Manager

These tests verify that:
- Each venue builds the documented subscribe and keepalive messages
- The manager resolves venues case-insensitively and rejects unknown ones
- REST instrument discovery normalizes venue payloads and filters inactive instruments
- The REST clients retry and surface venue error envelopes

Run with:
    pytest tests/unit/test_venues.py -v
"""

import asyncio
import json
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from core.schemas import Instrument, Venue
from core.venue_interface import VenueAPIError
from core.venue_manager import VenueManager, venue_manager
from exchanges.bybit import BybitVenue
from exchanges.bybit.api_client import BybitAPIClient
from exchanges.deribit import DeribitVenue
from exchanges.deribit.api_client import DeribitAPIClient
from exchanges.okx import OKXVenue
from exchanges.okx.api_client import OKXAPIClient


# ============================================
# Mock HTTP Response Helper
# ============================================

class MockResponse:
    """Mock aiohttp response usable as an async context manager"""

    def __init__(self, status, json_data=None):
        self.status = status
        self._json_data = json_data

    async def json(self):
        return self._json_data

    async def text(self):
        return "error body"

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


@pytest.fixture
def no_backoff(monkeypatch):
    """Skip the REST retry sleeps"""
    monkeypatch.setattr(asyncio, "sleep", AsyncMock())


# ============================================
# Wire Messages
# ============================================

class TestWireMessages:
    """Tests for subscribe and keepalive messages"""

    def test_okx_messages(self):
        venue = OKXVenue()
        assert json.loads(venue.build_subscribe_message("BTC-USDT")) == {
            "op": "subscribe",
            "args": [{"channel": "books", "instId": "BTC-USDT"}],
        }
        assert venue.build_heartbeat_message() == "ping"
        assert venue.ws_url == "wss://ws.okx.com/ws/v5/public"

    def test_bybit_messages(self):
        venue = BybitVenue()
        assert json.loads(venue.build_subscribe_message("BTCUSDT")) == {
            "op": "subscribe",
            "args": ["orderbook.50.BTCUSDT"],
        }
        assert json.loads(venue.build_heartbeat_message()) == {"op": "ping"}
        assert venue.ws_url == "wss://stream.bybit.com/v5/public/spot"

    def test_deribit_messages(self):
        venue = DeribitVenue()
        subscribe = json.loads(venue.build_subscribe_message("BTC-PERPETUAL"))
        assert subscribe["jsonrpc"] == "2.0"
        assert subscribe["method"] == "public/subscribe"
        assert subscribe["params"] == {"channels": ["book.BTC-PERPETUAL.none.10.100ms"]}
        assert isinstance(subscribe["id"], int)

        heartbeat = json.loads(venue.build_heartbeat_message())
        assert heartbeat["method"] == "public/test"
        assert venue.ws_url == "wss://www.deribit.com/ws/api/v2"


# ============================================
# Venue Manager
# ============================================

class TestVenueManager:
    """Tests for venue lookup"""

    def test_lists_all_venues(self):
        assert VenueManager().list_venues() == ["OKX", "Bybit", "Deribit"]

    @pytest.mark.parametrize("name, expected", [
        ("okx", OKXVenue),
        ("BYBIT", BybitVenue),
        ("Deribit", DeribitVenue),
        (Venue.DERIBIT, DeribitVenue),
    ])
    def test_get_venue_case_insensitive(self, name, expected):
        assert isinstance(venue_manager.get_venue(name), expected)

    def test_unknown_venue(self):
        with pytest.raises(ValueError, match="Available venues: OKX, Bybit, Deribit"):
            venue_manager.get_venue("binance")
        assert venue_manager.has_venue("okx")
        assert not venue_manager.has_venue("binance")

    def test_venue_name(self):
        venue = venue_manager.get_venue("bybit")
        assert venue.name == "Bybit"
        assert "Bybit" in repr(venue)


# ============================================
# Instrument Discovery
# ============================================

@pytest_asyncio.fixture
async def okx_client():
    async with OKXAPIClient() as client:
        yield client


@pytest_asyncio.fixture
async def bybit_client():
    async with BybitAPIClient() as client:
        yield client


@pytest_asyncio.fixture
async def deribit_client():
    async with DeribitAPIClient() as client:
        yield client


class TestInstrumentDiscovery:
    """Tests for get_instruments() on each REST client"""

    @pytest.mark.asyncio
    async def test_okx_instruments(self, okx_client, monkeypatch):
        called = {}

        async def mock_get(path, params=None):
            called.update(path=path, params=params)
            return [
                {"instId": "BTC-USDT", "baseCcy": "BTC", "quoteCcy": "USDT", "tickSz": "0.1",
                 "lotSz": "0.00000001", "instType": "SPOT", "state": "live"},
                {"instId": "OLD-USDT", "baseCcy": "OLD", "quoteCcy": "USDT", "tickSz": "0.1",
                 "lotSz": "1", "instType": "SPOT", "state": "suspend"},
            ]

        monkeypatch.setattr(okx_client, "_get", mock_get)
        instruments = await okx_client.get_instruments()

        assert called == {"path": "/public/instruments", "params": {"instType": "SPOT"}}
        assert instruments == [Instrument(
            venue=Venue.OKX, instrument_id="BTC-USDT", base_currency="BTC", quote_currency="USDT",
            tick_size=Decimal("0.1"), lot_size=Decimal("0.00000001"), kind="spot",
        )]

    @pytest.mark.asyncio
    async def test_bybit_instruments(self, bybit_client, monkeypatch):
        async def mock_get(path, params=None):
            assert params == {"category": "spot"}
            return {"category": "spot", "list": [
                {"symbol": "BTCUSDT", "baseCoin": "BTC", "quoteCoin": "USDT", "status": "Trading",
                 "priceFilter": {"tickSize": "0.01"}, "lotSizeFilter": {"minOrderQty": "0.000048"}},
                {"symbol": "XYZUSDT", "baseCoin": "XYZ", "quoteCoin": "USDT", "status": "PreLaunch",
                 "priceFilter": {"tickSize": "0.01"}, "lotSizeFilter": {"minOrderQty": "1"}},
            ]}

        monkeypatch.setattr(bybit_client, "_get", mock_get)
        instruments = await bybit_client.get_instruments()

        assert [i.instrument_id for i in instruments] == ["BTCUSDT"]
        assert instruments[0].tick_size == Decimal("0.01")
        assert instruments[0].lot_size == Decimal("0.000048")

    @pytest.mark.asyncio
    async def test_deribit_instruments(self, deribit_client, monkeypatch):
        requested = []

        async def mock_get(path, params=None):
            requested.append(params["currency"])
            return [
                {"instrument_name": f"{params['currency']}-PERPETUAL", "base_currency": params["currency"],
                 "quote_currency": "USD", "tick_size": 0.5, "min_trade_amount": 10,
                 "kind": "future", "is_active": True},
                {"instrument_name": f"{params['currency']}-29MAR24", "base_currency": params["currency"],
                 "quote_currency": "USD", "tick_size": 0.5, "min_trade_amount": 10,
                 "kind": "future", "is_active": False},
            ]

        monkeypatch.setattr(deribit_client, "_get", mock_get)
        instruments = await deribit_client.get_instruments()

        assert sorted(requested) == ["BTC", "ETH"]
        assert sorted(i.instrument_id for i in instruments) == ["BTC-PERPETUAL", "ETH-PERPETUAL"]
        assert instruments[0].tick_size == Decimal("0.5")
        assert instruments[0].kind == "future"

    @pytest.mark.asyncio
    async def test_fetch_instruments_swallows_failures(self, monkeypatch):
        async def failing(self):
            raise VenueAPIError("HTTP 503: unavailable")

        monkeypatch.setattr(OKXAPIClient, "get_instruments", failing)
        assert await OKXVenue().fetch_instruments() == []


class TestRestErrorHandling:
    """Tests for the shared _get retry logic"""

    @pytest.mark.asyncio
    async def test_okx_retries_then_succeeds(self, okx_client, no_backoff):
        responses = [
            MockResponse(500),
            MockResponse(200, {"code": "50011", "msg": "Too Many Requests"}),
            MockResponse(200, {"code": "0", "data": [{"instId": "BTC-USDT"}]}),
        ]

        def mock_get(url, params=None):
            return responses.pop(0)

        okx_client.session.get = mock_get
        assert await okx_client._get("/public/instruments") == [{"instId": "BTC-USDT"}]
        assert responses == []

    @pytest.mark.asyncio
    async def test_bybit_error_envelope_raises(self, bybit_client, no_backoff):
        def mock_get(url, params=None):
            return MockResponse(200, {"retCode": 10001, "retMsg": "params error"})

        bybit_client.session.get = mock_get
        with pytest.raises(VenueAPIError, match="params error"):
            await bybit_client._get("/market/instruments-info")

    @pytest.mark.asyncio
    async def test_deribit_error_envelope_raises(self, deribit_client, no_backoff):
        def mock_get(url, params=None):
            return MockResponse(200, {"jsonrpc": "2.0", "error": {"code": 10020, "message": "invalid currency"}})

        deribit_client.session.get = mock_get
        with pytest.raises(VenueAPIError, match="invalid currency"):
            await deribit_client._get("/public/get_instruments")
