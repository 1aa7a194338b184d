"""
Bybit Venue Connector

Public order book stream of the Bybit spot market (V5 API).

WebSocket:
    - Endpoint: wss://stream.bybit.com/v5/public/spot
    - Subscribe: {"op": "subscribe", "args": ["orderbook.50.BTCUSDT"]}
    - Keepalive: {"op": "ping"} (Bybit recommends one every 20 seconds)

REST:
    - GET /v5/market/instruments-info?category=spot

API Documentation:
    https://bybit-exchange.github.io/docs/v5/websocket/public/orderbook
"""

import json
from typing import List, Optional

from core.config import settings
from core.logging import get_logger
from core.schemas import Instrument, Venue
from core.venue_interface import VenueInterface
from .api_client import BybitAPIClient
from .normalizer import BybitNormalizer


class BybitVenue(VenueInterface):

    venue = Venue.BYBIT

    BOOK_DEPTH = 50

    def __init__(self):
        self.logger = get_logger(__name__)

    @property
    def ws_url(self) -> str:
        return settings.bybit_ws_url

    def build_subscribe_message(self, instrument_id: str) -> str:
        return json.dumps({"op": "subscribe", "args": [f"orderbook.{self.BOOK_DEPTH}.{instrument_id}"]})

    def build_heartbeat_message(self) -> Optional[str]:
        return json.dumps({"op": "ping"})

    def create_normalizer(self) -> BybitNormalizer:
        return BybitNormalizer()

    async def fetch_instruments(self) -> List[Instrument]:
        try:
            async with BybitAPIClient() as client:
                return await client.get_instruments()
        except Exception as e:
            self.logger.error(f"Failed to fetch Bybit instruments: {e}")
            return []
