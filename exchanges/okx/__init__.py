"""
OKX Venue Connector

Public order book stream of the OKX spot market.

WebSocket:
    - Endpoint: wss://ws.okx.com/ws/v5/public
    - Subscribe: {"op": "subscribe", "args": [{"channel": "books", "instId": "BTC-USDT"}]}
    - Keepalive: the plain-text string "ping" (answered with "pong")

REST:
    - GET /api/v5/public/instruments?instType=SPOT
"""

import json
from typing import List, Optional

from core.config import settings
from core.logging import get_logger
from core.schemas import Instrument, Venue
from core.venue_interface import VenueInterface
from .api_client import OKXAPIClient
from .normalizer import OKXNormalizer


class OKXVenue(VenueInterface):

    venue = Venue.OKX

    def __init__(self):
        self.logger = get_logger(__name__)

    @property
    def ws_url(self) -> str:
        return settings.okx_ws_url

    def build_subscribe_message(self, instrument_id: str) -> str:
        return json.dumps({"op": "subscribe", "args": [{"channel": "books", "instId": instrument_id}]})

    def build_heartbeat_message(self) -> Optional[str]:
        return "ping"

    def create_normalizer(self) -> OKXNormalizer:
        return OKXNormalizer()

    async def fetch_instruments(self) -> List[Instrument]:
        try:
            async with OKXAPIClient() as client:
                return await client.get_instruments()
        except Exception as e:
            self.logger.error(f"Failed to fetch OKX instruments: {e}")
            return []
