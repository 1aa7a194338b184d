"""
Deribit Venue Connector

Public order book stream of Deribit futures over JSON-RPC 2.0.

WebSocket:
    - Endpoint: wss://www.deribit.com/ws/api/v2
    - Subscribe: public/subscribe on book.{instrument}.none.10.100ms
    - Keepalive: public/test request

REST:
    - GET /api/v2/public/get_instruments
"""

import json
from typing import List, Optional

from core.config import settings
from core.logging import get_logger
from core.schemas import Instrument, Venue
from core.utils.time import current_utc_timestamp
from core.venue_interface import VenueInterface
from .api_client import DeribitAPIClient
from .normalizer import DeribitNormalizer


class DeribitVenue(VenueInterface):

    venue = Venue.DERIBIT

    # Grouping "none", 10 levels, 100ms aggregation
    CHANNEL_TEMPLATE = "book.{instrument_id}.none.10.100ms"

    def __init__(self):
        self.logger = get_logger(__name__)

    @property
    def ws_url(self) -> str:
        return settings.deribit_ws_url

    def build_subscribe_message(self, instrument_id: str) -> str:
        return json.dumps({
            "jsonrpc": "2.0",
            "id": current_utc_timestamp(milliseconds=True),
            "method": "public/subscribe",
            "params": {"channels": [self.CHANNEL_TEMPLATE.format(instrument_id=instrument_id)]},
        })

    def build_heartbeat_message(self) -> Optional[str]:
        return json.dumps({
            "jsonrpc": "2.0",
            "id": current_utc_timestamp(milliseconds=True),
            "method": "public/test",
        })

    def create_normalizer(self) -> DeribitNormalizer:
        return DeribitNormalizer()

    async def fetch_instruments(self) -> List[Instrument]:
        try:
            async with DeribitAPIClient() as client:
                return await client.get_instruments()
        except Exception as e:
            self.logger.error(f"Failed to fetch Deribit instruments: {e}")
            return []
