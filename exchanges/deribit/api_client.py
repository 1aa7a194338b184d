"""
Deribit REST API Client

Instrument discovery for Deribit futures (BTC and ETH settled).

API Documentation:
    https://docs.deribit.com/#public-get_instruments

Usage:
    async with DeribitAPIClient() as client:
        instruments = await client.get_instruments()
"""

import aiohttp
import asyncio
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.config import settings
from core.logging import get_logger, log_api_request, log_api_response
from core.normalizer import to_decimal
from core.schemas import Instrument, Venue
from core.venue_interface import VenueAPIError


class DeribitAPIClient:
    """
    Async HTTP client for the Deribit public REST API.

    Attributes:
        base_url: Deribit API base URL (from settings)
        currencies: Settlement currencies queried for futures
        session: aiohttp ClientSession for HTTP requests
    """

    currencies = ("BTC", "ETH")

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = base_url or settings.deribit_rest_url
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=settings.request_timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()

    async def _get(self, endpoint: str, params: Dict[str, Any] = None) -> Any:
        """
        Make GET request to Deribit API with retry logic.

        Returns:
            The "result" field of the JSON-RPC response

        Raises:
            VenueAPIError: If Deribit answers with an error after all retries
        """
        url = f"{self.base_url}{endpoint}"
        params = params or {}

        max_retries = 3
        for attempt in range(max_retries):
            try:
                log_api_request("deribit", endpoint, params)
                started = time.monotonic()
                async with self.session.get(url, params=params) as response:
                    log_api_response("deribit", endpoint, response.status, time.monotonic() - started)
                    if response.status != 200:
                        raise VenueAPIError(f"HTTP {response.status}: {await response.text()}")

                    data = await response.json()
                    if "error" in data:
                        raise VenueAPIError(f"Deribit API error: {data['error'].get('message', 'Unknown error')}")
                    return data.get("result", [])

            except (aiohttp.ClientError, asyncio.TimeoutError, VenueAPIError) as e:
                if attempt == max_retries - 1:
                    self.logger.error(f"Deribit API request failed after {max_retries} attempts: {e}")
                    raise

                wait_time = 2 ** attempt
                self.logger.warning(f"Deribit API request failed (attempt {attempt + 1}), retrying in {wait_time}s: {e}")
                await asyncio.sleep(wait_time)

    async def get_instruments(self) -> List[Instrument]:
        """
        Fetch active, unexpired futures for every settlement currency.

        Deribit Endpoint:
            GET /api/v2/public/get_instruments?currency=BTC&kind=future&expired=false
        """
        results = await asyncio.gather(*[
            self._get("/public/get_instruments", {"currency": currency, "kind": "future", "expired": "false"})
            for currency in self.currencies
        ])

        instruments = []
        for rows in results:
            for row in rows:
                if not row.get("is_active"):
                    continue
                instruments.append(Instrument(
                    venue=Venue.DERIBIT,
                    instrument_id=row["instrument_name"],
                    base_currency=row["base_currency"],
                    quote_currency=row["quote_currency"],
                    tick_size=to_decimal(row["tick_size"]),
                    lot_size=to_decimal(row["min_trade_amount"]),
                    kind=row.get("instrument_type") or row.get("kind"),
                ))
        return instruments
