"""
Bybit REST API Client

Instrument discovery for the Bybit spot market.

API Documentation:
    https://bybit-exchange.github.io/docs/v5/market/instrument

Usage:
    async with BybitAPIClient() as client:
        instruments = await client.get_instruments()
"""

import aiohttp
import asyncio
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.config import settings
from core.logging import get_logger, log_api_request, log_api_response
from core.schemas import Instrument, Venue
from core.venue_interface import VenueAPIError


class BybitAPIClient:
    """
    Async HTTP client for the Bybit REST API.

    Attributes:
        base_url: Bybit API base URL (from settings)
        session: aiohttp ClientSession for HTTP requests

    Notes:
        - Uses context manager for automatic session cleanup
        - Retries failed requests with exponential backoff
        - Uses GET requests with query parameters (Bybit API standard)
    """

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = base_url or settings.bybit_rest_url
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=settings.request_timeout)
        )
        self.logger.debug("BybitAPIClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.logger.debug("BybitAPIClient session closed")

    async def _get(self, endpoint: str, params: Dict[str, Any] = None) -> Any:
        """
        Make GET request to Bybit API with retry logic.

        Args:
            endpoint: API endpoint (e.g., "/market/instruments-info")
            params: Query parameters

        Returns:
            The "result" field of the Bybit envelope

        Raises:
            VenueAPIError: If all retry attempts fail
        """
        url = f"{self.base_url}{endpoint}"
        params = params or {}

        max_retries = 3
        for attempt in range(max_retries):
            try:
                log_api_request("bybit", endpoint, params)
                started = time.monotonic()
                async with self.session.get(url, params=params) as response:
                    log_api_response("bybit", endpoint, response.status, time.monotonic() - started)
                    if response.status != 200:
                        raise VenueAPIError(f"HTTP {response.status}: {await response.text()}")

                    data = await response.json()
                    if data.get("retCode") != 0:
                        raise VenueAPIError(f"Bybit API error: {data.get('retMsg', 'Unknown error')}")
                    return data.get("result", {})

            except (aiohttp.ClientError, asyncio.TimeoutError, VenueAPIError) as e:
                if attempt == max_retries - 1:
                    self.logger.error(f"Bybit API request failed after {max_retries} attempts: {e}")
                    raise

                wait_time = 2 ** attempt
                self.logger.warning(f"Bybit API request failed (attempt {attempt + 1}), retrying in {wait_time}s: {e}")
                await asyncio.sleep(wait_time)

    async def get_instruments(self) -> List[Instrument]:
        """
        Fetch spot instruments currently trading.

        Bybit Endpoint:
            GET /v5/market/instruments-info?category=spot
        """
        result = await self._get("/market/instruments-info", {"category": "spot"})

        return [
            Instrument(
                venue=Venue.BYBIT,
                instrument_id=row["symbol"],
                base_currency=row["baseCoin"],
                quote_currency=row["quoteCoin"],
                tick_size=Decimal(row["priceFilter"]["tickSize"]),
                lot_size=Decimal(row["lotSizeFilter"]["minOrderQty"]),
                kind="spot",
            )
            for row in result.get("list", [])
            if row.get("status") == "Trading"
        ]
