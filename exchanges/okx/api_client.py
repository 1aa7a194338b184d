"""
OKX REST API Client

Instrument discovery for the OKX spot market.

API Documentation:
    https://www.okx.com/docs-v5/en/#public-data-rest-api-get-instruments

Usage:
    async with OKXAPIClient() as client:
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


class OKXAPIClient:
    """
    Async HTTP client for the OKX REST API.

    Attributes:
        base_url: OKX API base URL (from settings)
        session: aiohttp ClientSession for HTTP requests

    Notes:
        - Uses context manager for automatic session cleanup
        - Retries failed requests with exponential backoff
    """

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = base_url or settings.okx_rest_url
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
        Make GET request to OKX API with retry logic.

        Returns:
            The "data" field of the OKX envelope

        Raises:
            VenueAPIError: If OKX answers with a non-zero code or HTTP error after all retries
        """
        url = f"{self.base_url}{endpoint}"
        params = params or {}

        max_retries = 3
        for attempt in range(max_retries):
            try:
                log_api_request("okx", endpoint, params)
                started = time.monotonic()
                async with self.session.get(url, params=params) as response:
                    log_api_response("okx", endpoint, response.status, time.monotonic() - started)
                    if response.status != 200:
                        raise VenueAPIError(f"HTTP {response.status}: {await response.text()}")

                    data = await response.json()
                    if data.get("code") != "0":
                        raise VenueAPIError(f"OKX API error: {data.get('msg', 'Unknown error')}")
                    return data.get("data", [])

            except (aiohttp.ClientError, asyncio.TimeoutError, VenueAPIError) as e:
                if attempt == max_retries - 1:
                    self.logger.error(f"OKX API request failed after {max_retries} attempts: {e}")
                    raise

                wait_time = 2 ** attempt
                self.logger.warning(f"OKX API request failed (attempt {attempt + 1}), retrying in {wait_time}s: {e}")
                await asyncio.sleep(wait_time)

    async def get_instruments(self) -> List[Instrument]:
        """
        Fetch live spot instruments.

        OKX Endpoint:
            GET /api/v5/public/instruments?instType=SPOT
        """
        rows = await self._get("/public/instruments", {"instType": "SPOT"})

        return [
            Instrument(
                venue=Venue.OKX,
                instrument_id=row["instId"],
                base_currency=row["baseCcy"],
                quote_currency=row["quoteCcy"],
                tick_size=Decimal(row["tickSz"]),
                lot_size=Decimal(row["lotSz"]),
                kind=row.get("instType", "SPOT").lower(),
            )
            for row in rows
            if row.get("state") == "live"
        ]
