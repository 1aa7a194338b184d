"""
Venue Interface — Abstract Contract for All Venues

This module defines the abstract base class that every venue connector implements.
The engine only talks to venues through this contract, so adding a venue never
touches the ladder, scheduler or supervisor.

What a venue provides:
    - ws_url: Public WebSocket endpoint
    - build_subscribe_message(instrument_id): Wire-format order book subscription
    - build_heartbeat_message(): Wire-format keepalive (or None if the venue needs none)
    - create_normalizer(): The BookNormalizer variant for this venue's envelopes
    - fetch_instruments(): REST discovery of tradable instruments

Example:
    class OKXVenue(VenueInterface):
        venue = Venue.OKX

        def build_subscribe_message(self, instrument_id):
            return json.dumps({"op": "subscribe", "args": [{"channel": "books", "instId": instrument_id}]})
        ...
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from core.normalizer import BookNormalizer
from core.schemas import Instrument, Venue


class VenueInterface(ABC):
    """
    Abstract Base Class for Venue Connectors

    Class Attributes:
        venue: Venue identifier

    Abstract Methods (MUST be implemented by all venues):
        - ws_url
        - build_subscribe_message
        - build_heartbeat_message
        - create_normalizer
        - fetch_instruments
    """

    venue: Venue

    @property
    def name(self) -> str:
        return self.venue.value

    # ============================================
    # Streaming Contract
    # ============================================

    @property
    @abstractmethod
    def ws_url(self) -> str:
        """Public WebSocket endpoint (read from settings so it can be overridden)."""
        raise NotImplementedError

    @abstractmethod
    def build_subscribe_message(self, instrument_id: str) -> str:
        """
        Build the order book subscription for one instrument.

        Args:
            instrument_id: Venue-native instrument identifier (e.g., "BTC-USDT")

        Returns:
            str: Message ready to be sent on the WebSocket
        """
        raise NotImplementedError

    @abstractmethod
    def build_heartbeat_message(self) -> Optional[str]:
        """
        Build the application-level keepalive.

        Returns:
            Message to send every heartbeat interval, or None to send nothing
        """
        raise NotImplementedError

    @abstractmethod
    def create_normalizer(self) -> BookNormalizer:
        """Return a normalizer for this venue's order book envelopes."""
        raise NotImplementedError

    # ============================================
    # Discovery
    # ============================================

    @abstractmethod
    async def fetch_instruments(self) -> List[Instrument]:
        """
        Fetch tradable instruments over REST.

        Returns:
            List[Instrument]: Live instruments, empty list on any failure
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} venue={self.name}>"


class VenueAPIError(Exception):
    """A venue REST endpoint answered with an error payload or a non-200 status."""
