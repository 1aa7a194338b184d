"""
Venue Manager — Central Registry for Venue Connectors

Registry/Factory for the venue connectors. Subscriptions and API routes ask for a
venue by name and get back a VenueInterface; nothing else imports a concrete venue.

Example Usage:
    manager = VenueManager()
    okx = manager.get_venue("okx")
    normalizer = okx.create_normalizer()
"""

from typing import Dict, List

from core.logging import logger
from core.normalizer import BookNormalizer
from core.schemas import Venue
from core.venue_interface import VenueInterface


class VenueManager:
    """
    Central Manager for Venue Connectors

    Attributes:
        venues: Dictionary mapping Venue to connector instances
    """

    def __init__(self):
        # Import here to avoid circular imports (venue packages import from core)
        from exchanges.okx import OKXVenue
        from exchanges.bybit import BybitVenue
        from exchanges.deribit import DeribitVenue

        self.venues: Dict[Venue, VenueInterface] = {
            Venue.OKX: OKXVenue(),
            Venue.BYBIT: BybitVenue(),
            Venue.DERIBIT: DeribitVenue(),
        }

        logger.info(f"VenueManager initialized with {len(self.venues)} venue(s): {', '.join(self.list_venues())}")

    def get_venue(self, name) -> VenueInterface:
        """
        Get a venue connector by name (case-insensitive) or Venue member.

        Raises:
            ValueError: If the venue is not supported

        Example:
            >>> manager.get_venue("bybit").ws_url
            'wss://stream.bybit.com/v5/public/spot'
        """
        try:
            venue = Venue.parse(name)
        except ValueError as e:
            logger.error(str(e))
            raise

        return self.venues[venue]

    def has_venue(self, name) -> bool:
        try:
            Venue.parse(name)
        except ValueError:
            return False
        return True

    def list_venues(self) -> List[str]:
        return [venue.value for venue in self.venues]


# Shared registry; connectors are stateless so one instance serves every subscription
venue_manager = VenueManager()


def get_normalizer(venue) -> BookNormalizer:
    """
    Select the normalizer variant for a venue, once per subscription.

    Example:
        >>> get_normalizer("deribit")
        <exchanges.deribit.normalizer.DeribitNormalizer object at ...>
    """
    return venue_manager.get_venue(venue).create_normalizer()
