"""
Venue Connectors Package

This package contains individual venue connector modules.
Each venue (OKX, Bybit, Deribit) has its own subfolder with:
- __init__.py: Venue class implementing VenueInterface (endpoint, subscribe/heartbeat messages)
- normalizer.py: BookNormalizer variant for the venue's order book envelopes
- api_client.py: REST instrument discovery

Adding a venue means adding a subfolder and registering it in core/venue_manager.py.
"""
