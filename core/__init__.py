"""
Core Package

Contains the venue-agnostic order book engine including:
- VenueInterface / VenueManager: Contract and registry for venue connectors
- BookNormalizer: Contract for turning venue frames into BookDelta objects
- LadderMerger: Fixed-depth, sorted bid/ask ladders
- UpdateScheduler: Throttled snapshot publication
- ConnectionSupervisor / RetrySchedule: Transport lifecycle, heartbeat and backoff reconnects
- OrderBookEngine: One venue + instrument, wiring all of the above together
- Schemas: Pydantic models for normalized data (PriceLevel, BookSnapshot, BookUpdate, ...)

Nothing in this layer knows which venue produced a delta.
"""
