"""
Test Suite

Structure:
- tests/unit/: Tests for individual components (ladder merge, throttle, retry,
  normalizers, supervisor, engine, services, API)
- tests/fakes.py: Fake WebSocket transport and connector shared by the async tests

No test contacts a venue; every transport and REST call is replaced.
Uses pytest with pytest-asyncio for testing async functionality.
"""
