"""
Unit Tests for Configuration Module

These tests verify that the configuration system works correctly:
- Default engine tunables match the documented behaviour
- Validation catches invalid configurations
- Property methods work as expected

Run with:
    pytest tests/unit/test_config.py -v
"""

import pytest
from core.config import Settings, settings, validate_configuration


class TestConfigurationLoading:
    """Test that configuration loads with sane defaults"""

    def test_engine_defaults(self):
        """Verify depth, throttle, heartbeat and backoff defaults"""
        config = Settings(_env_file=None)
        assert config.book_depth == 15
        assert config.update_throttle_ms == 100
        assert config.heartbeat_interval == 25.0
        assert config.initial_retry_delay == 1.0
        assert config.max_retry_delay == 10.0
        assert config.max_reconnect_attempts == 5

    def test_venue_endpoints_are_websockets(self):
        """Verify every venue endpoint is a secure WebSocket URL"""
        for url in (settings.okx_ws_url, settings.bybit_ws_url, settings.deribit_ws_url):
            assert url.startswith("wss://")

    def test_rest_endpoints_are_https(self):
        for url in (settings.okx_rest_url, settings.bybit_rest_url, settings.deribit_rest_url):
            assert url.startswith("https://")

    def test_app_port_is_valid_integer(self):
        """Verify app port is a valid integer"""
        assert isinstance(settings.app_port, int)
        assert 1 <= settings.app_port <= 65535

    def test_environment_overrides(self, monkeypatch):
        """Verify settings are read from the environment, case-insensitively"""
        monkeypatch.setenv("BOOK_DEPTH", "20")
        monkeypatch.setenv("update_throttle_ms", "250")
        config = Settings(_env_file=None)
        assert config.book_depth == 20
        assert config.update_throttle_ms == 250


class TestConfigurationProperties:
    """Test property methods and computed values"""

    def test_update_throttle_in_seconds(self):
        config = Settings(_env_file=None, update_throttle_ms=100)
        assert config.update_throttle == pytest.approx(0.1)

    def test_cors_origins_list(self):
        """Verify comma-separated origins are split and stripped"""
        config = Settings(_env_file=None, cors_origins=" http://a.test , http://b.test,, ")
        assert config.cors_origins_list == ["http://a.test", "http://b.test"]


class TestConfigurationValidation:
    """Test validate_configuration() range checks"""

    def test_defaults_are_valid(self):
        validate_configuration(Settings(_env_file=None))

    @pytest.mark.parametrize("overrides, message", [
        ({"book_depth": 0}, "BOOK_DEPTH"),
        ({"update_throttle_ms": -1}, "UPDATE_THROTTLE_MS"),
        ({"heartbeat_interval": 0}, "HEARTBEAT_INTERVAL"),
        ({"initial_retry_delay": 0}, "Retry delays"),
        ({"initial_retry_delay": 20, "max_retry_delay": 10}, "cannot exceed"),
        ({"max_reconnect_attempts": -1}, "MAX_RECONNECT_ATTEMPTS"),
        ({"app_port": 70000}, "Invalid port"),
        ({"log_level": "LOUD"}, "Invalid LOG_LEVEL"),
    ])
    def test_invalid_settings_raise(self, overrides, message):
        config = Settings(_env_file=None, **overrides)
        with pytest.raises(ValueError, match=message):
            validate_configuration(config)
