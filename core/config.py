"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Provides the order book engine tunables (depth, throttle, heartbeat, backoff)
- Provides venue endpoints (WebSocket + REST) that can be overridden per environment
- Converts comma-separated strings to lists (CORS origins)

Usage:
    from core.config import settings

    print(settings.book_depth)           # 15
    print(settings.update_throttle)      # 0.1 (seconds)
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        book_depth: Number of price levels kept per side (D)
        update_throttle_ms: Minimum time between two published snapshots (T)
        heartbeat_interval: Seconds between venue keepalive messages
        initial_retry_delay: First reconnect delay in seconds
        max_retry_delay: Cap applied to the reconnect delay in seconds
        max_reconnect_attempts: Consecutive abnormal closures tolerated before giving up
        connect_timeout: Seconds allowed for the WebSocket handshake
        okx_ws_url / bybit_ws_url / deribit_ws_url: Public market data endpoints
        okx_rest_url / bybit_rest_url / deribit_rest_url: Instrument discovery endpoints
        request_timeout: Timeout for HTTP requests in seconds
        app_host / app_port: FastAPI server address
        environment: Current environment (development, production)
        debug: Enable debug mode
        log_level: Logging level
        cors_origins: Comma-separated list of allowed CORS origins
    """

    # ============================================
    # Order Book Engine
    # ============================================

    book_depth: int = Field(
        default=15,
        description="Number of price levels maintained per side"
    )

    update_throttle_ms: int = Field(
        default=100,
        description="Minimum milliseconds between two published snapshots"
    )

    heartbeat_interval: float = Field(
        default=25.0,
        description="Seconds between keepalive messages while connected"
    )

    initial_retry_delay: float = Field(
        default=1.0,
        description="First reconnect delay (seconds)"
    )

    max_retry_delay: float = Field(
        default=10.0,
        description="Maximum reconnect delay (seconds)"
    )

    max_reconnect_attempts: int = Field(
        default=5,
        description="Consecutive abnormal closures tolerated before status becomes 'error'"
    )

    connect_timeout: float = Field(
        default=10.0,
        description="WebSocket handshake timeout (seconds)"
    )

    # ============================================
    # Venue Endpoints
    # ============================================

    okx_ws_url: str = Field(
        default="wss://ws.okx.com/ws/v5/public",
        description="OKX public WebSocket endpoint"
    )

    bybit_ws_url: str = Field(
        default="wss://stream.bybit.com/v5/public/spot",
        description="Bybit spot public WebSocket endpoint"
    )

    deribit_ws_url: str = Field(
        default="wss://www.deribit.com/ws/api/v2",
        description="Deribit JSON-RPC WebSocket endpoint"
    )

    okx_rest_url: str = Field(
        default="https://www.okx.com/api/v5",
        description="OKX REST API base URL"
    )

    bybit_rest_url: str = Field(
        default="https://api.bybit.com/v5",
        description="Bybit REST API base URL"
    )

    deribit_rest_url: str = Field(
        default="https://www.deribit.com/api/v2",
        description="Deribit REST API base URL"
    )

    request_timeout: int = Field(
        default=30,
        description="HTTP request timeout in seconds"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    # ============================================
    # Computed Properties
    # ============================================

    @property
    def update_throttle(self) -> float:
        """Throttle window in seconds (the event loop works in seconds)."""
        return self.update_throttle_ms / 1000.0

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Convert comma-separated CORS origins string to a list.

        Example:
            >>> settings.cors_origins_list
            ['http://localhost:3000', 'http://localhost:5173']
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings instance to check (defaults to the global settings)

    Raises:
        ValueError: If a setting is out of range
    """
    # Import logger here to avoid circular import
    from core.logging import logger

    config = config or settings

    if config.book_depth < 1:
        raise ValueError(f"BOOK_DEPTH must be at least 1, got {config.book_depth}")

    if config.update_throttle_ms < 0:
        raise ValueError(f"UPDATE_THROTTLE_MS cannot be negative, got {config.update_throttle_ms}")

    if config.heartbeat_interval <= 0:
        raise ValueError(f"HEARTBEAT_INTERVAL must be positive, got {config.heartbeat_interval}")

    if config.initial_retry_delay <= 0 or config.max_retry_delay <= 0:
        raise ValueError("Retry delays must be positive")

    if config.initial_retry_delay > config.max_retry_delay:
        raise ValueError(
            f"INITIAL_RETRY_DELAY ({config.initial_retry_delay}) cannot exceed "
            f"MAX_RETRY_DELAY ({config.max_retry_delay})"
        )

    if config.max_reconnect_attempts < 0:
        raise ValueError(
            f"MAX_RECONNECT_ATTEMPTS cannot be negative, got {config.max_reconnect_attempts}"
        )

    if not (1 <= config.app_port <= 65535):
        raise ValueError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Book depth: {config.book_depth} | Throttle: {config.update_throttle_ms}ms")
    logger.info(
        f"Reconnect: {config.initial_retry_delay}s -> {config.max_retry_delay}s, "
        f"max {config.max_reconnect_attempts} attempts"
    )
    logger.info(f"Server: {config.app_host}:{config.app_port}")
    logger.info(f"Log level: {config.log_level.upper()}")
