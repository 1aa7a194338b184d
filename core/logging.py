"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire application.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Connected to OKX")

Log Levels used by the engine:
    DEBUG    - Dropped frames, ignored message types, scheduler decisions
    INFO     - Connection state transitions, subscriptions
    WARNING  - Heartbeat send failures, abnormal closures
    ERROR    - Exhausted reconnects, transport construction failures

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional


ROOT_LOGGER_NAME = "depthbook"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] depthbook: Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

from core.config import settings  # noqa: E402

logger = setup_logging(log_level=settings.log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance named "depthbook.<name>"

    Example:
        # In core/supervisor.py:
        logger = get_logger(__name__)  # "depthbook.core.supervisor"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """
    Change the log level at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(venue: str, endpoint: str, params: dict = None) -> None:
    """
    Log an API request with consistent formatting.

    Example:
        >>> log_api_request("okx", "/public/instruments", {"instType": "SPOT"})
        [DEBUG] API Request: okx /public/instruments | Params: {'instType': 'SPOT'}
    """
    if params:
        logger.debug(f"API Request: {venue} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {venue} {endpoint}")


def log_api_response(venue: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an API response with status and timing information.

    Example:
        >>> log_api_response("okx", "/public/instruments", 200, 0.342)
        [DEBUG] API Response: okx /public/instruments | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {venue} {endpoint} | Status: {status}{time_str}")


def log_websocket_event(venue: str, event: str, instrument: str = None, details: str = None) -> None:
    """
    Log a WebSocket event with consistent formatting.

    Args:
        venue: Venue name
        event: Event type (e.g., "connected", "disconnected", "reconnecting", "error")
        instrument: Instrument identifier (optional)
        details: Additional details (optional)

    Example:
        >>> log_websocket_event("OKX", "connected", "BTC-USDT")
        [INFO] WebSocket: OKX connected | Instrument: BTC-USDT

        >>> log_websocket_event("Bybit", "error", details="Max reconnects reached")
        [ERROR] WebSocket: Bybit error | Max reconnects reached
    """
    instrument_str = f" | Instrument: {instrument}" if instrument else ""
    details_str = f" | {details}" if details else ""

    if event == "error":
        level = logging.ERROR
    elif event in ("reconnecting", "closed"):
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(level, f"WebSocket: {venue} {event}{instrument_str}{details_str}")


logger.debug("Logging system initialized")
