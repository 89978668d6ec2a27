"""
Unified Logging Configuration

This module sets up a centralized logging system for the feed client and
every consumer built on top of it (display service, presets, scripts).
All modules should use the loggers from this module instead of print().

Usage:
    from core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Connected to feed")

Log Levels (from most to least verbose):
    DEBUG    - Raw frames, listener dispatch, timer bookkeeping
    INFO     - Connects, opens, reconfiguration, teardown
    WARNING  - Closes, scheduled reconnects, decode failures
    ERROR    - Transport errors, construction failures, exhaustion

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional


ROOT_LOGGER_NAME = "rtfeed"


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
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured "rtfeed" logger

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Feed started")
        2024-01-01 12:00:00 [INFO] rtfeed: Feed started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger of "rtfeed" for a module or component.

    Example:
        # In core/feed.py:
        logger = get_logger(__name__)  # "rtfeed.core.feed"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """Change the log level at runtime."""
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

_EVENT_LEVELS = {
    "error": logging.ERROR,
    "exhausted": logging.ERROR,
    "construction_failed": logging.ERROR,
    "closed": logging.WARNING,
    "reconnect_scheduled": logging.WARNING,
    "decode_failed": logging.WARNING,
    "send_rejected": logging.WARNING,
}


def log_websocket_event(
    feed: str,
    event: str,
    details: Optional[str] = None,
    target: Optional[logging.Logger] = None
) -> None:
    """
    Log a WebSocket lifecycle event with consistent formatting.

    Args:
        feed: Feed name (e.g., "binance-trade", or the URL)
        event: Event type (e.g., "connecting", "open", "closed", "error")
        details: Additional details (optional)
        target: Logger to emit on (defaults to the "rtfeed" logger)

    Example:
        >>> log_websocket_event("kraken-ticker", "open")
        [INFO] WebSocket: kraken-ticker open

        >>> log_websocket_event("kraken-ticker", "error", "Connection reset")
        [ERROR] WebSocket: kraken-ticker error | Connection reset
    """
    details_str = f" | {details}" if details else ""
    level = _EVENT_LEVELS.get(event, logging.INFO)
    (target or logger).log(level, f"WebSocket: {feed} {event}{details_str}")


logger.debug("Logging system initialized")
