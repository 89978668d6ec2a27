"""
Configuration Management Module

This module loads, validates, and provides access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Provides the default reconnection policy for every feed
- Selects the WebSocket transport (aiohttp or websockets)
- Converts comma-separated strings to lists (CORS origins)

Usage:
    from core.config import settings

    print(settings.feed_url)
    print(settings.feed_max_reconnect_attempts)
"""

from typing import List, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        environment: Current environment (development, production)
        debug: Enable debug mode
        log_level: Logging level name
        app_host: Host address for the FastAPI display service
        app_port: Port number for the FastAPI display service
        cors_origins: Comma-separated allowed CORS origins
        feed_url: WebSocket URL the market display subscribes to
        feed_transport: Transport library used for WebSocket connections
        feed_auth_token: Token sent in the auth envelope right after open
        feed_reconnect_enabled: Whether closed feeds reconnect automatically
        feed_max_reconnect_attempts: Consecutive retries before giving up
        feed_base_reconnect_delay_ms: First retry delay, doubled per attempt
        ws_heartbeat: Ping interval handed to the transport (seconds)
        ws_connect_timeout: Handshake timeout handed to the transport (seconds)
    """

    # ============================================
    # Application Configuration
    # ============================================

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

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8080,
        description="FastAPI server port"
    )

    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # ============================================
    # Feed Configuration
    # ============================================

    feed_url: str = Field(
        default="ws://localhost:8000/status",
        description="Market data WebSocket consumed by the display"
    )

    feed_transport: Literal["aiohttp", "websockets"] = Field(
        default="aiohttp",
        description="WebSocket transport implementation"
    )

    feed_auth_token: str = Field(
        default="",
        description="Auth token sent as {type: auth, apiKey: ...} on open (empty = none)"
    )

    feed_reconnect_enabled: bool = Field(
        default=True,
        description="Reconnect automatically after a close"
    )

    feed_max_reconnect_attempts: int = Field(
        default=5,
        ge=0,
        description="Maximum consecutive reconnect attempts"
    )

    feed_base_reconnect_delay_ms: int = Field(
        default=5000,
        gt=0,
        description="Base reconnect delay in milliseconds (doubles per attempt)"
    )

    # ============================================
    # Transport Tuning
    # ============================================

    ws_heartbeat: float = Field(
        default=30.0,
        description="WebSocket ping interval in seconds"
    )

    ws_connect_timeout: float = Field(
        default=10.0,
        description="WebSocket handshake timeout in seconds"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

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

def validate_configuration() -> None:
    """
    Validate critical configuration settings on application startup.

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # logging.py imports config.py, so the logger is imported lazily
    from core.logging import logger

    if not settings.feed_url.lower().startswith(("ws://", "wss://")):
        raise ValueError(
            f"Invalid FEED_URL: '{settings.feed_url}'. "
            f"Must start with ws:// or wss://"
        )

    if not (1 <= settings.app_port <= 65535):
        raise ValueError(f"Invalid port number: {settings.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if settings.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{settings.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Feed: {settings.feed_url} via {settings.feed_transport}")
    logger.info(
        f"Reconnect: {'on' if settings.feed_reconnect_enabled else 'off'} | "
        f"max attempts: {settings.feed_max_reconnect_attempts} | "
        f"base delay: {settings.feed_base_reconnect_delay_ms}ms"
    )
    logger.info(f"Server: {settings.app_host}:{settings.app_port}")
    logger.info(f"Log level: {settings.log_level.upper()}")
