"""
Feed Data Schemas

This module defines the Pydantic models and enums shared by the feed client
and its consumers.

Models:
    - ConnectionConfig: Per-feed auth, subscribe and reconnection settings
    - ConnectionState: Lifecycle state of one logical connection
    - ErrorKind: Category of the last error a feed observed
    - FeedSnapshot: Read-only view of a feed handed to consumers
    - TickerData / MarketData: Payload shape rendered by the market display
    - SymbolCard / DisplayView: Rendered output of the market display

The feed itself never validates inbound payloads against a model. MarketData
is validated by the display at render time, because the shape of a payload is
the consumer's concern.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple
from pydantic import BaseModel, Field, field_validator, ConfigDict


# ============================================
# Connection Lifecycle
# ============================================

class ConnectionState(str, Enum):
    """
    Lifecycle of one logical connection.

    IDLE -> CONNECTING -> OPEN -> CLOSED, and CLOSED -> CONNECTING again on
    the reconnect path. ERRORED is entered on a transport error; the close
    that always follows moves it to CLOSED.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    ERRORED = "errored"
    CLOSED = "closed"


class ErrorKind(str, Enum):
    """Category of the error currently exposed by a feed."""

    CONSTRUCTION = "construction"     # socket could not even be created
    DECODE = "decode"                 # inbound frame was not JSON
    TRANSPORT = "transport"           # transport signalled an error
    CLOSED = "closed"                 # connection ended, retry may follow
    EXHAUSTED = "exhausted"           # terminal, no retries left
    NOT_CONNECTED = "not_connected"   # send attempted while not open


# ============================================
# Connection Configuration
# ============================================

class ConnectionConfig(BaseModel):
    """
    Per-feed connection settings.

    Immutable: a new value only takes effect through
    RealtimeFeed.reconfigure().

    Attributes:
        auth_token: Sent as {"type": "auth", "apiKey": token} right after open
        subscribe_payload: Opaque JSON sent verbatim after the auth envelope
        sub_protocols: WebSocket sub-protocols offered during the handshake
        reconnect_enabled: Reconnect automatically after a close
        max_reconnect_attempts: Consecutive retries allowed before exhaustion
        base_reconnect_delay_ms: Delay of the first retry; doubles per attempt

    Example:
        >>> config = ConnectionConfig(
        ...     subscribe_payload={"method": "SUBSCRIBE", "params": ["btcusdt@trade"], "id": 1},
        ...     max_reconnect_attempts=3,
        ... )
    """

    auth_token: Optional[str] = Field(
        default=None,
        description="API key sent in the auth control envelope"
    )

    subscribe_payload: Optional[Any] = Field(
        default=None,
        description="Subscribe message sent verbatim after open"
    )

    sub_protocols: Optional[Tuple[str, ...]] = Field(
        default=None,
        description="WebSocket sub-protocols"
    )

    reconnect_enabled: bool = Field(
        default=True,
        description="Reconnect automatically after a close"
    )

    max_reconnect_attempts: int = Field(
        default=5,
        ge=0,
        description="Maximum consecutive reconnect attempts"
    )

    base_reconnect_delay_ms: int = Field(
        default=5000,
        gt=0,
        description="Base reconnect delay in milliseconds"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("sub_protocols", mode="before")
    @classmethod
    def coerce_sub_protocols(cls, v: Any) -> Any:
        """Accept a single protocol name as well as a sequence"""
        if isinstance(v, str):
            return (v,)
        return v

    @classmethod
    def from_settings(cls, **overrides: Any) -> "ConnectionConfig":
        """
        Build a config from the application settings.

        Keyword overrides win over the settings values.
        """
        from core.config import settings

        values: Dict[str, Any] = {
            "auth_token": settings.feed_auth_token or None,
            "reconnect_enabled": settings.feed_reconnect_enabled,
            "max_reconnect_attempts": settings.feed_max_reconnect_attempts,
            "base_reconnect_delay_ms": settings.feed_base_reconnect_delay_ms,
        }
        values.update(overrides)
        return cls(**values)


# ============================================
# Public API Surface
# ============================================

class FeedSnapshot(BaseModel):
    """
    Read-only view of a feed at one point in time.

    Consumers re-render from snapshots and never touch the socket.
    is_connected is derived from state by the feed, never set on its own.
    """

    url: str
    state: ConnectionState
    is_connected: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    reconnect_count: int = 0

    model_config = ConfigDict(frozen=True)


# ============================================
# Market Display Payload
# ============================================

class TickerData(BaseModel):
    """Latest figures for one symbol"""

    price: float
    volume: float
    change: float = Field(..., description="Percent change")


class MarketData(BaseModel):
    """
    Market data frame consumed by the display.

    Example:
        {
          "timestamp": "2024-01-01T12:00:00Z",
          "data": {"AAPL": {"price": 189.5, "volume": 1200300, "change": -0.42}}
        }
    """

    timestamp: str
    data: Dict[str, TickerData] = Field(default_factory=dict)


# ============================================
# Market Display Output
# ============================================

class SymbolCard(BaseModel):
    """One rendered symbol tile"""

    symbol: str
    price: str
    change: str
    direction: Literal["up", "down"]
    volume: str


class DisplayView(BaseModel):
    """
    Rendered state of the market display.

    When alert is set the view shows nothing else.
    """

    title: str = "Market Data"
    status: Literal["Live", "Connecting..."] = "Connecting..."
    is_connected: bool = False
    alert: Optional[str] = None
    waiting: bool = False
    cards: List[SymbolCard] = Field(default_factory=list)
    last_updated: Optional[str] = None
