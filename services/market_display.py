"""
Market Data Display

Renders the latest value of a market data feed. The display never touches
the socket: it reads FeedSnapshot objects and turns them into a DisplayView
(used by the REST / WebSocket endpoints) or plain text (used by scripts).

Expected payload (validated here, not by the feed):
    {
      "timestamp": "2024-01-01T12:00:00Z",
      "data": {"AAPL": {"price": 189.5, "volume": 1200300, "change": -0.42}}
    }

Rendering rules:
    - any error       -> alert only
    - connected       -> status "Live", else "Connecting..."
    - connected, no data yet -> "Waiting for data..."
    - one card per symbol, change >= 0 renders as "up"
"""

from typing import Any, Dict, Optional

from dateutil import parser as dateparser
from pydantic import ValidationError

from core.config import settings
from core.feed import RealtimeFeed
from core.logging import get_logger
from core.schemas import ConnectionConfig, DisplayView, FeedSnapshot, MarketData, SymbolCard
from core.transport import Transport
from services.event_bus import EventBus, bus


DISPLAY_TOPIC = "display"


# ============================================
# Formatting
# ============================================

def format_price(price: float) -> str:
    return f"${price:.2f}"


def format_change(change: float) -> str:
    return f"{change:.2f}%"


def format_volume(volume: float) -> str:
    """Thousands separators, at most 3 decimals, no trailing zeros"""
    return f"{volume:,.3f}".rstrip("0").rstrip(".")


def format_timestamp(timestamp: str) -> str:
    """Render an ISO timestamp for humans; unparseable input is shown as-is"""
    try:
        return dateparser.isoparse(timestamp).strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    except (ValueError, OverflowError):
        return timestamp


# ============================================
# Rendering
# ============================================

def render_view(snapshot: FeedSnapshot) -> DisplayView:
    """
    Turn a feed snapshot into a DisplayView.

    Args:
        snapshot: Latest FeedSnapshot of a market data feed

    Returns:
        DisplayView: alert-only view on error, otherwise status and cards

    Example:
        >>> view = render_view(feed.snapshot())
        >>> view.status
        'Live'
    """
    status = "Live" if snapshot.is_connected else "Connecting..."

    if snapshot.error:
        return DisplayView(status=status, is_connected=snapshot.is_connected, alert=snapshot.error)

    if snapshot.data is None:
        return DisplayView(
            status=status,
            is_connected=snapshot.is_connected,
            waiting=snapshot.is_connected
        )

    try:
        market = MarketData.model_validate(snapshot.data)
    except ValidationError as e:
        return DisplayView(
            status=status,
            is_connected=snapshot.is_connected,
            alert=f"Invalid market data: {e.error_count()} validation error(s)"
        )

    cards = [
        SymbolCard(
            symbol=symbol,
            price=format_price(ticker.price),
            change=format_change(ticker.change),
            direction="up" if ticker.change >= 0 else "down",
            volume=format_volume(ticker.volume)
        )
        for symbol, ticker in market.data.items()
    ]

    return DisplayView(
        status=status,
        is_connected=snapshot.is_connected,
        cards=cards,
        last_updated=format_timestamp(market.timestamp)
    )


def render_text(view: DisplayView) -> str:
    """Console rendering of a DisplayView"""
    lines = [f"{view.title} [{view.status}]"]

    if view.alert:
        lines.append(f"! {view.alert}")
        return "\n".join(lines)

    if view.waiting:
        lines.append("Waiting for data...")

    for card in view.cards:
        arrow = "▲" if card.direction == "up" else "▼"
        lines.append(f"{card.symbol:<10} {card.price:>14}  {arrow} {card.change:>8}  Volume: {card.volume}")

    if view.last_updated:
        lines.append(f"Last updated: {view.last_updated}")

    return "\n".join(lines)


# ============================================
# Display Service
# ============================================

class MarketDisplayService:
    """
    Background service owning the market data feed.

    Re-renders on every feed change, keeps the latest view and publishes it
    on the event bus topic 'display'. Use start() / stop().
    """

    def __init__(
        self,
        url: Optional[str] = None,
        config: Optional[ConnectionConfig] = None,
        transport: Optional[Transport] = None,
        event_bus: Optional[EventBus] = None
    ) -> None:
        self._logger = get_logger(__name__)
        self._bus = event_bus or bus
        self.feed: RealtimeFeed[Dict[str, Any]] = RealtimeFeed(
            url or settings.feed_url,
            config or ConnectionConfig.from_settings(),
            transport=transport,
            name="market-display"
        )
        self._view = render_view(self.feed.snapshot())
        self._running = False

    @property
    def view(self) -> DisplayView:
        return self._view

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._logger.info(f"Starting MarketDisplayService on {self.feed.url}...")
        self.feed.add_listener(self._on_snapshot)
        self._bus.publish(DISPLAY_TOPIC, self._view.model_dump(mode="json"))
        self.feed.connect()

    async def stop(self) -> None:
        if not self._running:
            return
        self._logger.info("Stopping MarketDisplayService...")
        self._running = False
        self.feed.remove_listener(self._on_snapshot)
        await self.feed.aclose()

    async def send(self, message: Any) -> None:
        """Forward a message to the feed (rejected while disconnected)"""
        await self.feed.send_message(message)

    def _on_snapshot(self, snapshot: FeedSnapshot) -> None:
        view = render_view(snapshot)
        if view == self._view:
            return
        self._view = view
        self._bus.publish(DISPLAY_TOPIC, view.model_dump(mode="json"))


# Singleton service instance (created on first use)
market_display_service: Optional[MarketDisplayService] = None


def get_market_display_service() -> MarketDisplayService:
    global market_display_service
    if market_display_service is None:
        market_display_service = MarketDisplayService()
    return market_display_service
