"""
Exchange Feed Presets

Ready-made RealtimeFeed builders for public exchange streams. Each preset only
supplies a URL and a subscribe message; the wire format of the replies is
left to the consumer.

Supported Presets:
    - binance_trade:   wss://stream.binance.com:9443/ws/{symbol}@trade
    - kraken_ticker:   wss://ws.kraken.com (ticker channel)
    - coinbase_ticker: wss://ws-feed.pro.coinbase.com (ticker channel)
    - authenticated:   any URL, auth envelope + 3 retries at 3s base delay

Usage:
    async with create_kraken_ticker_feed(["XBT/USD", "ETH/USD"]) as feed:
        feed.add_listener(lambda snap: print(snap.data))
        await asyncio.sleep(30)
"""

from typing import Any, Callable, Dict, Optional, Sequence

from core.feed import RealtimeFeed
from core.schemas import ConnectionConfig
from core.transport import Transport


BINANCE_STREAM_URL = "wss://stream.binance.com:9443/ws"
KRAKEN_WS_URL = "wss://ws.kraken.com"
COINBASE_WS_URL = "wss://ws-feed.pro.coinbase.com"


def create_binance_trade_feed(
    symbol: str = "btcusdt",
    transport: Optional[Transport] = None
) -> RealtimeFeed[Any]:
    """
    Create a feed for Binance spot trades.

    Args:
        symbol: Trading pair (lowercased, Binance requirement)
        transport: Optional transport override

    Returns:
        RealtimeFeed subscribed to {symbol}@trade

    Example:
        >>> feed = create_binance_trade_feed("ETHUSDT")
        >>> feed.url
        'wss://stream.binance.com:9443/ws/ethusdt@trade'
    """
    symbol = symbol.lower()
    config = ConnectionConfig(
        subscribe_payload={
            "method": "SUBSCRIBE",
            "params": [f"{symbol}@trade"],
            "id": 1,
        }
    )
    return RealtimeFeed(
        f"{BINANCE_STREAM_URL}/{symbol}@trade",
        config,
        transport=transport,
        name=f"binance:{symbol}@trade"
    )


def create_kraken_ticker_feed(
    pairs: Sequence[str] = ("XBT/USD",),
    transport: Optional[Transport] = None
) -> RealtimeFeed[Any]:
    """
    Create a feed for Kraken ticker updates.

    Args:
        pairs: Kraken pair names (e.g., ["XBT/USD", "ETH/USD"])
        transport: Optional transport override
    """
    config = ConnectionConfig(
        subscribe_payload={
            "event": "subscribe",
            "pair": list(pairs),
            "subscription": {"name": "ticker"},
        }
    )
    return RealtimeFeed(KRAKEN_WS_URL, config, transport=transport, name="kraken:ticker")


def create_coinbase_ticker_feed(
    products: Sequence[str] = ("BTC-USD",),
    transport: Optional[Transport] = None
) -> RealtimeFeed[Any]:
    """
    Create a feed for Coinbase ticker updates.

    Args:
        products: Coinbase product ids (e.g., ["BTC-USD"])
        transport: Optional transport override
    """
    config = ConnectionConfig(
        subscribe_payload={
            "type": "subscribe",
            "product_ids": list(products),
            "channels": ["ticker"],
        }
    )
    return RealtimeFeed(COINBASE_WS_URL, config, transport=transport, name="coinbase:ticker")


def create_authenticated_feed(
    url: str,
    api_key: str,
    transport: Optional[Transport] = None
) -> RealtimeFeed[Any]:
    """
    Create a feed that authenticates with an API key right after open.

    Sends {"type": "auth", "apiKey": api_key} on every (re)connect and
    retries at most 3 times starting from a 3 second delay.
    """
    config = ConnectionConfig(
        auth_token=api_key,
        reconnect_enabled=True,
        max_reconnect_attempts=3,
        base_reconnect_delay_ms=3000
    )
    return RealtimeFeed(url, config, transport=transport)


# ============================================
# Preset Registry
# ============================================

PRESETS: Dict[str, Callable[..., RealtimeFeed[Any]]] = {
    "binance_trade": create_binance_trade_feed,
    "kraken_ticker": create_kraken_ticker_feed,
    "coinbase_ticker": create_coinbase_ticker_feed,
    "authenticated": create_authenticated_feed,
}


def create_preset_feed(name: str, **kwargs: Any) -> RealtimeFeed[Any]:
    """
    Build a preset feed by name.

    Raises:
        ValueError: If the preset is unknown
    """
    try:
        builder = PRESETS[name]
    except KeyError:
        raise ValueError(
            f"Unknown preset: '{name}'. Must be one of: {', '.join(PRESETS)}"
        ) from None
    return builder(**kwargs)
