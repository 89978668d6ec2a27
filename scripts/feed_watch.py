#!/usr/bin/env python3
"""
Feed watcher: connect a RealtimeFeed and print every snapshot change.

Usage examples:
  python scripts/feed_watch.py --preset kraken_ticker
  python scripts/feed_watch.py --preset binance_trade --symbol ethusdt --duration 60
  python scripts/feed_watch.py --url ws://localhost:8000/status --display
  python scripts/feed_watch.py --url wss://example.com/ws --api-key KEY \
      --subscribe '{"op": "subscribe", "args": ["ticker"]}' --max-attempts 3 --delay-ms 1000
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Optional

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.feed import RealtimeFeed  # noqa: E402
from core.schemas import ConnectionConfig, FeedSnapshot  # noqa: E402
from exchanges.presets import create_preset_feed  # noqa: E402
from services.market_display import render_text, render_view  # noqa: E402


def build_feed(args: argparse.Namespace) -> RealtimeFeed:
    if args.preset:
        kwargs = {}
        if args.preset == "binance_trade" and args.symbol:
            kwargs["symbol"] = args.symbol
        if args.preset == "authenticated":
            if not (args.url and args.api_key):
                raise SystemExit("--preset authenticated needs --url and --api-key")
            kwargs.update(url=args.url, api_key=args.api_key)
        return create_preset_feed(args.preset, **kwargs)

    if not args.url:
        raise SystemExit("Either --url or --preset is required")

    config = ConnectionConfig(
        auth_token=args.api_key,
        subscribe_payload=json.loads(args.subscribe) if args.subscribe else None,
        sub_protocols=tuple(args.protocol) if args.protocol else None,
        reconnect_enabled=not args.no_reconnect,
        max_reconnect_attempts=args.max_attempts,
        base_reconnect_delay_ms=args.delay_ms,
    )
    return RealtimeFeed(args.url, config)


def print_snapshot(snapshot: FeedSnapshot, display: bool) -> None:
    if display:
        print(render_text(render_view(snapshot)))
        print()
        return

    status = "LIVE" if snapshot.is_connected else snapshot.state.value.upper()
    line = f"[{status}] attempts={snapshot.reconnect_count}"
    if snapshot.error:
        line += f" error={snapshot.error!r}"
    if snapshot.data is not None:
        line += f" data={json.dumps(snapshot.data)[:200]}"
    print(line)


async def main(duration: Optional[int], feed: RealtimeFeed, display: bool) -> None:
    feed.add_listener(lambda snapshot: print_snapshot(snapshot, display))

    async with feed:
        if duration:
            await asyncio.sleep(duration)
            print(f"[{feed.name}] Duration reached; stopping.")
        else:
            await asyncio.Event().wait()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Watch a reconnecting WebSocket feed")
    parser.add_argument("--url", help="WebSocket URL (ws:// or wss://)")
    parser.add_argument("--preset", choices=["binance_trade", "kraken_ticker", "coinbase_ticker", "authenticated"])
    parser.add_argument("--symbol", help="Symbol for the binance_trade preset (e.g., btcusdt)")
    parser.add_argument("--api-key", help="Send an auth envelope with this key on open")
    parser.add_argument("--subscribe", help="JSON subscribe message sent after open")
    parser.add_argument("--protocol", action="append", help="WebSocket sub-protocol (repeatable)")
    parser.add_argument("--max-attempts", type=int, default=5, help="Max reconnect attempts (default: 5)")
    parser.add_argument("--delay-ms", type=int, default=5000, help="Base reconnect delay in ms (default: 5000)")
    parser.add_argument("--no-reconnect", action="store_true", help="Disable automatic reconnection")
    parser.add_argument("--display", action="store_true", help="Render payloads as market data cards")
    parser.add_argument("--duration", type=int, default=0, help="Seconds to run (0 = run indefinitely)")
    args = parser.parse_args()

    try:
        asyncio.run(main(args.duration or None, build_feed(args), args.display))
    except KeyboardInterrupt:
        print("\n[Info] Interrupted. Bye.")
        sys.exit(0)
