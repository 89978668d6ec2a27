"""
WebSocket Transports

Thin adapters that give RealtimeFeed one connection interface regardless of
the library doing the actual work. Framing, ping/pong and compression stay
inside the library.

Implementations:
    - AiohttpTransport: aiohttp ClientSession.ws_connect (default)
    - WebsocketsTransport: websockets.connect

Both deliver inbound data as Frame objects from TransportConnection.frames().
The iterator ends when the peer closes; a transport failure is delivered as a
single FrameType.ERROR frame right before the iterator ends, so the feed
always sees error-then-close in that order.

Usage:
    transport = create_transport("aiohttp")
    conn = await transport.open("wss://ws.kraken.com", None)
    await conn.send_text('{"event": "ping"}')
    async for frame in conn.frames():
        print(frame.type, frame.data)
    await transport.aclose()
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Optional, Sequence

import aiohttp
import websockets
from websockets.exceptions import ConnectionClosedError
from yarl import URL

from core.config import settings
from core.logging import get_logger


logger = get_logger(__name__)

WS_SCHEMES = ("ws", "wss")


def parse_ws_url(url: str) -> URL:
    """
    Validate a WebSocket URL before any socket is created.

    Raises:
        ValueError: If the URL is empty, not ws/wss, or has no host
    """
    if not url or not isinstance(url, str):
        raise ValueError("WebSocket URL must be a non-empty string")

    parsed = URL(url)
    if parsed.scheme not in WS_SCHEMES:
        raise ValueError(f"The URL's scheme must be either 'ws' or 'wss'. '{parsed.scheme}' is not allowed.")
    if not parsed.host:
        raise ValueError(f"The URL '{url}' has no host")
    return parsed


# ============================================
# Frames
# ============================================

class FrameType(str, Enum):
    TEXT = "text"
    BINARY = "binary"
    ERROR = "error"


@dataclass(frozen=True)
class Frame:
    """One inbound transport event"""

    type: FrameType
    data: Any = None


# ============================================
# Interfaces
# ============================================

class TransportConnection(ABC):
    """One open socket"""

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Transmit one text frame"""

    @abstractmethod
    async def close(self) -> None:
        """Close the socket. Safe to call more than once."""

    @abstractmethod
    def frames(self) -> AsyncIterator[Frame]:
        """Inbound frames until the socket closes"""

    @property
    @abstractmethod
    def closed(self) -> bool:
        ...


class Transport(ABC):
    """Factory for TransportConnection objects"""

    @abstractmethod
    async def open(self, url: str, protocols: Optional[Sequence[str]]) -> TransportConnection:
        """
        Perform the handshake.

        Raises:
            Exception: Any failure to reach the server or complete the handshake
        """

    async def aclose(self) -> None:
        """Release shared resources (sessions, pools)"""


# ============================================
# aiohttp
# ============================================

class AiohttpConnection(TransportConnection):
    """TransportConnection over aiohttp.ClientWebSocketResponse"""

    def __init__(self, ws: aiohttp.ClientWebSocketResponse):
        self._ws = ws

    async def send_text(self, text: str) -> None:
        await self._ws.send_str(text)

    async def close(self) -> None:
        if not self._ws.closed:
            await self._ws.close()

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def frames(self) -> AsyncIterator[Frame]:
        # aiohttp stops iteration by itself on CLOSE / CLOSING / CLOSED
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                yield Frame(FrameType.TEXT, msg.data)

            elif msg.type == aiohttp.WSMsgType.BINARY:
                yield Frame(FrameType.BINARY, msg.data)

            elif msg.type == aiohttp.WSMsgType.ERROR:
                yield Frame(FrameType.ERROR, self._ws.exception() or msg.data)
                return

            else:
                logger.debug(f"Ignoring message type: {msg.type}")


class AiohttpTransport(Transport):
    """
    aiohttp based transport.

    One ClientSession is created lazily and shared by every connection the
    transport opens; aclose() releases it.
    """

    def __init__(
        self,
        heartbeat: Optional[float] = None,
        connect_timeout: Optional[float] = None
    ):
        self.heartbeat = settings.ws_heartbeat if heartbeat is None else heartbeat
        self.connect_timeout = settings.ws_connect_timeout if connect_timeout is None else connect_timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def open(self, url: str, protocols: Optional[Sequence[str]]) -> TransportConnection:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

        ws = await asyncio.wait_for(
            self.session.ws_connect(
                url,
                protocols=tuple(protocols or ()),
                heartbeat=self.heartbeat or None
            ),
            timeout=self.connect_timeout
        )
        return AiohttpConnection(ws)

    async def aclose(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
            logger.debug("aiohttp session closed")
        self.session = None


# ============================================
# websockets
# ============================================

class WebsocketsConnection(TransportConnection):
    """TransportConnection over a websockets client connection"""

    def __init__(self, ws):
        self._ws = ws
        self._closed = False

    async def send_text(self, text: str) -> None:
        await self._ws.send(text)

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._ws.close()

    @property
    def closed(self) -> bool:
        return self._closed

    async def frames(self) -> AsyncIterator[Frame]:
        try:
            # Iteration ends quietly on a normal close (1000 / 1001)
            async for message in self._ws:
                if isinstance(message, str):
                    yield Frame(FrameType.TEXT, message)
                else:
                    yield Frame(FrameType.BINARY, message)
        except ConnectionClosedError as e:
            yield Frame(FrameType.ERROR, e)
        finally:
            self._closed = True


class WebsocketsTransport(Transport):
    """websockets based transport"""

    def __init__(
        self,
        heartbeat: Optional[float] = None,
        connect_timeout: Optional[float] = None
    ):
        self.heartbeat = settings.ws_heartbeat if heartbeat is None else heartbeat
        self.connect_timeout = settings.ws_connect_timeout if connect_timeout is None else connect_timeout

    async def open(self, url: str, protocols: Optional[Sequence[str]]) -> TransportConnection:
        ws = await asyncio.wait_for(
            websockets.connect(
                url,
                subprotocols=list(protocols) if protocols else None,
                ping_interval=self.heartbeat or None
            ),
            timeout=self.connect_timeout
        )
        return WebsocketsConnection(ws)


# ============================================
# Factory
# ============================================

TRANSPORTS = {
    "aiohttp": AiohttpTransport,
    "websockets": WebsocketsTransport,
}


def create_transport(name: Optional[str] = None) -> Transport:
    """
    Create a transport by name (defaults to settings.feed_transport).

    Raises:
        ValueError: If the name is unknown
    """
    name = name or settings.feed_transport
    try:
        return TRANSPORTS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown transport: '{name}'. Must be one of: {', '.join(TRANSPORTS)}"
        ) from None
