"""
Reconnecting Real-Time Feed

RealtimeFeed turns one long-lived WebSocket into a stable data feed:

- connects through a Transport (aiohttp or websockets)
- sends the auth / subscribe control envelopes right after open
- decodes every inbound frame and keeps only the latest value
- reconnects with exponential backoff after a close
- exposes a read-only snapshot (data, is_connected, error) plus send_message

State machine:
    IDLE -> CONNECTING -> OPEN -> CLOSED -> (timer) -> CONNECTING -> ...
    OPEN/CONNECTING -> ERRORED -> CLOSED      (transport error)

Each connection attempt runs as a single asyncio task: open, then messages,
then close. The reconnect timer is only armed once the close of the current
attempt has been processed, so two sockets never overlap. teardown() cancels
that timer synchronously.

Usage:
    async with RealtimeFeed("wss://ws.kraken.com", config) as feed:
        feed.add_listener(lambda snap: print(snap.data))
        await asyncio.sleep(60)
"""

import asyncio
import json
from contextlib import aclosing
from typing import Any, Callable, Generic, List, Optional, TypeVar

from core.logging import get_logger, log_websocket_event
from core.pipeline import decode_frame
from core.reconnect import decide_from_config
from core.schemas import ConnectionConfig, ConnectionState, ErrorKind, FeedSnapshot
from core.transport import (
    FrameType,
    Transport,
    TransportConnection,
    create_transport,
    parse_ws_url,
)


T = TypeVar("T")

Listener = Callable[[FeedSnapshot], None]

TRANSPORT_ERROR_MESSAGE = "WebSocket error occurred"
CLOSED_MESSAGE = "WebSocket connection closed"
NOT_CONNECTED_MESSAGE = "WebSocket is not connected"


class RealtimeFeed(Generic[T]):
    """
    Reconnecting WebSocket feed with a typed latest value.

    Attributes:
        url: Target WebSocket URL
        config: ConnectionConfig used by the next attempt
        name: Label used in log lines (defaults to the URL)
        logger: Logger instance

    Example:
        >>> feed = RealtimeFeed[dict]("wss://ws.kraken.com", ConnectionConfig(
        ...     subscribe_payload={"event": "subscribe", "pair": ["XBT/USD"],
        ...                        "subscription": {"name": "ticker"}}
        ... ))
        >>> feed.connect()           # inside a running event loop
        >>> feed.snapshot().is_connected
        False
        >>> await feed.aclose()

    Notes:
        - Errors never raise into the caller; they show up in .error
        - Only the most recent decoded payload is kept in .data
        - One instance per logical feed; use reconfigure() to change it
    """

    def __init__(
        self,
        url: str,
        config: Optional[ConnectionConfig] = None,
        transport: Optional[Transport] = None,
        name: Optional[str] = None
    ):
        """
        Initialize the feed. Nothing connects until connect() is called.

        Args:
            url: WebSocket URL (ws:// or wss://)
            config: Connection settings (defaults to ConnectionConfig())
            transport: Transport to open sockets with (default from settings)
            name: Label for log lines
        """
        self.url = url
        self.config = config or ConnectionConfig()
        self.name = name or url

        self._transport = transport
        self._owns_transport = transport is None

        # Connection state
        self._state = ConnectionState.IDLE
        self._data: Optional[T] = None
        self._error: Optional[str] = None
        self._error_kind: Optional[ErrorKind] = None
        self._reconnect_count = 0

        self._connection: Optional[TransportConnection] = None
        self._attempt_task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._send_lock = asyncio.Lock()
        self._disposed = False
        self._restarting = False

        self._listeners: List[Listener] = []

        self.logger = get_logger(__name__)

    # ============================================
    # Context Manager
    # ============================================

    async def __aenter__(self) -> "RealtimeFeed[T]":
        self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    # ============================================
    # Public State
    # ============================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def data(self) -> Optional[T]:
        return self._data

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self._error_kind

    @property
    def reconnect_count(self) -> int:
        return self._reconnect_count

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def snapshot(self) -> FeedSnapshot:
        """Return an immutable view of the current state"""
        return FeedSnapshot(
            url=self.url,
            state=self._state,
            is_connected=self.is_connected,
            data=self._data,
            error=self._error,
            error_kind=self._error_kind,
            reconnect_count=self._reconnect_count
        )

    def add_listener(self, callback: Listener) -> None:
        """Call callback(snapshot) after every state, data or error change"""
        self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ============================================
    # Lifecycle
    # ============================================

    def connect(self) -> None:
        """
        Start one connection attempt.

        Returns immediately; open / message / close arrive asynchronously.
        Construction failures (bad URL, transport factory errors) are
        reported through .error and never retried. When that happens on a
        scheduled reconnect the feed stays CLOSED with the CONSTRUCTION error
        and no exhaustion is reported.

        Notes:
            - Must be called from a running event loop
            - No-op while an attempt is in flight or after teardown()
        """
        if self._disposed:
            self.logger.debug(f"connect() ignored for {self.name}: feed disposed")
            return

        if self._attempt_task is not None and not self._attempt_task.done():
            self.logger.warning(f"connect() ignored for {self.name}: attempt already in flight")
            return

        self._cancel_reconnect_timer()

        try:
            parse_ws_url(self.url)
            loop = asyncio.get_running_loop()
            if self._transport is None:
                self._transport = create_transport()
        except Exception as e:
            self._set_error(ErrorKind.CONSTRUCTION, f"Failed to create WebSocket connection: {e}")
            log_websocket_event(self.name, "construction_failed", str(e), self.logger)
            self._notify()
            return

        self._state = ConnectionState.CONNECTING
        log_websocket_event(self.name, "connecting", self.url, self.logger)
        self._notify()

        self._attempt_task = loop.create_task(
            self._run_attempt(self.config),
            name=f"feed:{self.name}"
        )

    def teardown(self) -> None:
        """
        Dispose of the feed.

        Cancels the pending reconnect timer synchronously, cancels the running
        attempt (its socket is closed as the task unwinds) and blocks every
        future reconnect. Safe to call repeatedly and before connect().
        """
        first_call = not self._disposed
        self._disposed = True

        self._cancel_reconnect_timer()

        if self._attempt_task is not None and not self._attempt_task.done():
            self._attempt_task.cancel()

        if first_call:
            log_websocket_event(self.name, "teardown", target=self.logger)

    async def aclose(self) -> None:
        """teardown() and wait for the socket and transport to be released"""
        self.teardown()

        if self._attempt_task is not None:
            await asyncio.gather(self._attempt_task, return_exceptions=True)

        if self._owns_transport and self._transport is not None:
            await self._transport.aclose()

    async def reconfigure(
        self,
        url: Optional[str] = None,
        config: Optional[ConnectionConfig] = None
    ) -> None:
        """
        Switch this feed to a new URL and/or config.

        The current attempt is closed and its close fully processed before
        the next attempt starts. No reconnect timer survives the switch and
        the reconnect counter starts again from 0.
        """
        if self._disposed:
            self.logger.warning(f"reconfigure() ignored for {self.name}: feed disposed")
            return

        self._cancel_reconnect_timer()

        task = self._attempt_task
        if task is not None and not task.done():
            self._restarting = True
            try:
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            finally:
                self._restarting = False

        if url is not None:
            self.url = url
        if config is not None:
            self.config = config
        self._reconnect_count = 0

        log_websocket_event(self.name, "reconfigured", self.url, self.logger)
        self.connect()

    # ============================================
    # Sending
    # ============================================

    async def send_message(self, message: Any) -> None:
        """
        JSON-encode message and transmit it if the feed is open.

        When not open nothing is transmitted and .error reports
        "WebSocket is not connected".

        Raises:
            TypeError: If the feed is open and message is not JSON serializable
        """
        async with self._send_lock:
            connection = self._connection
            if self._state != ConnectionState.OPEN or connection is None:
                self._set_error(ErrorKind.NOT_CONNECTED, NOT_CONNECTED_MESSAGE)
                log_websocket_event(self.name, "send_rejected", self._state.value, self.logger)
                self._notify()
                return

            payload = json.dumps(message)

            try:
                await connection.send_text(payload)
            except Exception as e:
                self._set_error(ErrorKind.TRANSPORT, TRANSPORT_ERROR_MESSAGE)
                log_websocket_event(self.name, "error", f"send failed: {e}", self.logger)
                self._notify()
                return

        self.logger.debug(f"Sent to {self.name}: {payload[:100]}")

    # ============================================
    # Attempt Task
    # ============================================

    async def _run_attempt(self, config: ConnectionConfig) -> None:
        """
        One connection attempt: open, read frames, close.

        The close handler always runs last, whatever ended the attempt.
        """
        connection: Optional[TransportConnection] = None
        cancelled = False

        try:
            try:
                connection = await self._transport.open(self.url, config.sub_protocols)
            except Exception as e:
                # Unreachable host, refused handshake, timeout: error then close
                self._on_error(e)
                return

            self._connection = connection
            await self._on_open(connection, config)

            async with aclosing(connection.frames()) as frames:
                async for frame in frames:
                    if frame.type == FrameType.ERROR:
                        self._on_error(frame.data)
                        break
                    self._on_message(frame.data)

        except asyncio.CancelledError:
            cancelled = True
            raise

        except Exception as e:
            self._on_error(e)

        finally:
            self._connection = None
            if connection is not None:
                try:
                    await connection.close()
                except Exception as e:
                    self.logger.debug(f"Error closing socket for {self.name}: {e}")
            self._on_close(config, allow_retry=not cancelled)

    async def _on_open(self, connection: TransportConnection, config: ConnectionConfig) -> None:
        self._state = ConnectionState.OPEN
        self._clear_error()
        self._reconnect_count = 0
        log_websocket_event(self.name, "open", target=self.logger)
        self._notify()

        # Control envelopes go out before any send_message queued meanwhile
        async with self._send_lock:
            if config.auth_token:
                await connection.send_text(json.dumps({"type": "auth", "apiKey": config.auth_token}))
                self.logger.debug(f"Auth envelope sent to {self.name}")

            if config.subscribe_payload is not None:
                await connection.send_text(json.dumps(config.subscribe_payload))
                self.logger.info(f"Subscribe message sent to {self.name}")

    def _on_message(self, raw: Any) -> None:
        result = decode_frame(raw)

        if result.ok:
            self._data = result.value
        else:
            self._set_error(ErrorKind.DECODE, result.error)
            log_websocket_event(self.name, "decode_failed", result.error, self.logger)

        self._notify()

    def _on_error(self, exc: Any) -> None:
        # Reconnection is left to the close that always follows
        self._state = ConnectionState.ERRORED
        self._set_error(ErrorKind.TRANSPORT, TRANSPORT_ERROR_MESSAGE)
        log_websocket_event(self.name, "error", str(exc) or type(exc).__name__, self.logger)
        self._notify()

    def _on_close(self, config: ConnectionConfig, allow_retry: bool = True) -> None:
        self._state = ConnectionState.CLOSED

        if self._disposed or self._restarting or not allow_retry:
            log_websocket_event(self.name, "stopped", target=self.logger)
            self._notify()
            return

        self._set_error(ErrorKind.CLOSED, CLOSED_MESSAGE)
        log_websocket_event(self.name, "closed", target=self.logger)

        decision = decide_from_config(config, self._reconnect_count)

        if decision.should_retry:
            loop = asyncio.get_running_loop()
            self._reconnect_handle = loop.call_later(decision.delay_seconds, self._fire_reconnect)
            self._reconnect_count += 1
            log_websocket_event(
                self.name,
                "reconnect_scheduled",
                f"in {decision.delay_ms}ms (attempt {self._reconnect_count}/{config.max_reconnect_attempts})",
                self.logger
            )

        elif config.reconnect_enabled:
            self._set_error(
                ErrorKind.EXHAUSTED,
                f"{CLOSED_MESSAGE}: reconnect attempts exhausted ({config.max_reconnect_attempts})"
            )
            log_websocket_event(self.name, "exhausted", self._error, self.logger)

        self._notify()

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        if self._disposed:
            return
        self.connect()

        if self._error_kind == ErrorKind.CONSTRUCTION:
            log_websocket_event(self.name, "stopped", "reconnect could not be constructed", self.logger)

    # ============================================
    # Helpers
    # ============================================

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
            self.logger.debug(f"Pending reconnect cancelled for {self.name}")

    def _set_error(self, kind: ErrorKind, message: str) -> None:
        self._error_kind = kind
        self._error = message

    def _clear_error(self) -> None:
        self._error_kind = None
        self._error = None

    def _notify(self) -> None:
        if not self._listeners:
            return

        snapshot = self.snapshot()
        for callback in list(self._listeners):
            try:
                callback(snapshot)
            except Exception as e:
                self.logger.error(f"Feed listener failed for {self.name}: {e}")
