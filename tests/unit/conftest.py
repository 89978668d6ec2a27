"""
Shared fakes for feed tests.

FakeTransport / FakeConnection stand in for a real WebSocket: tests push
frames and drop connections by hand. TimerRecorder replaces loop.call_later
so reconnect delays can be asserted and fired without waiting.
"""

import asyncio
from collections import deque
from typing import Any, Callable, List, Optional, Sequence, Tuple
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio

from core.transport import Frame, FrameType, Transport, TransportConnection


# ============================================
# Fake Transport
# ============================================

class FakeConnection(TransportConnection):
    """In-memory socket driven by the test"""

    def __init__(self):
        self.sent: List[str] = []
        self._frames: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self.reader_finished = False

    async def send_text(self, text: str) -> None:
        if self._closed:
            raise ConnectionResetError("socket closed")
        self.sent.append(text)

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._frames.put_nowait(None)

    @property
    def closed(self) -> bool:
        return self._closed

    async def frames(self):
        try:
            while True:
                frame = await self._frames.get()
                if frame is None:
                    return
                yield frame
        finally:
            self.reader_finished = True

    # Test controls

    def push_text(self, text: str) -> None:
        self._frames.put_nowait(Frame(FrameType.TEXT, text))

    def push_binary(self, data: bytes) -> None:
        self._frames.put_nowait(Frame(FrameType.BINARY, data))

    def push_error(self, exc: Exception) -> None:
        self._frames.put_nowait(Frame(FrameType.ERROR, exc))

    def drop(self) -> None:
        """Server-initiated close"""
        self._frames.put_nowait(None)


class FakeTransport(Transport):
    """Hands out FakeConnections; can be told to fail the next opens"""

    def __init__(self):
        self.opened: List[Tuple[str, Optional[Sequence[str]]]] = []
        self.connections: List[FakeConnection] = []
        self.failures: deque = deque()
        self.fail_with: Optional[Exception] = None
        self.max_live_at_open = 0
        self.closed = False

    async def open(self, url: str, protocols: Optional[Sequence[str]]) -> TransportConnection:
        self.opened.append((url, protocols))
        live = sum(1 for c in self.connections if not c.closed)
        self.max_live_at_open = max(self.max_live_at_open, live)

        if self.failures:
            raise self.failures.popleft()
        if self.fail_with is not None:
            raise self.fail_with

        connection = FakeConnection()
        self.connections.append(connection)
        return connection

    async def aclose(self) -> None:
        self.closed = True

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


# ============================================
# Timer Recorder
# ============================================

class TimerRecorder:
    """Drop-in for loop.call_later that records instead of scheduling"""

    def __init__(self):
        self.calls: List[Tuple[float, Callable, tuple, MagicMock]] = []

    def __call__(self, delay: float, callback: Callable, *args: Any, context=None) -> MagicMock:
        handle = MagicMock()
        self.calls.append((delay, callback, args, handle))
        return handle

    @property
    def delays(self) -> List[float]:
        return [delay for delay, _, _, _ in self.calls]

    @property
    def last_handle(self) -> MagicMock:
        return self.calls[-1][3]

    def fire(self, index: int = -1) -> None:
        _, callback, args, _ = self.calls[index]
        callback(*args)


# ============================================
# Helpers
# ============================================

async def _wait_until(predicate: Callable[[], bool], max_iterations: int = 500) -> None:
    for _ in range(max_iterations):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("Condition not reached")


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def wait_until():
    """await wait_until(lambda: feed.is_connected)"""
    return _wait_until


@pytest_asyncio.fixture
async def timers():
    recorder = TimerRecorder()
    loop = asyncio.get_running_loop()
    with patch.object(loop, "call_later", side_effect=recorder):
        yield recorder
