"""Shared pytest fixtures."""

import asyncio
from typing import Any

import pytest

from webbridge.cookies.jar import CookieJar
from webbridge.events.channel import EventChannel


class RecordingSink:
    """Host-side ``emit(topic, payload)`` that remembers every call."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def __call__(self, topic: str, payload: Any) -> None:
        self.events.append((topic, payload))

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.events]

    async def wait_for(self, topic: str, timeout: float = 5.0) -> Any:
        """Wait until ``topic`` has been emitted and return its payload."""

        async def _poll() -> Any:
            while True:
                for seen, payload in self.events:
                    if seen == topic:
                        return payload
                await asyncio.sleep(0.01)

        return await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def jar() -> CookieJar:
    return CookieJar()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def channel(sink: RecordingSink) -> EventChannel:
    return EventChannel(sinks=[sink])


_END = object()


class FakeTransport:
    """Records ``abort`` calls like an asyncio transport would receive them."""

    def __init__(self) -> None:
        self.aborted = False

    def abort(self) -> None:
        self.aborted = True


class FakeConnection:
    """Stand-in for a websockets ClientConnection.

    Frames pushed with ``feed`` are yielded by ``async for``; ``remote_close``
    ends iteration the way a close frame from the server would.
    """

    def __init__(self) -> None:
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()
        self.sent: list[str | bytes] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.closed = False
        self.close_error: Exception | None = None
        self.transport = FakeTransport()

    def feed(self, message: str | bytes) -> None:
        self._incoming.put_nowait(message)

    def remote_close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self._incoming.put_nowait(_END)

    def fail(self, error: Exception) -> None:
        """Make iteration raise ``error`` (abnormal termination)."""
        self.closed = True
        self._incoming.put_nowait(error)

    def __aiter__(self) -> "FakeConnection":
        return self

    async def __anext__(self) -> str | bytes:
        item = await self._incoming.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def send(self, message: str | bytes) -> None:
        if self.closed:
            from websockets.exceptions import ConnectionClosedOK
            from websockets.frames import Close

            raise ConnectionClosedOK(Close(1000, ""), Close(1000, ""), True)
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.close_error is not None:
            raise self.close_error
        if not self.closed:
            self.remote_close(code, reason)


class FakeConnector:
    """Replacement for ``websockets.connect`` handing out FakeConnections.

    Attributes:
        calls: (url, kwargs) for every connect attempt.
        connections: Connections handed out, in order.
        gate: When set, connects wait for this event before completing.
        error: When set, connects raise this instead of connecting.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.connections: list[FakeConnection] = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    async def __call__(self, url: str, **kwargs: Any) -> FakeConnection:
        self.calls.append((url, kwargs))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        connection = FakeConnection()
        self.connections.append(connection)
        return connection


@pytest.fixture
def fake_ws(monkeypatch: pytest.MonkeyPatch) -> FakeConnector:
    connector = FakeConnector()
    monkeypatch.setattr("webbridge.sockets.registry.websockets.connect", connector)
    return connector
