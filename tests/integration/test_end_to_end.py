"""End-to-end scenarios through the WebBridge facade.

HTTP runs against an httpx.MockTransport; WebSockets run against a real
local echo server.
"""

import asyncio

import httpx
import pytest
import pytest_asyncio
from websockets.asyncio.server import serve

from webbridge.bridge import WebBridge
from webbridge.core.encoding import decode_bytes, encode_text


class TestCookieExpiry:
    @pytest.mark.asyncio
    async def test_max_age_cookie_sent_then_dropped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        clock = [1_700_000_000.0]
        monkeypatch.setattr("webbridge.cookies.jar.time.time", lambda: clock[0])
        seen: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("cookie"))
            if request.url.path == "/login":
                return httpx.Response(200, headers={"Set-Cookie": "s=1; Max-Age=60"})
            return httpx.Response(200, text="ok")

        async with WebBridge(http_transport=httpx.MockTransport(handler)) as bridge:
            await bridge.http_request("https://a.example/login")

            clock[0] += 30
            await bridge.http_request("https://a.example/page")

            clock[0] += 31
            await bridge.http_request("https://a.example/page")

        assert seen == [None, "s=1", None]


async def _echo(connection) -> None:
    async for message in connection:
        await connection.send(message)


@pytest_asyncio.fixture
async def echo_url():
    async with serve(_echo, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        yield f"ws://127.0.0.1:{port}"


class TestWebSocketEcho:
    @pytest.mark.asyncio
    async def test_echo_round_trip(self, echo_url: str, sink) -> None:
        async with WebBridge(sink=sink) as bridge:
            assert await bridge.socket_open(echo_url, "s1") == {"success": True, "id": "s1"}
            early = await bridge.socket_send("s1", encode_text("too soon"))
            assert early["success"] is False
            assert "is not open" in early["error"]

            await sink.wait_for("s1:open")
            assert await bridge.socket_send("s1", encode_text("hi"), binary=False) == {
                "success": True
            }

            message = await sink.wait_for("s1:message")
            assert decode_bytes(message["data"]) == b"hi"
            assert message["isBinary"] is False

    @pytest.mark.asyncio
    async def test_binary_frames_report_binary(self, echo_url: str, sink) -> None:
        async with WebBridge(sink=sink) as bridge:
            await bridge.socket_open(echo_url, "b1")
            await sink.wait_for("b1:open")

            await bridge.socket_send("b1", "AAEC")

            message = await sink.wait_for("b1:message")
            assert decode_bytes(message["data"]) == b"\x00\x01\x02"
            assert message["isBinary"] is True

    @pytest.mark.asyncio
    async def test_reopen_after_close(self, echo_url: str, sink) -> None:
        async with WebBridge(sink=sink) as bridge:
            await bridge.socket_open(echo_url, "s1")
            await sink.wait_for("s1:open")

            assert await bridge.socket_close("s1") == {"success": True}
            close = await sink.wait_for("s1:close")
            assert close == {"code": 1000, "reason": ""}

            assert await bridge.socket_open(echo_url, "s1") == {"success": True, "id": "s1"}
            await _wait_count(sink, "s1:open", 2)
            assert bridge.registry.state("s1") is not None

    @pytest.mark.asyncio
    async def test_unreachable_server(self, sink) -> None:
        async with WebBridge(sink=sink) as bridge:
            await bridge.socket_open("ws://127.0.0.1:1", "dead")

            error = await sink.wait_for("dead:error")
            close = await sink.wait_for("dead:close")

        assert error["error"]
        assert close == {"code": 1006, "reason": ""}
        assert sink.topics().index("dead:error") < sink.topics().index("dead:close")


async def _wait_count(sink, topic: str, count: int, timeout: float = 5.0) -> None:
    async def _poll() -> None:
        while sink.topics().count(topic) < count:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)
