"""The bridge facade exposed to the host's API layer.

``WebBridge`` wires the cookie jar, HTTP proxy, event channel, socket
registry and lifecycle manager from one BridgeConfig, and exposes the four
caller operations plus teardown. Every operation returns a JSON-compatible
dict; none raises for bad input or network trouble.

Usage:
    async with WebBridge.from_config() as bridge:
        bridge.channel.add_sink(host_emit)   # host_emit(topic, payload)

        result = await bridge.http_request("https://example.com/", "GET")
        await bridge.socket_open("wss://echo.example/", "s1")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from webbridge.config.loader import load_config
from webbridge.config.schema import BridgeConfig
from webbridge.cookies.jar import CookieJar
from webbridge.core.logging import configure_transport_logging, unconfigure_transport_logging
from webbridge.events.channel import EventChannel, EventSink
from webbridge.http.proxy import HttpProxy
from webbridge.lifecycle import LifecycleManager
from webbridge.sockets.registry import SocketRegistry

logger = logging.getLogger(__name__)


class WebBridge:
    """HTTP forwarding and WebSocket multiplexing for one host process."""

    def __init__(
        self,
        config: BridgeConfig | None = None,
        sink: EventSink | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the bridge.

        Args:
            config: Bridge configuration. Defaults to BridgeConfig().
            sink: Host ``emit(topic, payload)`` callable receiving every event.
            http_transport: Optional httpx transport (tests, custom routing).
        """
        self.config = config or BridgeConfig()
        self.jar = CookieJar()
        self.proxy = HttpProxy(self.jar, self.config.http, transport=http_transport)
        self.channel = EventChannel(
            max_queue_size=self.config.events.max_queue_size,
            history_size=self.config.events.history_size,
            drop_limit=self.config.events.drop_limit,
            sinks=[sink] if sink else None,
        )
        self.registry = SocketRegistry(self.channel, self.config.websocket, jar=self.jar)
        self.lifecycle = LifecycleManager(
            self.registry,
            self.jar,
            proxy=self.proxy,
            channel=self.channel,
            join_timeout=self.config.websocket.close_timeout,
        )
        if self.config.transport_debug:
            configure_transport_logging()

    @classmethod
    def from_config(
        cls,
        path: Path | None = None,
        cwd: Path | None = None,
        sink: EventSink | None = None,
    ) -> WebBridge:
        """Create a bridge from layered config files.

        Raises:
            ConfigError: If a config file is invalid.
        """
        return cls(load_config(path, cwd), sink=sink)

    async def __aenter__(self) -> WebBridge:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    async def http_request(
        self,
        url: str | None,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> dict[str, Any]:
        """Proxy an HTTP request. See HttpProxy.request."""
        result = await self.proxy.request(url, method, headers, body)
        return result.to_dict()

    async def socket_open(self, url: str | None, conn_id: str | None) -> dict[str, Any]:
        """Start a WebSocket connection under ``conn_id``."""
        return await self.registry.open(url, conn_id)

    async def socket_send(self, conn_id: str, data: str, binary: bool = True) -> dict[str, Any]:
        """Send base64 ``data`` on an open WebSocket."""
        return await self.registry.send(conn_id, data, binary=binary)

    async def socket_close(self, conn_id: str) -> dict[str, Any]:
        """Close a WebSocket. Unknown ids succeed."""
        return await self.registry.close(conn_id)

    async def shutdown(self) -> list[str]:
        """Close everything and reset state. Returns ids that failed to close."""
        try:
            return await self.lifecycle.shutdown()
        finally:
            if self.config.transport_debug:
                unconfigure_transport_logging()
