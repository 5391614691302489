"""Process teardown for the bridge.

``LifecycleManager.shutdown`` closes every registered WebSocket, best
effort: a connection that fails to close is logged and recorded, and the
remaining ones are still attempted. Afterwards the registry and the cookie
jar are cleared unconditionally and the HTTP client is closed, so nothing
survives past teardown.
"""

from __future__ import annotations

import logging

from webbridge.cookies.jar import CookieJar
from webbridge.events.channel import EventChannel
from webbridge.http.proxy import HttpProxy
from webbridge.sockets.registry import SocketRegistry

logger = logging.getLogger(__name__)


class LifecycleManager:
    """Deterministic teardown of registry, jar and HTTP client."""

    def __init__(
        self,
        registry: SocketRegistry,
        jar: CookieJar,
        proxy: HttpProxy | None = None,
        channel: EventChannel | None = None,
        join_timeout: float | None = 10.0,
    ) -> None:
        """Initialize the manager.

        Args:
            registry: Socket registry to drain.
            jar: Cookie jar to clear.
            proxy: HTTP proxy whose client is closed, if any.
            channel: Event channel whose replay history is dropped, if any.
            join_timeout: How long to wait for reader tasks to deliver their
                close events before cancelling them. None waits indefinitely.
        """
        self._registry = registry
        self._jar = jar
        self._proxy = proxy
        self._channel = channel
        self._join_timeout = join_timeout
        self._shut_down = False

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    async def shutdown(self) -> list[str]:
        """Close every connection and reset all state.

        Safe to call more than once.

        Returns:
            Ids of connections whose transport failed to close cleanly.
        """
        failed: list[str] = []
        ids = self._registry.ids()
        if ids:
            logger.info("Shutting down %d WebSocket connection(s)", len(ids))

        for conn_id in ids:
            try:
                await self._registry.terminate(conn_id)
            except Exception as e:
                logger.warning("Failed to close WebSocket %s during shutdown: %s", conn_id, e)
                failed.append(conn_id)

        self._registry.clear()
        try:
            await self._registry.join(self._join_timeout)
        finally:
            self._jar.clear()
            if self._proxy is not None:
                await self._proxy.aclose()
            if self._channel is not None:
                self._channel.clear_history()
            self._shut_down = True

        if failed:
            logger.warning("Shutdown finished with %d close failure(s): %s", len(failed), failed)
        else:
            logger.debug("Shutdown complete")
        return failed
