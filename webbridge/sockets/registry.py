"""Registry of relayed WebSocket connections keyed by caller-assigned id.

Each ``open`` registers an entry and starts one reader task for it. The
task performs the handshake, then relays every inbound frame as a
``message`` event until the connection ends, and finally reports ``close``.
Because one task produces all events for a connection, they reach the
event channel in the order the transport produced them.

An entry leaves the registry exactly once: when its reader task sees the
connection end, or earlier when the caller closes it explicitly. The task
only removes the entry it owns, so an id reused after an explicit close is
never removed by the previous connection's late close event.

Failure reporting follows the transport: a failed handshake emits
``error`` then ``close`` (code 1006), an abnormal closure emits ``error``
then ``close``, and a clean closure emits only ``close``. Consumers should
not rely on error/close pairing beyond that.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from webbridge.config.schema import WebSocketConfig
from webbridge.cookies.jar import CookieJar
from webbridge.core.constants import ABNORMAL_CLOSURE, WEBSOCKET_SCHEMES
from webbridge.core.encoding import decode_bytes, encode_bytes, encode_text
from webbridge.core.errors import EncodingError, UrlValidationError, sanitize_error
from webbridge.core.url_validator import validate_url
from webbridge.events.channel import CLOSE_EVENT, EventChannel
from webbridge.sockets.types import SocketEntry, SocketState

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
CLOSED_BEFORE_OPEN = "Closed before the connection was established"


def _failure(error: str) -> dict[str, Any]:
    return {"success": False, "error": error}


class SocketRegistry:
    """Opens, sends on and closes WebSocket connections by id.

    All public operations return a result dict instead of raising, except
    ``terminate`` which is meant for teardown code that collects failures.
    """

    def __init__(
        self,
        channel: EventChannel,
        config: WebSocketConfig | None = None,
        jar: CookieJar | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            channel: Destination for lifecycle events.
            config: WebSocket settings. Defaults to WebSocketConfig().
            jar: Cookie jar whose cookies are sent on the opening handshake
                when ``config.attach_cookies`` is set.
        """
        self._channel = channel
        self._config = config or WebSocketConfig()
        self._jar = jar
        self._entries: dict[str, SocketEntry] = {}
        # Reader tasks still running, including those of removed entries
        self._tasks: set[asyncio.Task[None]] = set()

    async def open(self, url: str | None, conn_id: str | None) -> dict[str, Any]:
        """Register a connection and start connecting in the background.

        The outcome of the handshake arrives later as an ``open`` or
        ``error``/``close`` event; the return value only says whether the
        attempt was started.

        Returns:
            ``{"success": True, "id": conn_id}`` or ``{"success": False, "error": ...}``.
        """
        if not conn_id:
            return _failure("WebSocket id is required")
        if conn_id in self._entries:
            logger.warning("Rejected duplicate WebSocket id: %s", conn_id)
            return _failure(f"WebSocket with id '{conn_id}' already exists")
        try:
            validate_url(url, WEBSOCKET_SCHEMES)
        except UrlValidationError as e:
            logger.warning("Rejected WebSocket %s: %s", conn_id, e.message)
            return _failure(e.reason if not url else e.message)

        assert url is not None
        entry = SocketEntry(id=conn_id, url=url)
        # Registered before the handshake so a second open with this id fails
        self._entries[conn_id] = entry
        entry.task = asyncio.create_task(self._run(entry), name=f"webbridge-ws-{conn_id}")
        self._tasks.add(entry.task)
        entry.task.add_done_callback(self._tasks.discard)

        logger.info("Opening WebSocket %s to %s", conn_id, url)
        return {"success": True, "id": conn_id}

    async def send(self, conn_id: str, data: str, binary: bool = True) -> dict[str, Any]:
        """Send a base64-encoded payload on an open connection.

        Args:
            conn_id: Connection id.
            data: Base64 text of the bytes to send.
            binary: Send a binary frame (default). When False, the decoded
                bytes must be UTF-8 and are sent as a text frame.

        Returns:
            ``{"success": True}`` or ``{"success": False, "error": ...}``.
        """
        entry = self._entries.get(conn_id)
        if entry is None:
            return _failure(f"WebSocket with id '{conn_id}' not found")
        if entry.state is not SocketState.OPEN or entry.connection is None:
            return _failure(f"WebSocket '{conn_id}' is not open (state: {entry.state.value})")

        try:
            payload = decode_bytes(data)
        except EncodingError as e:
            return _failure(e.message)

        try:
            if binary:
                await entry.connection.send(payload)
            else:
                await entry.connection.send(payload.decode("utf-8"))
        except UnicodeDecodeError:
            return _failure("Text frames must be valid UTF-8")
        except ConnectionClosed:
            return _failure(f"WebSocket '{conn_id}' is closed")
        except Exception as e:
            logger.warning("Send failed on WebSocket %s: %s", conn_id, e)
            return _failure(sanitize_error(e))

        logger.debug("Sent %d bytes on WebSocket %s", len(payload), conn_id)
        return {"success": True}

    async def close(
        self, conn_id: str, code: int = NORMAL_CLOSURE, reason: str = ""
    ) -> dict[str, Any]:
        """Close a connection. Unknown ids succeed as a no-op.

        The entry is removed immediately; the transport's close event is
        still relayed once the closing handshake finishes.
        """
        try:
            await self.terminate(conn_id, code, reason)
        except Exception as e:
            logger.warning("Error closing WebSocket %s: %s", conn_id, e)
        return {"success": True}

    async def terminate(
        self, conn_id: str, code: int = NORMAL_CLOSURE, reason: str = ""
    ) -> None:
        """Remove an entry and close its transport, propagating transport errors.

        The entry is removed before the transport is touched, so it is gone
        even when closing fails.
        """
        entry = self._entries.pop(conn_id, None)
        if entry is None:
            return

        logger.info("Closing WebSocket %s", conn_id)
        if entry.connection is None:
            # Still handshaking: abandon the attempt
            if entry.task is not None:
                entry.task.cancel()
            self._report_close(entry, ABNORMAL_CLOSURE, CLOSED_BEFORE_OPEN)
            return
        await entry.connection.close(code, reason)

    def clear(self) -> None:
        """Forget every entry, cancelling reader tasks that are still connecting."""
        for entry in self._entries.values():
            if entry.connection is None and entry.task is not None:
                entry.task.cancel()
        self._entries.clear()

    async def join(self, timeout: float | None = None) -> None:
        """Wait for reader tasks to finish, cancelling any still running at ``timeout``."""
        tasks = list(self._tasks)
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def ids(self) -> list[str]:
        """Ids of registered connections."""
        return list(self._entries)

    def state(self, conn_id: str) -> SocketState | None:
        """State of a registered connection, None if unknown."""
        entry = self._entries.get(conn_id)
        return entry.state if entry else None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, conn_id: object) -> bool:
        return conn_id in self._entries

    def _connect_kwargs(self, url: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "open_timeout": self._config.open_timeout,
            "close_timeout": self._config.close_timeout,
            "ping_interval": self._config.ping_interval,
            "ping_timeout": self._config.ping_timeout,
            "max_size": self._config.max_size,
        }
        if self._jar is not None and self._config.attach_cookies:
            parsed = validate_url(url, WEBSOCKET_SCHEMES)
            cookie = self._jar.cookie_header_for(parsed.hostname or "", parsed.path or "/")
            if cookie:
                kwargs["additional_headers"] = {"Cookie": cookie}
        return kwargs

    async def _run(self, entry: SocketEntry) -> None:
        try:
            try:
                connection = await websockets.connect(entry.url, **self._connect_kwargs(entry.url))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("WebSocket %s failed to connect: %s", entry.id, e)
                self._channel.emit(entry.id, "error", {"error": sanitize_error(e)})
                self._report_close(entry, ABNORMAL_CLOSURE, "")
                return

            entry.connection = connection
            entry.state = SocketState.OPEN
            logger.info("WebSocket %s connected", entry.id)
            self._channel.emit(entry.id, "open", None)

            try:
                async for message in connection:
                    self._relay(entry, message)
            except ConnectionClosed as e:
                logger.warning("WebSocket %s closed abnormally: %s", entry.id, e)
                self._channel.emit(entry.id, "error", {"error": sanitize_error(e)})
            except Exception as e:
                logger.warning("WebSocket %s errored: %s", entry.id, e)
                self._channel.emit(entry.id, "error", {"error": sanitize_error(e)})
                try:
                    await connection.close()
                except Exception:
                    logger.debug("Ignoring error while closing WebSocket %s", entry.id, exc_info=True)

            self._report_close(
                entry,
                connection.close_code or ABNORMAL_CLOSURE,
                connection.close_reason or "",
            )
        except asyncio.CancelledError:
            if entry.connection is not None:
                # No closing handshake on cancellation; drop the TCP connection
                entry.connection.transport.abort()
                reason = ""
            else:
                reason = CLOSED_BEFORE_OPEN
            self._report_close(entry, ABNORMAL_CLOSURE, reason)
            raise

    def _relay(self, entry: SocketEntry, message: str | bytes) -> None:
        if isinstance(message, str):
            payload = {"data": encode_text(message), "isBinary": False}
        else:
            payload = {"data": encode_bytes(message), "isBinary": True}
        self._channel.emit(entry.id, "message", payload)

    def _report_close(self, entry: SocketEntry, code: int, reason: str) -> None:
        """Emit the close event once and drop the entry if it is still registered."""
        entry.state = SocketState.CLOSED
        if self._entries.get(entry.id) is entry:
            del self._entries[entry.id]
        if entry.close_reported:
            return
        entry.close_reported = True
        logger.info("WebSocket %s closed: code=%s reason=%r", entry.id, code, reason)
        self._channel.emit(entry.id, CLOSE_EVENT, {"code": code, "reason": reason})
