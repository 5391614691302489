"""Outbound event channel for socket lifecycle events.

Every connection publishes its events under topics namespaced by the
caller's connection id: ``<id>:open``, ``<id>:message``, ``<id>:error`` and
``<id>:close``. The channel delivers each event to two kinds of consumers:

- Sinks: plain ``emit(topic, payload)`` callables supplied by the host,
  called synchronously in registration order. This is how the bridge hands
  events to the host's own delivery transport.
- Subscribers: bounded asyncio queues, either for one connection id or for
  all of them (``ALL_CONNECTIONS``). Slow subscribers drop events and are
  disconnected after ``drop_limit`` consecutive drops.

Events carry a per-connection sequence number and are kept in a ring buffer
per connection so a consumer that reconnects can replay what it missed.
A connection's counter and buffer are dropped once its ``close`` event has
been delivered, so a reused id starts again at sequence 1.

Example:
    channel = EventChannel()
    channel.add_sink(lambda topic, payload: print(topic, payload))
    queue = channel.subscribe("s1")

    channel.emit("s1", "open")

    event = await queue.get()   # {"topic": "s1:open", "id": "s1", ...}
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

ALL_CONNECTIONS = "*"

# Terminal event of a connection
CLOSE_EVENT = "close"

EventSink = Callable[[str, Any], object]
Event = dict[str, Any]


def make_topic(conn_id: str, event: str) -> str:
    """Topic name for an event on a connection."""
    return f"{conn_id}:{event}"


@dataclass
class SubscriberState:
    """Tracks state for an individual subscriber.

    Attributes:
        queue: The asyncio queue for delivering events.
        consecutive_drops: Count of consecutive dropped events (slow client detection).
    """

    queue: asyncio.Queue[Event] = field(default_factory=lambda: asyncio.Queue())
    consecutive_drops: int = 0


class EventChannel:
    """Per-connection pub/sub for socket lifecycle events.

    Not thread-safe. ``emit`` must be called from the event loop that owns
    the subscriber queues; it never blocks and never raises because of a
    consumer.
    """

    def __init__(
        self,
        max_queue_size: int = 1000,
        history_size: int = 100,
        drop_limit: int = 10,
        sinks: list[EventSink] | None = None,
    ) -> None:
        """Initialize the channel.

        Args:
            max_queue_size: Maximum undelivered events per subscriber queue.
            history_size: Events kept per connection id for replay.
            drop_limit: Consecutive drops before disconnecting a slow subscriber.
            sinks: Initial ``emit(topic, payload)`` callables.
        """
        self._subscribers: dict[str, dict[asyncio.Queue[Event], SubscriberState]] = (
            defaultdict(dict)
        )
        self._max_queue_size = max_queue_size
        self._drop_limit = drop_limit

        self._sinks: list[EventSink] = list(sinks or [])

        # Per-connection sequence counter (monotonically increasing)
        self._seq: dict[str, int] = defaultdict(int)

        self._history: dict[str, deque[Event]] = {}
        self._history_size = history_size

    def add_sink(self, sink: EventSink) -> None:
        """Register an ``emit(topic, payload)`` callable."""
        self._sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> None:
        """Unregister a sink. Unknown sinks are ignored."""
        try:
            self._sinks.remove(sink)
        except ValueError:
            pass

    def subscribe(self, conn_id: str = ALL_CONNECTIONS) -> asyncio.Queue[Event]:
        """Create a subscription queue.

        Args:
            conn_id: Connection id to follow, or ALL_CONNECTIONS for every id.

        Returns:
            A bounded asyncio.Queue that will receive event records.
        """
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers[conn_id][queue] = SubscriberState(queue=queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Event], conn_id: str = ALL_CONNECTIONS) -> None:
        """Remove a subscription. Safe to call for unknown or removed queues."""
        subs = self._subscribers.get(conn_id)
        if subs is None:
            return
        subs.pop(queue, None)
        if not subs:
            del self._subscribers[conn_id]

    def is_subscribed(self, queue: asyncio.Queue[Event], conn_id: str = ALL_CONNECTIONS) -> bool:
        """Check if a queue is still subscribed (slow subscribers get removed)."""
        subs = self._subscribers.get(conn_id)
        return subs is not None and queue in subs

    def subscriber_count(self, conn_id: str = ALL_CONNECTIONS) -> int:
        subs = self._subscribers.get(conn_id)
        return len(subs) if subs else 0

    def emit(self, conn_id: str, event: str, payload: Any = None) -> Event:
        """Publish one lifecycle event for a connection.

        Args:
            conn_id: Caller-assigned connection id.
            event: Event name (open, message, error, close).
            payload: JSON-compatible payload, None for ``open``.

        Returns:
            The event record as delivered to subscribers.
        """
        self._seq[conn_id] += 1
        record: Event = {
            "topic": make_topic(conn_id, event),
            "id": conn_id,
            "event": event,
            "payload": payload,
            "seq": self._seq[conn_id],
        }

        if self._history_size:
            if conn_id not in self._history:
                self._history[conn_id] = deque(maxlen=self._history_size)
            self._history[conn_id].append(record)

        for sink in list(self._sinks):
            try:
                sink(record["topic"], payload)
            except Exception:
                logger.exception("Event sink failed for %s", record["topic"])

        self._deliver(conn_id, record)
        if conn_id != ALL_CONNECTIONS:
            self._deliver(ALL_CONNECTIONS, record)

        if event == CLOSE_EVENT:
            self.forget(conn_id)
        return record

    def forget(self, conn_id: str) -> None:
        """Drop the sequence counter and replay buffer of a finished connection."""
        self._seq.pop(conn_id, None)
        self._history.pop(conn_id, None)

    def _deliver(self, key: str, record: Event) -> None:
        subs = self._subscribers.get(key)
        if not subs:
            return

        for queue, state in list(subs.items()):
            try:
                queue.put_nowait(record)
                state.consecutive_drops = 0
            except asyncio.QueueFull:
                state.consecutive_drops += 1
                logger.debug("Dropped %s for slow subscriber", record["topic"])
                if state.consecutive_drops >= self._drop_limit:
                    logger.warning(
                        "Disconnecting slow subscriber on %s after %d drops",
                        key,
                        state.consecutive_drops,
                    )
                    subs.pop(queue, None)
        if not subs:
            self._subscribers.pop(key, None)

    def events_since(self, conn_id: str, since_seq: int) -> list[Event]:
        """Replay buffered events for a connection with seq > since_seq."""
        history = self._history.get(conn_id)
        if not history:
            return []
        return [ev for ev in history if ev["seq"] > since_seq]

    def latest_seq(self, conn_id: str) -> int:
        """Latest sequence number emitted for a connection, 0 if none."""
        return self._seq.get(conn_id, 0)

    def clear_history(self) -> None:
        """Forget sequence counters and buffered events for every connection."""
        self._seq.clear()
        self._history.clear()
