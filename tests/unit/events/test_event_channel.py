"""Tests for EventChannel pub/sub."""

import logging

import pytest

from webbridge.events.channel import ALL_CONNECTIONS, EventChannel, make_topic


class TestEmit:
    def test_topic_namespaced_by_id(self) -> None:
        assert make_topic("s1", "message") == "s1:message"

    def test_record_shape(self) -> None:
        channel = EventChannel()
        record = channel.emit("s1", "close", {"code": 1000, "reason": ""})
        assert record == {
            "topic": "s1:close",
            "id": "s1",
            "event": "close",
            "payload": {"code": 1000, "reason": ""},
            "seq": 1,
        }

    def test_sequence_is_per_connection(self) -> None:
        channel = EventChannel()
        channel.emit("a", "open")
        channel.emit("a", "message", {})
        channel.emit("b", "open")
        assert channel.latest_seq("a") == 2
        assert channel.latest_seq("b") == 1
        assert channel.latest_seq("c") == 0

    def test_sinks_called_in_order(self) -> None:
        calls: list[tuple[str, str, object]] = []
        channel = EventChannel(sinks=[lambda t, p: calls.append(("first", t, p))])
        channel.add_sink(lambda t, p: calls.append(("second", t, p)))

        channel.emit("s1", "open")

        assert calls == [("first", "s1:open", None), ("second", "s1:open", None)]

    def test_failing_sink_does_not_stop_delivery(self, caplog: pytest.LogCaptureFixture) -> None:
        seen: list[str] = []

        def broken(topic: str, payload: object) -> None:
            raise RuntimeError("host transport down")

        channel = EventChannel(sinks=[broken, lambda t, p: seen.append(t)])
        with caplog.at_level(logging.ERROR, logger="webbridge.events.channel"):
            channel.emit("s1", "open")

        assert seen == ["s1:open"]
        assert "s1:open" in caplog.text

    def test_remove_sink(self) -> None:
        seen: list[str] = []

        def sink(topic: str, payload: object) -> None:
            seen.append(topic)

        channel = EventChannel(sinks=[sink])
        channel.remove_sink(sink)
        channel.remove_sink(sink)
        channel.emit("s1", "open")
        assert seen == []


class TestSubscribers:
    @pytest.mark.asyncio
    async def test_per_connection_subscription(self) -> None:
        channel = EventChannel()
        queue = channel.subscribe("a")

        channel.emit("b", "open")
        channel.emit("a", "open")

        event = queue.get_nowait()
        assert event["topic"] == "a:open"
        assert queue.empty()

    @pytest.mark.asyncio
    async def test_all_connections_subscription(self) -> None:
        channel = EventChannel()
        queue = channel.subscribe(ALL_CONNECTIONS)

        channel.emit("a", "open")
        channel.emit("b", "open")

        assert [queue.get_nowait()["id"] for _ in range(2)] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        channel = EventChannel()
        queue = channel.subscribe("a")
        channel.unsubscribe(queue, "a")
        channel.unsubscribe(queue, "a")

        channel.emit("a", "open")

        assert queue.empty()
        assert channel.subscriber_count("a") == 0

    @pytest.mark.asyncio
    async def test_slow_subscriber_disconnected(self) -> None:
        channel = EventChannel(max_queue_size=1, drop_limit=2)
        queue = channel.subscribe("a")

        channel.emit("a", "message", 1)
        assert channel.is_subscribed(queue, "a")
        channel.emit("a", "message", 2)
        channel.emit("a", "message", 3)

        assert not channel.is_subscribed(queue, "a")
        assert queue.get_nowait()["payload"] == 1

    @pytest.mark.asyncio
    async def test_successful_delivery_resets_drops(self) -> None:
        channel = EventChannel(max_queue_size=1, drop_limit=2)
        queue = channel.subscribe("a")

        channel.emit("a", "message", 1)
        channel.emit("a", "message", 2)
        queue.get_nowait()
        channel.emit("a", "message", 3)
        channel.emit("a", "message", 4)

        assert channel.is_subscribed(queue, "a")


class TestHistory:
    def test_events_since(self) -> None:
        channel = EventChannel()
        for n in range(5):
            channel.emit("a", "message", n)

        replay = channel.events_since("a", 3)
        assert [e["payload"] for e in replay] == [3, 4]
        assert channel.events_since("missing", 0) == []

    def test_ring_buffer_bounded(self) -> None:
        channel = EventChannel(history_size=2)
        for n in range(5):
            channel.emit("a", "message", n)

        assert [e["seq"] for e in channel.events_since("a", 0)] == [4, 5]

    def test_history_disabled(self) -> None:
        channel = EventChannel(history_size=0)
        channel.emit("a", "open")
        assert channel.events_since("a", 0) == []

    def test_clear_history(self) -> None:
        channel = EventChannel()
        channel.emit("a", "open")
        channel.clear_history()
        assert channel.latest_seq("a") == 0
        assert channel.events_since("a", 0) == []

    def test_close_releases_connection_state(self) -> None:
        channel = EventChannel()
        channel.emit("a", "open")
        channel.emit("a", "message", {"data": "AAAA", "isBinary": True})
        channel.emit("b", "open")

        record = channel.emit("a", "close", {"code": 1000, "reason": ""})

        assert record["seq"] == 3
        assert channel.latest_seq("a") == 0
        assert channel.events_since("a", 0) == []
        assert channel.latest_seq("b") == 1

    @pytest.mark.asyncio
    async def test_close_still_reaches_subscribers(self) -> None:
        channel = EventChannel()
        queue = channel.subscribe("a")

        channel.emit("a", "close", {"code": 1000, "reason": ""})

        assert queue.get_nowait()["event"] == "close"
        assert channel.is_subscribed(queue, "a")

    def test_reused_id_restarts_sequence(self) -> None:
        channel = EventChannel()
        channel.emit("a", "open")
        channel.emit("a", "close", {"code": 1000, "reason": ""})

        assert channel.emit("a", "open")["seq"] == 1

    def test_many_short_lived_connections_stay_bounded(self) -> None:
        channel = EventChannel()
        for n in range(200):
            conn_id = f"conn-{n}"
            channel.emit(conn_id, "open")
            channel.emit(conn_id, "message", {"data": "A" * 1024, "isBinary": True})
            channel.emit(conn_id, "close", {"code": 1000, "reason": ""})

        assert channel._history == {}
        assert channel._seq == {}
