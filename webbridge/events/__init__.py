"""Outbound lifecycle event delivery."""

from webbridge.events.channel import (
    ALL_CONNECTIONS,
    CLOSE_EVENT,
    EventChannel,
    EventSink,
    make_topic,
)

__all__ = ["ALL_CONNECTIONS", "CLOSE_EVENT", "EventChannel", "EventSink", "make_topic"]
