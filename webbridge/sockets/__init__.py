"""WebSocket connections relayed by caller-assigned id."""

from webbridge.sockets.registry import SocketRegistry
from webbridge.sockets.types import SocketEntry, SocketState

__all__ = ["SocketEntry", "SocketRegistry", "SocketState"]
