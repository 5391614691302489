"""Types for the WebSocket registry."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection


class SocketState(str, Enum):
    """Lifecycle of one relayed connection."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(eq=False)
class SocketEntry:
    """One registered connection.

    Attributes:
        id: Caller-assigned id, unique among registered entries.
        url: ws:// or wss:// URL being connected to.
        state: Current lifecycle state.
        connection: The websockets connection, set once the handshake succeeds.
        task: Reader task that connects, relays frames and reports closure.
        close_reported: True once the close event has been emitted.
    """

    id: str
    url: str
    state: SocketState = SocketState.CONNECTING
    connection: ClientConnection | None = None
    task: asyncio.Task[None] | None = None
    close_reported: bool = False
