"""webbridge: HTTP and WebSocket bridge for hosts without direct network access."""

from webbridge.bridge import WebBridge
from webbridge.config.schema import BridgeConfig
from webbridge.cookies.jar import CookieJar
from webbridge.events.channel import EventChannel
from webbridge.http.proxy import HttpProxy
from webbridge.http.types import ProxyResult
from webbridge.lifecycle import LifecycleManager
from webbridge.sockets.registry import SocketRegistry

__version__ = "0.1.0"

__all__ = [
    "BridgeConfig",
    "CookieJar",
    "EventChannel",
    "HttpProxy",
    "LifecycleManager",
    "ProxyResult",
    "SocketRegistry",
    "WebBridge",
]
