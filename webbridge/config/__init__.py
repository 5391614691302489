"""Configuration loading and validation."""

from webbridge.config.loader import load_config
from webbridge.config.schema import BridgeConfig, EventConfig, HttpConfig, WebSocketConfig

__all__ = [
    "BridgeConfig",
    "EventConfig",
    "HttpConfig",
    "WebSocketConfig",
    "load_config",
]
