"""Core constants and paths for webbridge.

Single source of truth for global paths and protocol defaults.
"""

from pathlib import Path

BRIDGE_DIR_NAME = ".webbridge"
CONFIG_FILE_NAME = "config.json"

HTTP_SCHEMES = ("http", "https")
WEBSOCKET_SCHEMES = ("ws", "wss")

# Close code reported when the transport ends without a close frame
ABNORMAL_CLOSURE = 1006


def get_bridge_dir() -> Path:
    """Get ~/.webbridge (global config directory)."""
    return Path.home() / BRIDGE_DIR_NAME


def get_default_config_path() -> Path:
    """Get default config file path."""
    return get_bridge_dir() / CONFIG_FILE_NAME
