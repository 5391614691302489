"""Configuration loading with fail-fast behavior and layered merging.

Layers, later overriding earlier:
1. Global user config (~/.webbridge/config.json)
2. Project local config (cwd/.webbridge/config.json)

Missing layers are skipped; with no config files at all, the Pydantic
defaults apply. A layer that exists but cannot be used is an error, never
silently ignored.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from webbridge.config.schema import BridgeConfig
from webbridge.core.constants import BRIDGE_DIR_NAME, CONFIG_FILE_NAME, get_default_config_path
from webbridge.core.errors import ConfigError
from webbridge.core.utils import deep_merge

logger = logging.getLogger(__name__)


def load_config(path: Path | None = None, cwd: Path | None = None) -> BridgeConfig:
    """Load configuration from file with layered merging.

    Args:
        path: Explicit config file path. If provided, skips layered loading
            and the file must exist.
        cwd: Working directory for the local layer. Defaults to Path.cwd().

    Returns:
        Validated BridgeConfig object.

    Raises:
        ConfigError: If any config file is unreadable, contains invalid JSON,
            or the merged config fails validation.
    """
    if path is not None:
        data = _read_layer(path, required=True)
        return _validate(data or {}, [path])

    effective_cwd = cwd or Path.cwd()
    merged: dict[str, Any] = {}
    loaded_from: list[Path] = []

    for layer in (
        get_default_config_path(),
        effective_cwd / BRIDGE_DIR_NAME / CONFIG_FILE_NAME,
    ):
        # cwd may be the home directory, in which case both layers are one file
        if layer.resolve() in (p.resolve() for p in loaded_from):
            continue
        data = _read_layer(layer, required=False)
        if data:
            merged = deep_merge(merged, data)
            loaded_from.append(layer)

    if not loaded_from:
        logger.debug("No config files found, using Pydantic defaults")
        return BridgeConfig()

    logger.info("Config loaded from: %s", [str(p) for p in loaded_from])
    return _validate(merged, loaded_from)


def _read_layer(path: Path, required: bool) -> dict[str, Any] | None:
    """Read one JSON config layer.

    Returns None for a missing optional layer and {} for an empty file.

    Raises:
        ConfigError: If a required layer is missing, or the file can't be
            read, isn't JSON, or isn't a JSON object.
    """
    if not path.is_file():
        if required:
            raise ConfigError(f"Config file not found: {path}")
        logger.debug("Config layer not present: %s", path)
        return None

    try:
        # utf-8-sig tolerates the BOM some Windows editors write
        text = path.read_text(encoding="utf-8-sig").strip()
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    if not text:
        return {}

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file {path} must hold a JSON object, got {type(data).__name__}"
        )
    return data


def _validate(data: dict[str, Any], sources: list[Path]) -> BridgeConfig:
    try:
        return BridgeConfig.model_validate(data)
    except ValidationError as e:
        names = ", ".join(str(p) for p in sources)
        raise ConfigError(f"Config validation failed (from {names}): {e}") from e
