"""Typed exception hierarchy for webbridge."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all webbridge errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(BridgeError):
    """Raised for configuration issues (missing file, invalid JSON, validation failure)."""


class EncodingError(BridgeError):
    """Raised when a payload is not valid transport-safe (base64) text."""


class UrlValidationError(BridgeError):
    """Raised when a URL is missing, malformed or points somewhere disallowed."""

    def __init__(self, url: str | None, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL '{url}': {reason}")


def sanitize_error(error: BaseException) -> str:
    """Turn an exception into a message fit for a failure result.

    Transport exceptions sometimes carry an empty message (httpx timeouts,
    cancelled handshakes). Those fall back to the exception class name so
    the caller never receives an empty ``error`` field.

    Args:
        error: The exception to describe.

    Returns:
        A non-empty, single-line message.
    """
    if isinstance(error, BridgeError):
        message = error.message
    else:
        message = str(error)

    message = " ".join(message.split())
    if not message:
        return type(error).__name__
    return message
