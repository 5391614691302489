"""Core errors, encoding and validation helpers."""

from webbridge.core.encoding import ENCODING, decode_bytes, encode_bytes, encode_text
from webbridge.core.errors import (
    BridgeError,
    ConfigError,
    EncodingError,
    UrlValidationError,
    sanitize_error,
)
from webbridge.core.url_validator import check_public_address, validate_url

__all__ = [
    "ENCODING",
    "BridgeError",
    "ConfigError",
    "EncodingError",
    "UrlValidationError",
    "check_public_address",
    "decode_bytes",
    "encode_bytes",
    "encode_text",
    "sanitize_error",
    "validate_url",
]
