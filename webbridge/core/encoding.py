"""Transport-safe encoding for binary payloads.

Every binary boundary of the bridge (HTTP bodies, inbound socket frames,
outbound socket sends) carries raw bytes as standard base64 text.
"""

import base64
import binascii

from webbridge.core.errors import EncodingError

ENCODING = "utf-8"


def encode_bytes(data: bytes | bytearray | memoryview) -> str:
    """Encode raw bytes as base64 text."""
    return base64.b64encode(bytes(data)).decode("ascii")


def encode_text(text: str) -> str:
    """Encode a text frame as the base64 of its UTF-8 bytes."""
    return encode_bytes(text.encode(ENCODING))


def decode_bytes(data: str | bytes) -> bytes:
    """Decode base64 text back to raw bytes.

    Decoding is strict: characters outside the base64 alphabet are rejected
    rather than silently discarded, so a caller that forgot to encode its
    payload gets an error instead of a corrupted frame.

    Raises:
        EncodingError: If ``data`` is not valid base64.
    """
    if isinstance(data, str):
        try:
            data = data.encode("ascii")
        except UnicodeEncodeError as e:
            raise EncodingError("Payload is not base64: contains non-ASCII characters") from e
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise EncodingError(f"Payload is not base64: {e}") from e
