"""Parsing of ``Set-Cookie`` header values.

Only the attributes a session-carrying proxy needs are understood: Path,
Expires, Max-Age, HttpOnly and Secure. Domain, SameSite and anything else
are ignored; cookies are always scoped to the host that set them.
"""

from __future__ import annotations

import logging
import time
from datetime import timezone
from email.utils import parsedate_to_datetime

from webbridge.cookies.types import Cookie

logger = logging.getLogger(__name__)


def _parse_expires(value: str) -> float | None:
    """Convert an HTTP date to a POSIX timestamp, None if unparseable."""
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        # "-0000" dates come back naive; HTTP dates are always UTC
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def parse_set_cookie(raw: str, now: float | None = None) -> Cookie | None:
    """Parse one ``Set-Cookie`` value into a Cookie.

    The first ``;``-separated segment is the name/value pair, split on its
    first ``=``. Remaining segments are attributes matched
    case-insensitively. ``Max-Age`` overrides ``Expires`` wherever it
    appears.

    Args:
        raw: Header value, e.g. ``"session=abc; Path=/; Max-Age=60"``.
        now: Reference time for ``Max-Age``. Defaults to ``time.time()``.

    Returns:
        The cookie, or None when the name/value pair is missing or has an
        empty name.
    """
    if not raw:
        return None

    pair, *attributes = raw.split(";")
    if "=" not in pair:
        return None
    name, value = pair.split("=", 1)
    name = name.strip()
    if not name:
        return None

    path = "/"
    expires: float | None = None
    max_age: int | None = None
    http_only = False
    secure = False

    for segment in attributes:
        attr_name, _, attr_value = segment.partition("=")
        attr_name = attr_name.strip().lower()
        attr_value = attr_value.strip()

        if attr_name == "path":
            if attr_value:
                path = attr_value
        elif attr_name == "expires":
            parsed = _parse_expires(attr_value)
            if parsed is None:
                logger.debug("Ignoring unparseable Expires for cookie %s: %r", name, attr_value)
            else:
                expires = parsed
        elif attr_name == "max-age":
            try:
                max_age = int(attr_value)
            except ValueError:
                logger.debug("Ignoring non-integer Max-Age for cookie %s: %r", name, attr_value)
        elif attr_name == "httponly":
            http_only = True
        elif attr_name == "secure":
            secure = True

    if max_age is not None:
        expires = (time.time() if now is None else now) + max_age

    return Cookie(
        name=name,
        value=value.strip(),
        path=path,
        expires=expires,
        http_only=http_only,
        secure=secure,
    )
