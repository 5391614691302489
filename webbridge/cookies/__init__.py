"""Per-domain cookie storage for proxied requests."""

from webbridge.cookies.jar import CookieJar
from webbridge.cookies.parser import parse_set_cookie
from webbridge.cookies.types import Cookie

__all__ = ["Cookie", "CookieJar", "parse_set_cookie"]
