"""Cookie value type."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Cookie:
    """One cookie as stored in the jar.

    Attributes:
        name: Cookie name, unique within a domain.
        value: Cookie value, possibly empty.
        path: Path prefix the cookie applies to.
        expires: Absolute POSIX timestamp, or None for a session cookie.
        http_only: HttpOnly flag as sent by the server.
        secure: Secure flag as sent by the server.
    """

    name: str
    value: str = ""
    path: str = "/"
    expires: float | None = None
    http_only: bool = False
    secure: bool = False

    def is_expired(self, now: float) -> bool:
        """True once the expiry time has been reached."""
        return self.expires is not None and self.expires <= now

    def matches_path(self, request_path: str) -> bool:
        """True if the request path falls under this cookie's path."""
        return request_path.startswith(self.path)
