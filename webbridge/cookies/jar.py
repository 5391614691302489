"""Per-domain cookie jar.

Storage is a plain dict of hostname -> list of Cookie, in arrival order.
A cookie replaces any earlier cookie of the same name in place, so each
domain holds at most one cookie per name. Expired cookies are filtered out
when a ``Cookie`` header is built; they are only removed from storage by an
explicit ``purge_expired`` call.

Example:
    jar = CookieJar()
    jar.record_response("example.com", ["session=abc; Path=/; Max-Age=60"])
    jar.cookie_header_for("example.com", "/a/b")   # "session=abc"
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from webbridge.cookies.parser import parse_set_cookie
from webbridge.cookies.types import Cookie

logger = logging.getLogger(__name__)


class CookieJar:
    """Cookies received from proxied responses, keyed by hostname.

    Not thread-safe: the jar is owned by one event loop, which is the only
    writer.
    """

    def __init__(self) -> None:
        self._cookies: dict[str, list[Cookie]] = {}

    def record_response(
        self,
        domain: str,
        set_cookie_values: Iterable[str],
        now: float | None = None,
    ) -> int:
        """Store the cookies from a response's ``Set-Cookie`` headers.

        A value that fails to parse is logged and skipped; the remaining
        values are still stored.

        Args:
            domain: Hostname the response came from.
            set_cookie_values: Raw ``Set-Cookie`` header values.
            now: Reference time for ``Max-Age``. Defaults to ``time.time()``.

        Returns:
            Number of cookies stored.
        """
        if now is None:
            now = time.time()

        stored = 0
        for raw in set_cookie_values:
            try:
                cookie = parse_set_cookie(raw, now=now)
            except Exception:
                logger.warning("Failed to parse Set-Cookie from %s: %r", domain, raw, exc_info=True)
                continue
            if cookie is None:
                logger.warning("Skipping malformed Set-Cookie from %s: %r", domain, raw)
                continue
            self._store(domain, cookie)
            stored += 1

        if stored:
            logger.debug("Stored %d cookie(s) for %s", stored, domain)
        return stored

    def _store(self, domain: str, cookie: Cookie) -> None:
        cookies = self._cookies.setdefault(domain, [])
        for index, existing in enumerate(cookies):
            if existing.name == cookie.name:
                cookies[index] = cookie
                return
        cookies.append(cookie)

    def matching_cookies(self, domain: str, path: str, now: float | None = None) -> list[Cookie]:
        """Cookies that would be sent for a request to ``domain`` + ``path``.

        A cookie matches when it has not expired and its path is a prefix of
        ``path``. Order follows storage order.
        """
        if now is None:
            now = time.time()
        return [
            cookie
            for cookie in self._cookies.get(domain, ())
            if not cookie.is_expired(now) and cookie.matches_path(path)
        ]

    def cookie_header_for(self, domain: str, path: str, now: float | None = None) -> str:
        """Build the ``Cookie`` header value for a request.

        Returns:
            ``"name=value; name2=value2"``, or an empty string when no cookie
            qualifies (the header should then be omitted).
        """
        return "; ".join(
            f"{cookie.name}={cookie.value}" for cookie in self.matching_cookies(domain, path, now)
        )

    def cookies_for(self, domain: str) -> list[Cookie]:
        """All stored cookies for a domain, expired ones included."""
        return list(self._cookies.get(domain, ()))

    def domains(self) -> list[str]:
        """Domains that have stored cookies."""
        return list(self._cookies)

    def purge_expired(self, now: float | None = None) -> int:
        """Remove expired cookies from storage.

        Returns:
            Number of cookies removed.
        """
        if now is None:
            now = time.time()

        removed = 0
        for domain in list(self._cookies):
            kept = [c for c in self._cookies[domain] if not c.is_expired(now)]
            removed += len(self._cookies[domain]) - len(kept)
            if kept:
                self._cookies[domain] = kept
            else:
                del self._cookies[domain]
        return removed

    def clear(self, domain: str | None = None) -> None:
        """Drop the cookies of one domain, or of every domain."""
        if domain is None:
            self._cookies.clear()
        else:
            self._cookies.pop(domain, None)

    def __len__(self) -> int:
        return sum(len(cookies) for cookies in self._cookies.values())

    def __contains__(self, domain: object) -> bool:
        return domain in self._cookies
