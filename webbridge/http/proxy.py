"""Outbound HTTP on behalf of callers without network access.

``HttpProxy.request`` performs one call and always returns a ProxyResult:
non-2xx statuses are ordinary results, and network failures become
``success=False`` results instead of exceptions.

Cookies are owned by the bridge's CookieJar. The httpx client's own cookie
store is disabled so that it never stores or replays cookies behind the
jar's back. Redirects are followed here rather than inside httpx so that
every hop records its ``Set-Cookie`` headers and picks up the cookies for
the next hop's host, as a browser does.
"""

from __future__ import annotations

import asyncio
import logging
from http.cookiejar import CookieJar as _StdlibCookieJar
from http.cookiejar import DefaultCookiePolicy
from typing import Any

import httpx

from webbridge.config.schema import HttpConfig
from webbridge.cookies.jar import CookieJar
from webbridge.core.constants import HTTP_SCHEMES
from webbridge.core.encoding import encode_bytes
from webbridge.core.errors import BridgeError, UrlValidationError, sanitize_error
from webbridge.core.url_validator import check_public_address, validate_url
from webbridge.http.types import HeaderValue, ProxyResult

logger = logging.getLogger(__name__)

# Status reported when a call fails without any HTTP response
FAILURE_STATUS = 500
INVALID_REQUEST_STATUS = 400


class RedirectLimitError(BridgeError):
    """Raised when a request is redirected more times than allowed."""

    def __init__(self, response: httpx.Response, max_redirects: int) -> None:
        self.response = response
        super().__init__(f"Maximum number of redirects exceeded ({max_redirects})")


class _RejectAllCookiesPolicy(DefaultCookiePolicy):
    """Cookie policy that never stores or returns a cookie."""

    def set_ok(self, cookie: Any, request: Any) -> bool:
        return False

    def return_ok(self, cookie: Any, request: Any) -> bool:
        return False


def _request_path(url: httpx.URL) -> str:
    return url.path or "/"


def _response_headers(response: httpx.Response) -> dict[str, HeaderValue]:
    """Flatten response headers into a name -> value mapping.

    Repeated headers are joined with ``", "`` except ``set-cookie``, which
    stays a list because cookie values may themselves contain commas.
    httpx has already decoded any Content-Encoding, so that header is
    dropped and Content-Length is corrected to the decoded size.
    """
    headers: dict[str, HeaderValue] = {}
    for name in response.headers.keys():
        values = response.headers.get_list(name)
        if name == "set-cookie":
            headers[name] = values
        else:
            headers[name] = ", ".join(values)

    if headers.pop("content-encoding", None) is not None and "content-length" in headers:
        headers["content-length"] = str(len(response.content))
    return headers


class HttpProxy:
    """Performs proxied HTTP requests and keeps the cookie jar up to date.

    Usage:
        async with HttpProxy(CookieJar()) as proxy:
            result = await proxy.request("https://example.com/", "GET")
            print(result.status, result.data)
    """

    def __init__(
        self,
        jar: CookieJar,
        config: HttpConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the proxy.

        Args:
            jar: Cookie jar consulted before and updated after each request.
            config: HTTP settings. Defaults to HttpConfig().
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests.
        """
        self._jar = jar
        self._config = config or HttpConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def jar(self) -> CookieJar:
        return self._jar

    @property
    def config(self) -> HttpConfig:
        return self._config

    async def __aenter__(self) -> HttpProxy:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                verify=self._config.verify_ssl,
                follow_redirects=False,
                cookies=_StdlibCookieJar(policy=_RejectAllCookiesPolicy()),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying httpx client. A later request reopens it."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        url: str | None,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> ProxyResult:
        """Proxy one HTTP request.

        Args:
            url: Absolute http(s) URL.
            method: HTTP method, case-insensitive.
            headers: Caller headers. Host and Origin are removed.
            body: Request body, sent only for POST/PUT/PATCH. bytes and str
                are sent as-is; other values are JSON-encoded.

        Returns:
            A ProxyResult. Never raises for HTTP or network failures.
        """
        method = (method or "GET").upper()

        try:
            validate_url(url, HTTP_SCHEMES)
            if self._config.block_private_networks:
                await check_public_address(url)
        except UrlValidationError as e:
            logger.warning("Rejected %s request: %s", method, e.message)
            error = e.reason if not url else e.message
            return ProxyResult.failure(INVALID_REQUEST_STATUS, error)

        logger.info("Proxying %s request to: %s", method, url)
        try:
            response = await asyncio.wait_for(
                self._dispatch(url, method, headers or {}, body),
                timeout=self._config.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Request timed out: %s %s", method, url)
            return ProxyResult.failure(
                FAILURE_STATUS, f"Timeout of {self._config.timeout:g}s exceeded"
            )
        except RedirectLimitError as e:
            logger.warning("Too many redirects: %s %s", method, url)
            return ProxyResult.failure(e.response.status_code, e.message)
        except httpx.TimeoutException as e:
            logger.warning("Request timed out: %s %s (%s)", method, url, type(e).__name__)
            return ProxyResult.failure(
                FAILURE_STATUS, f"Timeout of {self._config.timeout:g}s exceeded"
            )
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as e:
            logger.warning("Request failed: %s %s: %s", method, url, e)
            return ProxyResult.failure(FAILURE_STATUS, sanitize_error(e))
        except Exception as e:
            logger.exception("Unexpected error proxying %s %s", method, url)
            return ProxyResult.failure(FAILURE_STATUS, sanitize_error(e))

        content = response.content
        content_type = response.headers.get("content-type") or self._config.default_content_type
        logger.info(
            "Response received: status=%d, contentType=%s, dataSize=%d bytes",
            response.status_code,
            content_type,
            len(content),
        )
        return ProxyResult(
            success=True,
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=_response_headers(response),
            content_type=content_type,
            data=encode_bytes(content),
        )

    def _prepare_headers(self, headers: dict[str, str]) -> dict[str, str]:
        stripped = set(self._config.stripped_headers)
        prepared = {
            name: value
            for name, value in headers.items()
            if name.lower() not in stripped and value is not None
        }
        if self._config.user_agent and not any(n.lower() == "user-agent" for n in prepared):
            prepared["User-Agent"] = self._config.user_agent
        return prepared

    def _body_kwargs(self, method: str, body: Any) -> dict[str, Any]:
        if body is None or method not in self._config.body_methods:
            return {}
        if isinstance(body, (bytes, bytearray, str)):
            return {"content": body}
        return {"json": body}

    def _attach_cookies(self, request: httpx.Request, replace: bool) -> None:
        """Set the jar's Cookie header on ``request``.

        With ``replace`` False a caller-supplied Cookie header survives when
        the jar has nothing for this host and path.
        """
        header = self._jar.cookie_header_for(request.url.host, _request_path(request.url))
        if replace:
            request.headers.pop("cookie", None)
        if header:
            request.headers["Cookie"] = header

    def _record_cookies(self, request: httpx.Request, response: httpx.Response) -> None:
        set_cookies = response.headers.get_list("set-cookie")
        if set_cookies:
            self._jar.record_response(request.url.host, set_cookies)

    async def _dispatch(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: Any,
    ) -> httpx.Response:
        client = self._get_client()
        request = client.build_request(
            method,
            url,
            headers=self._prepare_headers(headers),
            **self._body_kwargs(method, body),
        )

        redirects = 0
        while True:
            self._attach_cookies(request, replace=redirects > 0)
            response = await client.send(request)
            self._record_cookies(request, response)

            if not response.is_redirect or response.next_request is None:
                return response
            if redirects >= self._config.max_redirects:
                raise RedirectLimitError(response, self._config.max_redirects)

            redirects += 1
            request = response.next_request
            logger.debug(
                "Following redirect %d/%d to %s",
                redirects,
                self._config.max_redirects,
                request.url,
            )
