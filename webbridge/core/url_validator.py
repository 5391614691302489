"""URL validation for outbound HTTP and WebSocket targets.

Two levels of checking are offered:

1. ``validate_url`` is purely syntactic: absolute URL, allowed scheme and a
   hostname. It never touches the network and runs before every request.
2. ``check_public_address`` resolves the hostname and rejects addresses in
   private, loopback, link-local and cloud-metadata ranges. It only runs
   when ``HttpConfig.block_private_networks`` is enabled, for hosts that
   expose the bridge to callers they do not trust.

KNOWN LIMITATION: DNS rebinding
    The resolution in ``check_public_address`` and the one performed by the
    HTTP transport are separate lookups. A hostile DNS server can answer
    differently between them. Every returned address is checked to narrow
    the window, but network-level egress filtering is the real fix.
"""

from __future__ import annotations

import asyncio
import ipaddress
import socket
from collections.abc import Iterable
from typing import Any
from urllib.parse import SplitResult, urlsplit

from webbridge.core.errors import UrlValidationError

# Cloud metadata endpoints, always rejected
CLOUD_METADATA_IPS = [
    ipaddress.ip_address("169.254.169.254"),
    ipaddress.ip_address("fd00:ec2::254"),
]

BLOCKED_IP_RANGES = [
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("224.0.0.0/4"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
    ipaddress.ip_network("ff00::/8"),
]


def validate_url(url: str | None, schemes: Iterable[str]) -> SplitResult:
    """Check that ``url`` is an absolute URL with an allowed scheme and a host.

    Args:
        url: URL supplied by the caller.
        schemes: Accepted lowercase schemes (e.g. ``("http", "https")``).

    Returns:
        The parsed URL.

    Raises:
        UrlValidationError: If the URL is empty, unparseable, relative, uses
            another scheme or has no hostname.
    """
    if not url:
        raise UrlValidationError(url, "URL is required")
    if not isinstance(url, str):
        raise UrlValidationError(str(url), f"expected a string, got {type(url).__name__}")

    try:
        parsed = urlsplit(url.strip())
        # Accessing port validates it (raises ValueError when out of range)
        parsed.port
    except ValueError as e:
        raise UrlValidationError(url, f"failed to parse URL: {e}") from e

    allowed = tuple(schemes)
    if not parsed.scheme:
        raise UrlValidationError(url, "URL must be absolute")
    if parsed.scheme.lower() not in allowed:
        raise UrlValidationError(
            url, f"invalid scheme '{parsed.scheme}', must be one of {', '.join(allowed)}"
        )
    if not parsed.hostname:
        raise UrlValidationError(url, "no hostname in URL")

    return parsed


def _blocked_reason(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> str | None:
    """Return why ``ip`` is blocked, or None when it is a public address."""
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    if ip in CLOUD_METADATA_IPS:
        return "cloud metadata endpoint"

    for network in BLOCKED_IP_RANGES:
        if ip.version != network.version:
            continue
        if ip in network:
            return f"IP in blocked range {network}"
    return None


async def _resolve(hostname: str, port: int) -> list[tuple[Any, ...]]:
    loop = asyncio.get_running_loop()
    return await loop.getaddrinfo(hostname, port, type=socket.SOCK_STREAM)


async def check_public_address(url: str) -> None:
    """Resolve the URL's host and reject non-public destinations.

    ALL resolved addresses are checked, not just the first one.

    Raises:
        UrlValidationError: If resolution fails or any address is blocked.
    """
    parsed = urlsplit(url)
    hostname = parsed.hostname
    if not hostname:
        raise UrlValidationError(url, "no hostname in URL")

    default_port = 443 if parsed.scheme in ("https", "wss") else 80
    try:
        addr_info = await _resolve(hostname, parsed.port or default_port)
    except socket.gaierror as e:
        raise UrlValidationError(url, f"failed to resolve hostname: {e}") from e

    if not addr_info:
        raise UrlValidationError(url, "no address info found for hostname")

    for addr in addr_info:
        try:
            ip = ipaddress.ip_address(addr[4][0])
        except ValueError:
            continue
        reason = _blocked_reason(ip)
        if reason:
            raise UrlValidationError(url, reason)
