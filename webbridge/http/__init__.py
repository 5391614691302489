"""Proxied HTTP requests."""

from webbridge.http.proxy import HttpProxy, RedirectLimitError
from webbridge.http.types import ProxyResult

__all__ = ["HttpProxy", "ProxyResult", "RedirectLimitError"]
