"""Result type for proxied HTTP requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

HeaderValue = str | list[str]


@dataclass(frozen=True)
class ProxyResult:
    """Outcome of one proxied HTTP call.

    ``data`` is always base64 text so binary bodies survive the trip to the
    caller. ``error`` is set only when ``success`` is False.
    """

    success: bool
    status: int
    status_text: str = ""
    headers: Mapping[str, HeaderValue] = field(default_factory=lambda: MappingProxyType({}))
    content_type: str = ""
    data: str = ""
    error: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.headers, MappingProxyType):
            object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @classmethod
    def failure(cls, status: int, error: str) -> ProxyResult:
        """Build a failed result with an empty body."""
        return cls(success=False, status=status, error=error)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the shape handed to remote callers."""
        if not self.success:
            return {
                "success": False,
                "status": self.status,
                "error": self.error,
                "data": self.data,
            }
        return {
            "success": True,
            "status": self.status,
            "statusText": self.status_text,
            "headers": {
                name: list(value) if isinstance(value, list) else value
                for name, value in self.headers.items()
            },
            "data": self.data,
            "contentType": self.content_type,
        }
