"""Pydantic models for webbridge configuration validation."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HttpConfig(BaseModel):
    """Settings for proxied HTTP requests.

    Example in config.json:
        "http": {
            "timeout": 15,
            "max_redirects": 3,
            "stripped_headers": ["host", "origin", "referer"]
        }
    """

    model_config = ConfigDict(extra="forbid")

    timeout: float = Field(default=30.0, gt=0)
    """Overall deadline in seconds for one request, redirects included."""

    max_redirects: int = Field(default=5, ge=0, le=20)
    """Maximum redirect hops followed before the request fails."""

    default_content_type: str = "text/html"
    """Content type reported when the response has none."""

    verify_ssl: bool = True
    """Verify target TLS certificates. Only disable for trusted test servers."""

    stripped_headers: list[str] = Field(default_factory=lambda: ["host", "origin"])
    """Caller headers dropped before dispatch (matched case-insensitively)."""

    body_methods: list[str] = Field(default_factory=lambda: ["POST", "PUT", "PATCH"])
    """Methods for which a caller-supplied body is sent."""

    block_private_networks: bool = False
    """Resolve target hosts and refuse private, loopback and metadata addresses."""

    user_agent: str | None = None
    """User-Agent sent when the caller supplies none. None keeps the httpx default."""

    @field_validator("stripped_headers")
    @classmethod
    def _lowercase_headers(cls, v: list[str]) -> list[str]:
        return [h.strip().lower() for h in v if h.strip()]

    @field_validator("body_methods")
    @classmethod
    def _uppercase_methods(cls, v: list[str]) -> list[str]:
        return [m.strip().upper() for m in v if m.strip()]


class WebSocketConfig(BaseModel):
    """Settings for relayed WebSocket connections."""

    model_config = ConfigDict(extra="forbid")

    open_timeout: float | None = Field(default=10.0, gt=0)
    """Timeout for the opening handshake. None waits indefinitely."""

    close_timeout: float | None = Field(default=10.0, gt=0)
    """Timeout for the closing handshake."""

    ping_interval: float | None = Field(default=20.0, gt=0)
    """Keepalive ping interval. None disables keepalive."""

    ping_timeout: float | None = Field(default=20.0, gt=0)
    """Time to wait for a pong before the connection is considered dead."""

    max_size: int | None = Field(default=2**20, gt=0)
    """Maximum inbound message size in bytes. None removes the limit."""

    attach_cookies: bool = True
    """Send the cookie jar's matching cookies on the opening handshake."""


class EventConfig(BaseModel):
    """Settings for the outbound event channel."""

    model_config = ConfigDict(extra="forbid")

    max_queue_size: int = Field(default=1000, ge=1)
    """Maximum undelivered events per subscriber before events are dropped."""

    history_size: int = Field(default=100, ge=0)
    """Events kept per connection id for replay."""

    drop_limit: int = Field(default=10, ge=1)
    """Consecutive drops before a slow subscriber is disconnected."""


class BridgeConfig(BaseModel):
    """Root configuration for webbridge."""

    model_config = ConfigDict(extra="forbid")

    http: HttpConfig = Field(default_factory=HttpConfig)
    websocket: WebSocketConfig = Field(default_factory=WebSocketConfig)
    events: EventConfig = Field(default_factory=EventConfig)

    transport_debug: bool = False
    """Route httpx, httpcore and websockets debug logs to stderr while the bridge runs."""
