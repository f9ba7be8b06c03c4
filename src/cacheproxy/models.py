"""Canonical Pydantic models shared across all cacheproxy modules.

This is the single source of truth for data shapes in the project.  The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`RequestConfig`, :class:`ServerConfig`,
    and :class:`Settings`.

**Pipeline models** -- produced and consumed by the fetch clients:
    :class:`ResponseType`, :class:`BodyKind`, :class:`BinaryBody`,
    :class:`StructuredBody`, :class:`ScalarBody`, :class:`FetchResult`,
    and :class:`ProxyResponse`.

All models use Pydantic v2.  Pipeline models are frozen: a
:class:`FetchResult` is never mutated once produced, and cache hits hand out
copies rather than the stored instance.
"""

from __future__ import annotations

import enum
import math
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Configuration models ---


class CacheConfig(BaseModel):
    """Response cache settings stored in :class:`Settings`."""

    ttl_seconds: Optional[float] = Field(
        default=60.0,
        description="Cache TTL in seconds; null means entries never expire",
    )

    @field_validator("ttl_seconds")
    @classmethod
    def _check_ttl(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not value > 0:
            raise ValueError("ttl_seconds must be a positive number or null")
        return value

    @property
    def ttl(self) -> float:
        """The TTL as used by the cache (``math.inf`` when unset)."""
        return math.inf if self.ttl_seconds is None else self.ttl_seconds


class RequestConfig(BaseModel):
    """Default outbound request settings."""

    timeout: Optional[float] = Field(
        default=None, description="Request timeout in seconds; null disables it"
    )


class ServerConfig(BaseModel):
    """Proxy server binding and fallback target."""

    host: str = Field(default="127.0.0.1", description="Interface to bind")
    port: int = Field(default=3000, ge=0, le=65535, description="Port to bind (0 = ephemeral)")
    api_url: Optional[str] = Field(
        default=None, description="Target used when /proxy is called without ?url="
    )


class Settings(BaseModel):
    """User-wide configuration persisted at ``~/.config/cacheproxy/config.json``.

    Loaded and saved by :func:`~cacheproxy.config.load_settings` and
    :func:`~cacheproxy.config.save_settings`.  Fields here have the lowest
    precedence and can be overridden by environment variables or CLI flags;
    see :func:`~cacheproxy.config.resolve_settings`.
    """

    cache: CacheConfig = Field(default_factory=CacheConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


# --- Pipeline models ---


class ResponseType(str, enum.Enum):
    """How a response body is decoded into :attr:`FetchResult.data`.

    ``AUTO`` parses JSON only when the response is labelled
    ``application/json`` and returns text otherwise.
    """

    AUTO = "auto"
    BUFFER = "buffer"
    TEXT = "text"
    JSON = "json"


class BodyKind(str, enum.Enum):
    """Tag carried by every request body variant."""

    BINARY = "binary"
    STRUCTURED = "structured"
    SCALAR = "scalar"


class BinaryBody(BaseModel):
    """Raw bytes sent unchanged; base64-encoded in the cache key."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[BodyKind.BINARY] = BodyKind.BINARY
    data: bytes


class StructuredBody(BaseModel):
    """A JSON-serialisable object or array, sent as ``application/json``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[BodyKind.STRUCTURED] = BodyKind.STRUCTURED
    data: Any


class ScalarBody(BaseModel):
    """A string, number or boolean, sent as ``text/plain``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[BodyKind.SCALAR] = BodyKind.SCALAR
    value: Any

    @property
    def text(self) -> str:
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)


RequestBody = Union[BinaryBody, StructuredBody, ScalarBody]


def coerce_body(value: Any) -> Optional[RequestBody]:
    """Wrap a plain Python value in the matching :data:`RequestBody` variant.

    Already-tagged bodies are returned as-is and ``None`` means "no body".

    Example::

        coerce_body(b"\\x00\\x01")     # BinaryBody
        coerce_body({"q": "cats"})    # StructuredBody
        coerce_body(42)               # ScalarBody
    """
    if value is None:
        return None
    if isinstance(value, (BinaryBody, StructuredBody, ScalarBody)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BinaryBody(data=bytes(value))
    if isinstance(value, (dict, list, tuple)):
        return StructuredBody(data=value)
    return ScalarBody(value=value)


class FetchResult(BaseModel):
    """A normalised upstream response, either fresh or served from cache.

    ``from_cache`` is never stored: the cached copy always carries
    ``False`` and the client sets the flag on the copy it returns.
    """

    model_config = ConfigDict(frozen=True)

    status: int
    headers: dict[str, str] = Field(default_factory=dict)
    data: Any = None
    raw_body: bytes = b""
    from_cache: bool = False

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


class ProxyResponse(BaseModel):
    """What the proxy front end needs to answer one inbound request."""

    model_config = ConfigDict(frozen=True)

    status: int
    data: Any = None
    from_cache: bool = False

    def to_payload(self) -> dict[str, Any]:
        """JSON body sent back to the proxy caller."""
        return {
            "data": self.data,
            "fromCache": self.from_cache,
            "status": self.status,
        }
