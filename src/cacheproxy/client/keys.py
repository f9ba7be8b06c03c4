"""Deterministic cache keys for outbound requests.

A key is built from the upper-cased method, the URL, the request headers
and the serialised body::

    GET::https://api.example.com/users::[["accept","application/json"]]::

Header names are lower-cased and sorted before serialisation so that two
requests differing only in header case or insertion order share a key.
Bodies are serialised by kind: binary as base64, structured as canonical
JSON (sorted keys, compact separators), scalar as text (booleans lower-case).
"""

from __future__ import annotations

import base64
import json
from typing import Any, Mapping, Optional

from cacheproxy.models import BodyKind, RequestBody, coerce_body


def normalize_headers(headers: Optional[Mapping[str, str]]) -> list[tuple[str, str]]:
    """Return header pairs with lower-cased names, sorted by name."""
    pairs = [(name.lower(), str(value)) for name, value in (headers or {}).items()]
    return sorted(pairs)


def serialize_body(body: Optional[RequestBody]) -> str:
    """Serialise *body* into the form used inside a cache key."""
    if body is None:
        return ""
    if body.kind is BodyKind.BINARY:
        return base64.b64encode(body.data).decode("ascii")
    if body.kind is BodyKind.STRUCTURED:
        return json.dumps(body.data, sort_keys=True, separators=(",", ":"), default=str)
    return body.text


def build_cache_key(
    method: str,
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    body: Any = None,
) -> str:
    """Derive the cache key for a request.

    Args:
        method: HTTP method; case-insensitive.
        url: Target URL, used verbatim.
        headers: Request headers as supplied by the caller.
        body: A :data:`~cacheproxy.models.RequestBody` or a plain value
            accepted by :func:`~cacheproxy.models.coerce_body`.

    Returns:
        The key string.
    """
    serialized_headers = json.dumps(
        [list(pair) for pair in normalize_headers(headers)], separators=(",", ":")
    )
    serialized_body = serialize_body(coerce_body(body))
    return f"{method.upper()}::{url}::{serialized_headers}::{serialized_body}"
