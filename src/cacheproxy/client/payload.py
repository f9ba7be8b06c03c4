"""Outbound payload preparation.

Turns a tagged request body into the bytes or text handed to :mod:`httpx`
and adds a default ``content-type`` header when the caller did not supply
one.
"""

from __future__ import annotations

import json
from typing import Optional, Union

from cacheproxy.models import BodyKind, RequestBody

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain"


def has_header(headers: dict[str, str], name: str) -> bool:
    """Case-insensitive header presence check."""
    wanted = name.lower()
    return any(key.lower() == wanted for key in headers)


def ensure_header(headers: dict[str, str], name: str, value: str) -> None:
    """Set *name* on *headers* unless a header of that name exists in any case."""
    if not has_header(headers, name):
        headers[name] = value


def prepare_payload(
    body: Optional[RequestBody],
    headers: dict[str, str],
) -> Optional[Union[bytes, str]]:
    """Return the content to send for *body*, updating *headers* in place.

    Binary bodies pass through unchanged.  Structured bodies are sent as
    JSON and scalar bodies as their string form; both get a default
    ``content-type`` only when the caller has not set one.
    """
    if body is None:
        return None
    if body.kind is BodyKind.BINARY:
        return body.data
    if body.kind is BodyKind.STRUCTURED:
        ensure_header(headers, "content-type", JSON_CONTENT_TYPE)
        return json.dumps(body.data, default=str)
    ensure_header(headers, "content-type", TEXT_CONTENT_TYPE)
    return body.text
