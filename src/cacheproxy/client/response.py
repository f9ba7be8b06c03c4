"""Response normalisation -- maps raw upstream bytes to re-servable data.

The fetch clients always read the raw body themselves and never let
:mod:`httpx` decode it.  :func:`decode_body` then applies the requested
:class:`~cacheproxy.models.ResponseType`, and :func:`build_result` freezes
everything into a :class:`~cacheproxy.models.FetchResult`.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from cacheproxy.exceptions import InvalidJsonResponseError
from cacheproxy.models import FetchResult, ResponseType


def is_json_content_type(content_type: str) -> bool:
    """Return ``True`` if *content_type* mentions ``application/json``."""
    return "application/json" in (content_type or "").lower()


def decode_body(raw: bytes, content_type: str, response_type: ResponseType) -> Any:
    """Decode *raw* according to *response_type*.

    Args:
        raw: The complete response body.
        content_type: The response ``content-type`` header (may be empty).
        response_type: ``BUFFER`` returns *raw* untouched, ``TEXT`` the
            UTF-8 text, ``JSON`` the parsed document, and ``AUTO`` parses
            JSON only for ``application/json`` responses.

    Returns:
        ``bytes``, ``str``, or a JSON value.  An empty body decodes to
        ``None`` whenever JSON parsing applies.

    Raises:
        InvalidJsonResponseError: If JSON parsing applies and the body is
            not valid JSON.
    """
    response_type = ResponseType(response_type)
    if response_type is ResponseType.BUFFER:
        return raw

    text = raw.decode("utf-8", errors="replace")
    if response_type is ResponseType.TEXT:
        return text

    if response_type is ResponseType.JSON or is_json_content_type(content_type):
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidJsonResponseError(f"Failed to parse JSON response: {exc}") from exc

    return text


def build_result(
    status: int,
    headers: Mapping[str, str],
    raw: bytes,
    response_type: ResponseType,
) -> FetchResult:
    """Decode *raw* and wrap it in a fresh (not-from-cache) :class:`FetchResult`."""
    response_headers = {name.lower(): value for name, value in headers.items()}
    data = decode_body(raw, response_headers.get("content-type", ""), response_type)
    return FetchResult(
        status=status,
        headers=response_headers,
        data=data,
        raw_body=raw,
        from_cache=False,
    )


def is_cacheable_status(status: int) -> bool:
    """Only 2xx and 3xx responses are written to the cache."""
    return 200 <= status < 400
