"""Caching fetch clients for cacheproxy.

Provides synchronous and asynchronous clients that wrap :mod:`httpx` with
deterministic cache keys, TTL response caching, raw-body decoding and
timeout/transport error mapping.

Classes:
    :class:`FetchClient` -- blocking client backed by :class:`httpx.Client`.
    :class:`AsyncFetchClient` -- non-blocking client backed by :class:`httpx.AsyncClient`.

Both clients share one contract: ``request(url, method=..., headers=...,
body=..., cache_key=..., skip_cache=..., response_type=..., timeout=...)``
returning a :class:`~cacheproxy.models.FetchResult`.

Example::

    from cacheproxy.client import FetchClient

    with FetchClient(default_ttl=30) as client:
        result = client.get("https://api.example.com/data")
"""

from cacheproxy.client.async_client import AsyncFetchClient
from cacheproxy.client.keys import build_cache_key
from cacheproxy.client.sync_client import FetchClient

__all__ = ["FetchClient", "AsyncFetchClient", "build_cache_key"]
