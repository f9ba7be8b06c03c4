"""State and pipeline steps shared by the sync and async fetch clients.

Both clients run the same sequence around a single network transfer:

1. :meth:`_FetchClientBase._prepare` -- normalise method and headers, tag
   the body, derive the cache key.
2. :meth:`_FetchClientBase._lookup` -- serve a fresh cached result.
3. transfer -- implemented by each client on top of :mod:`httpx`.
4. :meth:`_FetchClientBase._store` -- cache 2xx/3xx results.

Only the transfer differs between :class:`~cacheproxy.client.FetchClient`
and :class:`~cacheproxy.client.AsyncFetchClient`.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx

from cacheproxy.cache import TTLCache, validate_ttl
from cacheproxy.client.keys import build_cache_key
from cacheproxy.client.payload import prepare_payload
from cacheproxy.client.response import is_cacheable_status
from cacheproxy.exceptions import InvalidUsageError, RequestTimeoutError, TransportError
from cacheproxy.models import FetchResult, RequestBody, coerce_body
from cacheproxy.output import get_output

_TIMEOUT_PATTERN = re.compile(r"timeout|timed out", re.IGNORECASE)


@dataclass
class PreparedRequest:
    """A request after normalisation, ready for lookup and transfer."""

    method: str
    url: str
    headers: dict[str, str]
    body: Optional[RequestBody]
    key: str

    def payload(self) -> Optional[Union[bytes, str]]:
        """Outbound content; may add a default content-type to :attr:`headers`."""
        return prepare_payload(self.body, self.headers)


class _FetchClientBase:
    """Cache ownership, key derivation and error mapping for fetch clients.

    Args:
        cache: The cache to read from and write to.  A new
            :class:`~cacheproxy.cache.TTLCache` is created when omitted.
        default_ttl: TTL in seconds for stored responses.  Defaults to the
            cache's own default TTL.
        timeout: Default transfer timeout in seconds; ``None`` disables it.
        transport: Optional :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.
        follow_redirects: Whether redirects are followed transparently.
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        default_ttl: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Any = None,
        follow_redirects: bool = True,
    ) -> None:
        if cache is None:
            cache = TTLCache() if default_ttl is None else TTLCache(default_ttl)
        self._cache = cache
        self._default_ttl = (
            cache.default_ttl if default_ttl is None else validate_ttl(default_ttl, "default_ttl")
        )
        self._timeout = timeout
        self._transport = transport
        self._follow_redirects = follow_redirects

    @property
    def cache(self) -> TTLCache:
        """The cache this client reads from and writes to."""
        return self._cache

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def invalidate(self, key: str) -> None:
        """Delete one cache entry by key; a missing key is not an error."""
        self._cache.delete(key)

    def clear_cache(self) -> None:
        """Remove every cached response."""
        self._cache.clear()

    # ------------------------------------------------------------------ #
    # Pipeline steps
    # ------------------------------------------------------------------ #

    def _client_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "timeout": self._timeout,
            "follow_redirects": self._follow_redirects,
        }
        if self._transport is not None:
            options["transport"] = self._transport
        return options

    def _prepare(
        self,
        url: str,
        method: str,
        headers: Optional[dict[str, str]],
        body: Any,
        cache_key: Optional[str],
    ) -> PreparedRequest:
        normalized_method = method.upper()
        request_headers = dict(headers or {})
        request_body = coerce_body(body)
        key = cache_key or build_cache_key(normalized_method, url, request_headers, request_body)
        return PreparedRequest(normalized_method, url, request_headers, request_body, key)

    def _effective_timeout(self, timeout: Optional[float]) -> Optional[float]:
        return self._timeout if timeout is None else timeout

    @staticmethod
    def _deadline(timeout: Optional[float]) -> Optional[float]:
        """Monotonic instant by which the whole transfer must be done."""
        return None if timeout is None else time.monotonic() + timeout

    @staticmethod
    def _check_deadline(deadline: Optional[float], timeout: Optional[float]) -> None:
        if deadline is not None and time.monotonic() >= deadline:
            raise RequestTimeoutError(timeout)

    def _lookup(self, prepared: PreparedRequest) -> Optional[FetchResult]:
        cached = self._cache.get(prepared.key)
        if cached is None:
            get_output().debug(f"Cache miss: {prepared.method} {prepared.url}")
            return None
        get_output().debug(f"Cache hit: {prepared.method} {prepared.url}")
        return cached.model_copy(update={"from_cache": True}, deep=True)

    def _store(self, prepared: PreparedRequest, result: FetchResult) -> None:
        if not is_cacheable_status(result.status):
            get_output().debug(
                f"Not caching HTTP {result.status}: {prepared.method} {prepared.url}"
            )
            return
        self._cache.set(prepared.key, result.model_copy(deep=True), self._default_ttl)
        get_output().debug(f"Cached HTTP {result.status}: {prepared.method} {prepared.url}")

    def _map_error(self, exc: Exception, timeout: Optional[float]) -> Exception:
        """Translate an :mod:`httpx` failure into a cacheproxy exception."""
        if isinstance(exc, httpx.TimeoutException):
            return RequestTimeoutError(timeout)
        if isinstance(exc, httpx.InvalidURL):
            return InvalidUsageError(f"Invalid URL: {exc}")
        if timeout is not None and _TIMEOUT_PATTERN.search(str(exc)):
            return RequestTimeoutError(timeout)
        return TransportError(str(exc) or exc.__class__.__name__)
