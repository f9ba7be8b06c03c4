"""Synchronous caching fetch client.

This module provides :class:`FetchClient`, the blocking client behind the
proxy server and the ``cacheproxy fetch`` command.  It wraps
:class:`httpx.Client` and layers on:

- **Deterministic cache keys** -- method, URL, headers (case- and
  order-insensitive) and body, see :mod:`cacheproxy.client.keys`.
- **TTL caching** -- 2xx/3xx responses are stored in a
  :class:`~cacheproxy.cache.TTLCache`; hits never touch the network.
- **Raw transfers** -- the body is always read as bytes and decoded here,
  whatever the status code.
- **Error mapping** -- timeouts become
  :class:`~cacheproxy.exceptions.RequestTimeoutError`, other network
  failures :class:`~cacheproxy.exceptions.TransportError`.

There are no retries: every failure reaches the caller.

See Also:
    :class:`~cacheproxy.client.async_client.AsyncFetchClient` for the
    equivalent non-blocking implementation.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional, Union

import httpx

from cacheproxy.cache import TTLCache
from cacheproxy.client.base import PreparedRequest, _FetchClientBase
from cacheproxy.client.response import build_result
from cacheproxy.models import FetchResult, ResponseType


class FetchClient(_FetchClientBase):
    """Blocking HTTP client that serves fresh responses from a TTL cache.

    Can be used as a context manager, in which case one pooled
    :class:`httpx.Client` serves every request in the block.  Without one,
    each network transfer opens and closes its own client.

    Args:
        cache: Cache to read from and write to (a new one when omitted).
        default_ttl: TTL in seconds for stored responses.
        timeout: Default transfer timeout in seconds.
        transport: Optional :mod:`httpx` transport.
        follow_redirects: Whether redirects are followed transparently.

    Example::

        with FetchClient(cache=TTLCache(30)) as client:
            first = client.get("https://api.example.com/data")
            again = client.get("https://api.example.com/data")
            assert again.from_cache
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        default_ttl: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        follow_redirects: bool = True,
    ) -> None:
        super().__init__(cache, default_ttl, timeout, transport, follow_redirects)
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> FetchClient:
        self._client = httpx.Client(**self._client_options())
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def request(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
        body: Any = None,
        cache_key: Optional[str] = None,
        skip_cache: bool = False,
        response_type: Union[ResponseType, str] = ResponseType.AUTO,
        timeout: Optional[float] = None,
    ) -> FetchResult:
        """Fetch *url*, serving a fresh cached result when one exists.

        Args:
            url: Absolute target URL.
            method: HTTP method; case-insensitive.
            headers: Request headers, sent exactly as given (plus a default
                ``content-type`` for structured or scalar bodies).
            body: A :data:`~cacheproxy.models.RequestBody` or a plain value
                (``bytes``, ``dict``/``list``, or a scalar).
            cache_key: Explicit cache key; bypasses key derivation only.
            skip_cache: When ``True`` the cache is neither read nor written.
            response_type: How to decode the body into ``data``.
            timeout: Transfer timeout in seconds for this call.

        Returns:
            A :class:`~cacheproxy.models.FetchResult` whose ``from_cache``
            says whether the network was skipped.

        Raises:
            RequestTimeoutError: If the transfer exceeded *timeout*.
            TransportError: On any other network failure.
            InvalidJsonResponseError: If JSON decoding applies and fails.
        """
        response_type = ResponseType(response_type)
        prepared = self._prepare(url, method, headers, body, cache_key)

        if not skip_cache:
            cached = self._lookup(prepared)
            if cached is not None:
                return cached

        status, response_headers, raw = self._transfer(prepared, self._effective_timeout(timeout))
        result = build_result(status, response_headers, raw, response_type)

        if not skip_cache:
            self._store(prepared, result)

        return result

    def get(self, url: str, **kwargs: Any) -> FetchResult:
        """Send a GET request.  *kwargs* are forwarded to :meth:`request`."""
        kwargs.pop("method", None)
        return self.request(url, method="GET", **kwargs)

    def post(self, url: str, **kwargs: Any) -> FetchResult:
        """Send a POST request.  *kwargs* are forwarded to :meth:`request`."""
        kwargs.pop("method", None)
        return self.request(url, method="POST", **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    @contextmanager
    def _open_client(self) -> Iterator[httpx.Client]:
        """Yield the pooled client, or a short-lived one outside a ``with`` block."""
        if self._client is not None:
            yield self._client
            return
        with httpx.Client(**self._client_options()) as client:
            yield client

    def _transfer(
        self,
        prepared: PreparedRequest,
        timeout: Optional[float],
    ) -> tuple[int, httpx.Headers, bytes]:
        """Send the request and read the full raw body.

        *timeout* bounds the whole transfer, not just each socket operation:
        an origin that trickles its body past the deadline still times out.
        The response stream is closed on every exit path.
        """
        content = prepared.payload()
        deadline = self._deadline(timeout)
        try:
            with self._open_client() as client:
                with client.stream(
                    prepared.method,
                    prepared.url,
                    headers=prepared.headers,
                    content=content,
                    timeout=timeout,
                ) as response:
                    self._check_deadline(deadline, timeout)
                    chunks: list[bytes] = []
                    for chunk in response.iter_bytes():
                        chunks.append(chunk)
                        self._check_deadline(deadline, timeout)
                    return response.status_code, response.headers, b"".join(chunks)
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            raise self._map_error(exc, timeout) from exc
