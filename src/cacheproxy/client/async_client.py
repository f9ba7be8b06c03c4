"""Asynchronous caching fetch client -- mirrors :class:`~cacheproxy.client.sync_client.FetchClient`.

This module provides :class:`AsyncFetchClient`, the non-blocking
counterpart to :class:`~cacheproxy.client.sync_client.FetchClient`.  It
wraps :class:`httpx.AsyncClient` and offers the same contract -- key
derivation, TTL caching, raw transfers and error mapping -- for callers
running inside an event loop.

The cache itself is synchronous and never awaits, so cache reads and writes
are not interleaved with other coroutines.  The transfer is the only
suspension point.

See Also:
    :class:`~cacheproxy.client.sync_client.FetchClient` for the blocking
    equivalent.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Union

import httpx

from cacheproxy.cache import TTLCache
from cacheproxy.client.base import PreparedRequest, _FetchClientBase
from cacheproxy.client.response import build_result
from cacheproxy.exceptions import RequestTimeoutError
from cacheproxy.models import FetchResult, ResponseType


class AsyncFetchClient(_FetchClientBase):
    """Non-blocking HTTP client that serves fresh responses from a TTL cache.

    Accepts the same arguments as
    :class:`~cacheproxy.client.sync_client.FetchClient`, except that
    *transport* must be an :class:`httpx.AsyncBaseTransport`.

    Example::

        async with AsyncFetchClient(cache=TTLCache(30)) as client:
            result = await client.get("https://api.example.com/data")
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        default_ttl: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        follow_redirects: bool = True,
    ) -> None:
        super().__init__(cache, default_ttl, timeout, transport, follow_redirects)
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncFetchClient:
        self._client = httpx.AsyncClient(**self._client_options())
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(
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

        Behaves identically to
        :meth:`~cacheproxy.client.sync_client.FetchClient.request` but is
        non-blocking.
        """
        response_type = ResponseType(response_type)
        prepared = self._prepare(url, method, headers, body, cache_key)

        if not skip_cache:
            cached = self._lookup(prepared)
            if cached is not None:
                return cached

        status, response_headers, raw = await self._transfer(
            prepared, self._effective_timeout(timeout),
        )
        result = build_result(status, response_headers, raw, response_type)

        if not skip_cache:
            self._store(prepared, result)

        return result

    async def get(self, url: str, **kwargs: Any) -> FetchResult:
        """Send an async GET request.  *kwargs* are forwarded to :meth:`request`."""
        kwargs.pop("method", None)
        return await self.request(url, method="GET", **kwargs)

    async def post(self, url: str, **kwargs: Any) -> FetchResult:
        """Send an async POST request.  *kwargs* are forwarded to :meth:`request`."""
        kwargs.pop("method", None)
        return await self.request(url, method="POST", **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    @asynccontextmanager
    async def _open_client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(**self._client_options()) as client:
            yield client

    async def _transfer(
        self,
        prepared: PreparedRequest,
        timeout: Optional[float],
    ) -> tuple[int, httpx.Headers, bytes]:
        """Send the request and read the full raw body within *timeout*.

        The whole exchange runs under :func:`asyncio.wait_for`; cancelling it
        unwinds the ``async with`` blocks, so the stream is always closed.
        """
        content = prepared.payload()
        try:
            return await asyncio.wait_for(
                self._exchange(prepared, content, timeout), timeout
            )
        except asyncio.TimeoutError as exc:
            raise RequestTimeoutError(timeout) from exc
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            raise self._map_error(exc, timeout) from exc

    async def _exchange(
        self,
        prepared: PreparedRequest,
        content: Optional[Union[bytes, str]],
        timeout: Optional[float],
    ) -> tuple[int, httpx.Headers, bytes]:
        async with self._open_client() as client:
            async with client.stream(
                prepared.method,
                prepared.url,
                headers=prepared.headers,
                content=content,
                timeout=timeout,
            ) as response:
                raw = await response.aread()
                return response.status_code, response.headers, raw
