"""Proxy request handling -- the boundary between the HTTP front end and the client.

:class:`ProxyService` turns "fetch this target URL, maybe bypassing the
cache" into a :class:`~cacheproxy.models.ProxyResponse` carrying the
upstream status, the decoded JSON body and the ``from_cache`` flag.  It
never produces an HTTP status of its own: every failure is raised to the
front end, which maps it to an upstream-failure response.
"""

from __future__ import annotations

from typing import Optional

from cacheproxy.cache import TTLCache
from cacheproxy.client import FetchClient
from cacheproxy.exceptions import InvalidUsageError
from cacheproxy.models import ProxyResponse, ResponseType, Settings

MISSING_TARGET_MESSAGE = "Missing target URL. Provide ?url=... or set API_URL."


class ProxyService:
    """Fetches proxy targets through a caching :class:`~cacheproxy.client.FetchClient`.

    Args:
        client: The client (and thereby the cache) shared by every request.
        default_target: URL used when a request names no target, e.g. the
            ``API_URL`` setting.
    """

    def __init__(self, client: FetchClient, default_target: Optional[str] = None) -> None:
        self._client = client
        self._default_target = default_target

    @property
    def client(self) -> FetchClient:
        return self._client

    @property
    def default_target(self) -> Optional[str]:
        return self._default_target

    def handle_proxy_request(
        self,
        target_url: Optional[str],
        skip_cache: bool = False,
    ) -> ProxyResponse:
        """Fetch *target_url* (or the default target) as JSON.

        Args:
            target_url: Absolute URL to fetch; falls back to
                :attr:`default_target` when empty.
            skip_cache: Bypass the cache for both reading and writing.

        Returns:
            The upstream status, decoded body and ``from_cache`` flag.

        Raises:
            InvalidUsageError: If there is neither a target nor a default.
            RequestTimeoutError: If the origin did not answer in time.
            TransportError: On any other network failure.
            InvalidJsonResponseError: If the origin body is not JSON.
        """
        url = target_url or self._default_target
        if not url:
            raise InvalidUsageError(MISSING_TARGET_MESSAGE)

        result = self._client.get(url, response_type=ResponseType.JSON, skip_cache=skip_cache)
        return ProxyResponse(status=result.status, data=result.data, from_cache=result.from_cache)


def create_proxy_service(settings: Optional[Settings] = None) -> ProxyService:
    """Build a service with its own cache, sized from *settings*."""
    settings = settings or Settings()
    ttl = settings.cache.ttl
    client = FetchClient(
        cache=TTLCache(ttl),
        default_ttl=ttl,
        timeout=settings.request.timeout,
    )
    return ProxyService(client, default_target=settings.server.api_url)
