"""In-memory TTL caching for cacheproxy.

This package provides :class:`TTLCache`, a thread-safe key/value store whose
entries expire after a time-to-live.  Expired entries are dropped lazily on
access, and :meth:`TTLCache.prune_expired` sweeps them eagerly.

The cache is consumed by :class:`~cacheproxy.client.FetchClient` and sized
by the ``cache`` section of the settings
(:class:`~cacheproxy.models.CacheConfig`).
"""

from cacheproxy.cache.cache import DEFAULT_TTL, CacheLookup, TTLCache, validate_ttl

__all__ = ["DEFAULT_TTL", "CacheLookup", "TTLCache", "validate_ttl"]
