"""Thread-safe in-memory cache with per-entry time-to-live.

Every entry records the instant it stops being valid (``expires_at``) on the
cache's clock, or ``math.inf`` for entries that never expire.  An entry whose
``expires_at`` has passed is logically absent: lookups treat it as a miss and
evict it on the spot.  Memory held by keys that are written once and never
read again is only reclaimed by :meth:`TTLCache.prune_expired`.

All operations that touch the store hold a re-entrant lock because the proxy
server handles requests on OS threads.  The lock does not coalesce
concurrent misses: two callers missing the same key both fetch upstream and
the last :meth:`TTLCache.set` wins.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable, Optional

from cacheproxy.exceptions import InvalidTtlError

DEFAULT_TTL = 60.0


@dataclass(frozen=True)
class CacheLookup:
    """A fresh value together with the instant it expires."""

    value: Any
    expires_at: float


@dataclass
class _Entry:
    value: Any
    expires_at: float

    def expired(self, now: float) -> bool:
        return self.expires_at != math.inf and self.expires_at <= now


def validate_ttl(ttl: Any, name: str = "ttl") -> float:
    """Return *ttl* as a float, or raise :class:`InvalidTtlError`."""
    if isinstance(ttl, bool) or not isinstance(ttl, Real):
        raise InvalidTtlError(f"{name} must be a positive number or math.inf, got {ttl!r}")
    value = float(ttl)
    if math.isnan(value) or value <= 0:
        raise InvalidTtlError(f"{name} must be a positive number or math.inf, got {ttl!r}")
    return value


class TTLCache:
    """Key/value store whose entries expire after a time-to-live.

    Args:
        default_ttl: TTL in seconds applied when :meth:`set` is called
            without one.  Must be strictly positive or ``math.inf``.
        clock: Monotonic time source returning seconds.  Tests inject a
            fake clock to move time forward deterministically.

    Raises:
        InvalidTtlError: If *default_ttl* is not strictly positive or
            infinite.

    Example::

        from cacheproxy.cache import TTLCache

        cache = TTLCache(default_ttl=30)
        cache.set("GET::https://api.example.com/users", result)
        hit = cache.get("GET::https://api.example.com/users")
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = validate_ttl(default_ttl, "default_ttl")
        self._clock = clock
        self._store: dict[str, _Entry] = {}
        self._lock = threading.RLock()

    @property
    def default_ttl(self) -> float:
        """TTL in seconds used when :meth:`set` gets none."""
        return self._default_ttl

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> Any:
        """Store *value* under *key*, replacing any existing entry.

        Args:
            key: Cache key.
            value: Value to store.
            ttl: Lifetime in seconds, ``math.inf`` for no expiry, or ``None``
                for :attr:`default_ttl`.

        Returns:
            *value*, unchanged.

        Raises:
            InvalidTtlError: If *ttl* is not strictly positive or infinite.
        """
        lifetime = self._default_ttl if ttl is None else validate_ttl(ttl)
        with self._lock:
            expires_at = math.inf if lifetime == math.inf else self._clock() + lifetime
            self._store[key] = _Entry(value, expires_at)
        return value

    def get(self, key: str) -> Any:
        """Return the fresh value for *key*, or ``None``.

        An expired entry is evicted as a side effect.
        """
        lookup = self.get_with_metadata(key)
        return None if lookup is None else lookup.value

    def get_with_metadata(self, key: str) -> Optional[CacheLookup]:
        """Like :meth:`get`, but also report when the entry expires."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._store[key]
                return None
            return CacheLookup(entry.value, entry.expires_at)

    def has(self, key: str) -> bool:
        """Return ``True`` if :meth:`get` would return a value for *key*."""
        return self.get_with_metadata(key) is not None

    def delete(self, key: str) -> bool:
        """Remove *key*; return whether an entry was removed."""
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all entries unconditionally."""
        with self._lock:
            self._store.clear()

    def prune_expired(self) -> int:
        """Remove every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            stale = [key for key, entry in self._store.items() if entry.expired(now)]
            for key in stale:
                del self._store[key]
        return len(stale)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``size`` (entries physically held, expired or
            not) and ``default_ttl`` (seconds, ``None`` if infinite).
        """
        with self._lock:
            size = len(self._store)
        return {
            "size": size,
            "default_ttl": None if self._default_ttl == math.inf else self._default_ttl,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)
