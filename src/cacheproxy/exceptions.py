"""Exception hierarchy for cacheproxy.

All exceptions inherit from :class:`CacheProxyError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`cacheproxy.exit_codes`.  The CLI entry point in
:func:`cacheproxy.app.main` catches ``CacheProxyError`` and exits with the
appropriate code, while the proxy server translates any of them into a
``502`` upstream-failure response.

Subclass hierarchy::

    CacheProxyError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- ConfigError              (exit 1)
    +-- InvalidTtlError          (exit 2)
    +-- RequestTimeoutError      (exit 6)
    +-- TransportError           (exit 6)
    +-- InvalidJsonResponseError (exit 7)
"""

from __future__ import annotations

from typing import Optional

from cacheproxy.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_RESPONSE,
    EXIT_INVALID_USAGE,
    EXIT_UPSTREAM_ERROR,
)


class CacheProxyError(Exception):
    """Base exception for all cacheproxy errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CacheProxyError):
    """Raised for invalid CLI arguments or a proxy call without a target URL."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(CacheProxyError):
    """Raised for configuration problems (invalid JSON, bad environment values)."""

    exit_code = EXIT_GENERIC_FAILURE


class InvalidTtlError(CacheProxyError, ValueError):
    """Raised when a TTL is neither strictly positive nor infinite."""

    exit_code = EXIT_INVALID_USAGE


class RequestTimeoutError(CacheProxyError):
    """Raised when the outbound transfer exceeds its timeout.

    Args:
        timeout: The timeout that was exceeded, in seconds.
    """

    exit_code = EXIT_UPSTREAM_ERROR

    def __init__(self, timeout: Optional[float]):
        super().__init__(f"Request timed out after {timeout}s")
        self.timeout = timeout


class TransportError(CacheProxyError):
    """Raised on any other network-level failure (DNS, connection refused, reset).

    The original :mod:`httpx` exception is chained as ``__cause__`` and its
    message is kept verbatim.
    """

    exit_code = EXIT_UPSTREAM_ERROR


class InvalidJsonResponseError(CacheProxyError):
    """Raised when a response body that must be JSON fails to parse."""

    exit_code = EXIT_INVALID_RESPONSE
