"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~cacheproxy.exceptions.CacheProxyError` subclass.
Shell wrappers can inspect the exit code of ``cacheproxy fetch`` to tell
an unreachable origin apart from a malformed response without parsing
stderr.

Example::

    $ cacheproxy fetch https://api.example.com/slow --timeout 0.5
    $ echo $?
    6   # EXIT_UPSTREAM_ERROR -- the origin timed out
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or values."""

EXIT_UPSTREAM_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_INVALID_RESPONSE = 7
"""The origin answered, but its body could not be decoded as requested."""
