"""cacheproxy -- HTTP forwarding proxy with a TTL response cache.

A client asks for a target URL; cacheproxy either serves a previously
fetched response while it is still fresh, or fetches it from the origin,
stores it, and returns it.  The same pipeline is available as a library
(:class:`~cacheproxy.client.FetchClient`) and as a small HTTP server
(``cacheproxy serve``).

Typical workflow::

    cacheproxy serve --port 3000 --ttl 30
    curl 'http://127.0.0.1:3000/proxy?url=https://api.example.com/data'

Modules:
    app: Typer application and CLI entry point.
    cache: In-memory TTL cache.
    client: Caching fetch clients built on httpx.
    proxy: The proxy request handler consumed by the server.
    server: Threaded HTTP front end.
    models: Pydantic models shared across the package.
    config: XDG-aware settings and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
