"""Serve command -- run the caching proxy server in the foreground."""

from __future__ import annotations

from typing import Optional

import typer

from cacheproxy.exceptions import CacheProxyError
from cacheproxy.output import error, info


def serve_command(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(None, "--port", help="Port to bind (0 = any free port)."),
    ttl: Optional[str] = typer.Option(
        None, "--ttl", help="Cache TTL in seconds, or 'inf' for no expiry."
    ),
    api_url: Optional[str] = typer.Option(
        None, "--api-url", help="Target used when /proxy is called without ?url=."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Upstream timeout in seconds."
    ),
) -> None:
    """Start the proxy server and block until interrupted.

    Flags override environment variables, which override the settings
    file; see :func:`~cacheproxy.config.resolve_settings`.

    Example::

        cacheproxy serve --port 3000 --ttl 30
        curl 'http://127.0.0.1:3000/proxy?url=https://api.example.com/data'
    """
    from cacheproxy.config import resolve_settings
    from cacheproxy.server import create_server

    try:
        settings = resolve_settings(
            cli_host=host,
            cli_port=port,
            cli_ttl=ttl,
            cli_api_url=api_url,
            cli_timeout=timeout,
        )
    except CacheProxyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    try:
        server = create_server(settings)
    except OSError as exc:
        error(f"Cannot bind {settings.server.host}:{settings.server.port}: {exc}")
        raise typer.Exit(code=1) from None

    ttl_label = settings.cache.ttl_seconds if settings.cache.ttl_seconds is not None else "inf"
    info(f"cacheproxy listening on {server.url} (cache TTL {ttl_label}s)")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        info("Shutting down.")
    finally:
        server.server_close()
