"""Threaded HTTP front end for the proxy.

Routes:

* ``GET /health`` -- ``200 {"status": "ok"}``.
* ``GET /proxy?url=<target>[&skipCache=true]`` -- fetches the target through
  :class:`~cacheproxy.proxy.ProxyService`, echoes the upstream status, sets
  ``X-From-Cache: 1|0`` and answers ``{"data", "fromCache", "status"}``.
  Without ``url`` the configured ``api_url`` is used; without either the
  answer is ``400``.  Any cacheproxy failure becomes ``502 {"error": ...}``.
* anything else -- ``404 {"error": "Not found"}``.

Each request runs on its own thread (:class:`http.server.ThreadingHTTPServer`),
which is why :class:`~cacheproxy.cache.TTLCache` serialises access to its
store.
"""

from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from cacheproxy.client import FetchClient
from cacheproxy.exceptions import CacheProxyError
from cacheproxy.models import Settings
from cacheproxy.output import debug, warning
from cacheproxy.proxy import MISSING_TARGET_MESSAGE, ProxyService, create_proxy_service


class ProxyRequestHandler(BaseHTTPRequestHandler):
    """Maps inbound HTTP requests onto the :class:`ProxyService` of its server."""

    server: ProxyServer

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        if parsed.path == "/health":
            self._send_json(200, {"status": "ok"})
        elif parsed.path == "/proxy":
            self._handle_proxy(parse_qs(parsed.query))
        else:
            self._send_json(404, {"error": "Not found"})

    def _handle_proxy(self, query: dict[str, list[str]]) -> None:
        service = self.server.service
        target = (query.get("url") or [""])[0] or service.default_target
        skip_cache = (query.get("skipCache") or [""])[0] == "true"

        if not target:
            self._send_json(400, {"error": MISSING_TARGET_MESSAGE})
            return

        try:
            response = service.handle_proxy_request(target, skip_cache=skip_cache)
        except CacheProxyError as exc:
            warning(f"Upstream failure for {target}: {exc}")
            self._send_json(502, {"error": str(exc)})
            return

        self._send_json(
            response.status,
            response.to_payload(),
            {"X-From-Cache": "1" if response.from_cache else "0"},
        )

    def _send_json(
        self,
        status: int,
        payload: Any,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        body = json.dumps(payload, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        debug(f"{self.address_string()} - {format % args}")


class ProxyServer(ThreadingHTTPServer):
    """HTTP server bound to a :class:`ProxyService`.

    Args:
        address: ``(host, port)`` to bind; port ``0`` picks a free port.
        service: The service answering ``/proxy`` requests.
    """

    daemon_threads = True

    def __init__(self, address: tuple[str, int], service: ProxyService) -> None:
        super().__init__(address, ProxyRequestHandler)
        self.service = service
        self._thread: Optional[threading.Thread] = None

    @property
    def host(self) -> str:
        return str(self.server_address[0])

    @property
    def port(self) -> int:
        return int(self.server_address[1])

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> threading.Thread:
        """Serve on a background daemon thread and return it."""
        self._thread = threading.Thread(
            target=self.serve_forever, name="cacheproxy-server", daemon=True
        )
        self._thread.start()
        return self._thread

    def stop(self) -> None:
        """Stop serving, close the socket, and join the background thread."""
        if self._thread is not None:
            self.shutdown()
            self._thread.join()
            self._thread = None
        self.server_close()


def create_server(
    settings: Optional[Settings] = None,
    client: Optional[FetchClient] = None,
) -> ProxyServer:
    """Build a :class:`ProxyServer` from *settings*.

    Args:
        settings: Effective settings; defaults apply when omitted.
        client: Optional pre-built client, e.g. one sharing a cache with
            other callers.  A new client and cache are created otherwise.
    """
    settings = settings or Settings()
    if client is None:
        service = create_proxy_service(settings)
    else:
        service = ProxyService(client, default_target=settings.server.api_url)
    return ProxyServer((settings.server.host, settings.server.port), service)
