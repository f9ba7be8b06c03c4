"""Fetch command -- perform one request through a caching fetch client.

Useful to check how a target URL is decoded before putting it behind the
proxy.  The status line goes to stderr and the decoded body to stdout.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

import typer

from cacheproxy.exceptions import CacheProxyError
from cacheproxy.models import ResponseType
from cacheproxy.output import error, format_response, info


def _parse_headers(values: list[str]) -> dict[str, str]:
    """Turn ``Name: value`` strings into a header dict."""
    headers: dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            error(f"Invalid header (expected 'Name: value'): {raw}")
            raise typer.Exit(code=2)
        headers[name.strip()] = value.strip()
    return headers


def _parse_body(data: Optional[str], json_data: Optional[str]) -> Any:
    if data is not None and json_data is not None:
        error("Use either --data or --json-data, not both.")
        raise typer.Exit(code=2)
    if json_data is not None:
        try:
            return json.loads(json_data)
        except json.JSONDecodeError as exc:
            error(f"--json-data is not valid JSON: {exc}")
            raise typer.Exit(code=2) from None
    return data


def fetch_command(
    url: str = typer.Argument(help="Absolute URL to fetch."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    header: Optional[List[str]] = typer.Option(
        None, "--header", "-H", help="Request header as 'Name: value' (repeatable)."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="Text body (sent as text/plain unless -H sets a type)."
    ),
    json_data: Optional[str] = typer.Option(
        None, "--json-data", help="JSON body (sent as application/json)."
    ),
    response_type: ResponseType = typer.Option(
        ResponseType.AUTO, "--response-type", "-r", help="How to decode the response body."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Timeout in seconds."
    ),
) -> None:
    """Fetch URL and print the decoded body.

    Example::

        cacheproxy fetch https://api.example.com/data
        cacheproxy fetch https://api.example.com/items -X POST --json-data '{"name": "x"}'
        cacheproxy fetch https://example.com/logo.png -r buffer > logo.png
    """
    from cacheproxy.client import FetchClient

    headers = _parse_headers(header or [])
    body = _parse_body(data, json_data)

    try:
        with FetchClient(timeout=timeout) as client:
            result = client.request(
                url,
                method=method,
                headers=headers,
                body=body,
                response_type=response_type,
                skip_cache=True,
            )
    except CacheProxyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    info(f"HTTP {result.status}")
    format_response(result.data, result.content_type)
