"""Tests for the synchronous caching fetch client."""

from __future__ import annotations

import json
import math
import time
from typing import Any, Callable

import httpx
import pytest

from cacheproxy.cache import TTLCache
from cacheproxy.client import FetchClient, build_cache_key
from cacheproxy.exceptions import (
    InvalidJsonResponseError,
    InvalidTtlError,
    InvalidUsageError,
    RequestTimeoutError,
    TransportError,
)
from cacheproxy.models import ResponseType, ScalarBody
from cacheproxy.output import OutputManager, reset_output, set_output


URL = "https://api.example.com/data"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Recorder:
    """MockTransport handler that records requests and numbers responses."""

    def __init__(
        self,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
    ) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.headers = headers if headers is not None else {"content-type": "application/json"}
        self.content = content

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        content = self.content
        if content is None:
            content = json.dumps({"requestId": len(self.requests)}).encode("utf-8")
        return httpx.Response(self.status_code, headers=self.headers, content=content)

    @property
    def count(self) -> int:
        return len(self.requests)


def _raising(exc: Exception) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    return handler


def _client(handler: Any, clock: Any = None, **kwargs: Any) -> FetchClient:
    cache = TTLCache(clock=clock) if clock is not None else TTLCache()
    return FetchClient(cache=cache, transport=httpx.MockTransport(handler), **kwargs)


@pytest.fixture(autouse=True)
def _clean_output():
    """Reset the global output manager between tests."""
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Construction & context manager
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_creates_own_cache(self) -> None:
        client = FetchClient()
        assert isinstance(client.cache, TTLCache)
        assert client.default_ttl == 60.0

    def test_default_ttl_sizes_own_cache(self) -> None:
        client = FetchClient(default_ttl=5)
        assert client.cache.default_ttl == 5.0
        assert client.default_ttl == 5.0

    def test_default_ttl_follows_given_cache(self) -> None:
        client = FetchClient(cache=TTLCache(math.inf))
        assert client.default_ttl == math.inf

    def test_invalid_default_ttl(self) -> None:
        with pytest.raises(InvalidTtlError):
            FetchClient(cache=TTLCache(), default_ttl=0)

    def test_enter_creates_client(self) -> None:
        client = FetchClient()
        assert client._client is None
        with client:
            assert client._client is not None
        assert client._client is None

    def test_pooled_client_serves_requests(self) -> None:
        recorder = _Recorder()
        with _client(recorder) as client:
            client.get(URL)
            client.get(URL + "?page=2")
        assert recorder.count == 2


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    def test_second_call_served_from_cache(self) -> None:
        recorder = _Recorder()
        client = _client(recorder)

        first = client.get(URL)
        second = client.get(URL)

        assert first.from_cache is False
        assert second.from_cache is True
        assert recorder.count == 1
        assert first.data == second.data == {"requestId": 1}

    def test_cached_copy_keeps_from_cache_false(self) -> None:
        client = _client(_Recorder())
        client.get(URL)
        stored = client.cache.get(build_cache_key("GET", URL))
        assert stored.from_cache is False

    def test_cache_hit_is_a_copy(self) -> None:
        client = _client(_Recorder())
        client.get(URL)
        hit = client.get(URL)
        hit.data["requestId"] = 99
        assert client.get(URL).data == {"requestId": 1}

    def test_fresh_result_is_not_the_stored_entry(self) -> None:
        client = _client(_Recorder(content=b'{"items": [1]}'))
        first = client.get(URL)
        first.data["items"].append("extra")
        first.headers["x-injected"] = "1"

        again = client.get(URL)
        assert again.from_cache is True
        assert again.data == {"items": [1]}
        assert "x-injected" not in again.headers

    def test_expired_entry_refetched(self, clock) -> None:
        recorder = _Recorder()
        client = _client(recorder, clock=clock, default_ttl=10)

        client.get(URL)
        clock.advance(11)
        again = client.get(URL)

        assert again.from_cache is False
        assert again.data == {"requestId": 2}
        assert recorder.count == 2

    def test_infinite_ttl(self, clock) -> None:
        recorder = _Recorder()
        client = _client(recorder, clock=clock, default_ttl=math.inf)
        client.get(URL)
        clock.advance(10**9)
        assert client.get(URL).from_cache is True
        assert recorder.count == 1

    def test_headers_are_part_of_key(self) -> None:
        recorder = _Recorder()
        client = _client(recorder)
        client.get(URL, headers={"Authorization": "Bearer a"})
        client.get(URL, headers={"Authorization": "Bearer b"})
        assert recorder.count == 2

    def test_header_case_shares_entry(self) -> None:
        recorder = _Recorder()
        client = _client(recorder)
        client.get(URL, headers={"Accept": "application/json"})
        assert client.get(URL, headers={"accept": "application/json"}).from_cache is True
        assert recorder.count == 1

    def test_body_is_part_of_key(self) -> None:
        recorder = _Recorder()
        client = _client(recorder)
        client.post(URL, body={"q": 1})
        client.post(URL, body={"q": 2})
        assert client.post(URL, body={"q": 1}).from_cache is True
        assert recorder.count == 2

    def test_explicit_cache_key(self) -> None:
        recorder = _Recorder()
        client = _client(recorder)
        client.get(URL + "?v=1", cache_key="shared")
        second = client.get(URL + "?v=2", cache_key="shared")
        assert second.from_cache is True
        assert recorder.count == 1
        assert client.cache.has("shared")

    def test_invalidate(self) -> None:
        recorder = _Recorder()
        client = _client(recorder)
        client.get(URL)
        client.invalidate(build_cache_key("GET", URL))
        assert client.get(URL).from_cache is False
        assert recorder.count == 2

    def test_invalidate_missing_key(self) -> None:
        _client(_Recorder()).invalidate("nope")

    def test_clear_cache(self) -> None:
        recorder = _Recorder()
        client = _client(recorder)
        client.get(URL)
        client.get(URL + "/other")
        client.clear_cache()
        assert len(client.cache) == 0

    def test_shared_cache_between_clients(self) -> None:
        cache = TTLCache()
        recorder = _Recorder()
        first = FetchClient(cache=cache, transport=httpx.MockTransport(recorder))
        second = FetchClient(cache=cache, transport=httpx.MockTransport(recorder))
        first.get(URL)
        assert second.get(URL).from_cache is True
        assert recorder.count == 1


# ---------------------------------------------------------------------------
# skip_cache
# ---------------------------------------------------------------------------


class TestSkipCache:
    def test_skip_cache_always_fetches(self) -> None:
        recorder = _Recorder()
        client = _client(recorder)
        client.get(URL)
        fresh = client.get(URL, skip_cache=True)
        assert fresh.from_cache is False
        assert fresh.data == {"requestId": 2}
        assert recorder.count == 2

    def test_skip_cache_does_not_write(self) -> None:
        client = _client(_Recorder())
        client.get(URL, skip_cache=True)
        assert len(client.cache) == 0

    def test_skip_cache_does_not_overwrite(self) -> None:
        client = _client(_Recorder())
        client.get(URL)
        client.get(URL, skip_cache=True)
        assert client.get(URL).data == {"requestId": 1}


# ---------------------------------------------------------------------------
# Status gate
# ---------------------------------------------------------------------------


class TestStatusGate:
    @pytest.mark.parametrize("status", [200, 201, 302])
    def test_success_and_redirect_statuses_cached(self, status: int) -> None:
        recorder = _Recorder(status_code=status)
        client = _client(recorder, follow_redirects=False)
        client.get(URL)
        assert client.get(URL).from_cache is True
        assert recorder.count == 1

    @pytest.mark.parametrize("status", [404, 500, 503])
    def test_error_statuses_not_cached(self, status: int) -> None:
        recorder = _Recorder(status_code=status)
        client = _client(recorder)
        first = client.get(URL)
        second = client.get(URL)
        assert first.status == status
        assert second.from_cache is False
        assert recorder.count == 2
        assert len(client.cache) == 0

    def test_error_status_body_still_decoded(self) -> None:
        recorder = _Recorder(status_code=404, content=b'{"error": "missing"}')
        result = _client(recorder).get(URL)
        assert result.status == 404
        assert result.data == {"error": "missing"}

    def test_redirect_followed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(301, headers={"location": "https://api.example.com/new"})
            return httpx.Response(200, json={"moved": True})

        result = _client(handler).get("https://api.example.com/old")
        assert result.status == 200
        assert result.data == {"moved": True}


# ---------------------------------------------------------------------------
# Outbound request shape
# ---------------------------------------------------------------------------


class TestOutboundRequest:
    def test_method_upper_cased(self) -> None:
        recorder = _Recorder()
        _client(recorder).request(URL, method="delete")
        assert recorder.requests[0].method == "DELETE"

    def test_headers_sent_as_given(self) -> None:
        recorder = _Recorder()
        _client(recorder).get(URL, headers={"X-Custom": "Value", "Accept": "text/csv"})
        sent = recorder.requests[0]
        assert sent.headers["X-Custom"] == "Value"
        assert sent.headers["Accept"] == "text/csv"

    def test_caller_headers_not_mutated(self) -> None:
        headers = {"X-Custom": "1"}
        _client(_Recorder()).post(URL, headers=headers, body={"a": 1})
        assert headers == {"X-Custom": "1"}

    def test_structured_body(self) -> None:
        recorder = _Recorder()
        _client(recorder).post(URL, body={"name": "x"})
        sent = recorder.requests[0]
        assert sent.headers["content-type"] == "application/json"
        assert json.loads(sent.content) == {"name": "x"}

    def test_structured_body_keeps_caller_content_type(self) -> None:
        recorder = _Recorder()
        _client(recorder).post(
            URL, headers={"Content-Type": "application/merge-patch+json"}, body={"a": 1}
        )
        assert recorder.requests[0].headers["content-type"] == "application/merge-patch+json"

    def test_scalar_body(self) -> None:
        recorder = _Recorder()
        _client(recorder).post(URL, body=ScalarBody(value=12))
        sent = recorder.requests[0]
        assert sent.headers["content-type"] == "text/plain"
        assert sent.content == b"12"

    def test_binary_body(self) -> None:
        recorder = _Recorder()
        _client(recorder).post(URL, body=b"\x00\xff")
        sent = recorder.requests[0]
        assert sent.content == b"\x00\xff"
        assert "content-type" not in sent.headers

    def test_get_ignores_method_kwarg(self) -> None:
        recorder = _Recorder()
        _client(recorder).get(URL, method="POST")
        assert recorder.requests[0].method == "GET"


# ---------------------------------------------------------------------------
# Response decoding
# ---------------------------------------------------------------------------


class TestResponseTypes:
    def test_auto_json(self) -> None:
        result = _client(_Recorder()).get(URL)
        assert result.data == {"requestId": 1}
        assert result.content_type == "application/json"

    def test_auto_text(self) -> None:
        recorder = _Recorder(headers={"content-type": "text/plain"}, content=b"hello")
        assert _client(recorder).get(URL).data == "hello"

    def test_text(self) -> None:
        result = _client(_Recorder()).get(URL, response_type=ResponseType.TEXT)
        assert result.data == '{"requestId": 1}'

    def test_buffer(self) -> None:
        recorder = _Recorder(headers={"content-type": "image/png"}, content=b"\x89PNG")
        result = _client(recorder).get(URL, response_type="buffer")
        assert result.data == b"\x89PNG"
        assert result.raw_body == b"\x89PNG"

    def test_json_forced(self) -> None:
        recorder = _Recorder(headers={"content-type": "text/plain"}, content=b"[1]")
        assert _client(recorder).get(URL, response_type=ResponseType.JSON).data == [1]

    def test_invalid_json(self) -> None:
        recorder = _Recorder(content=b"<html>")
        client = _client(recorder)
        with pytest.raises(InvalidJsonResponseError):
            client.get(URL)
        assert len(client.cache) == 0

    def test_unknown_response_type(self) -> None:
        with pytest.raises(ValueError):
            _client(_Recorder()).get(URL, response_type="xml")


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrors:
    def test_slow_body_exceeds_whole_transfer_timeout(self) -> None:
        def slow_body():
            for _ in range(5):
                time.sleep(0.03)
                yield b"x"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "text/plain"}, content=slow_body())

        client = _client(handler, timeout=0.05)
        with pytest.raises(RequestTimeoutError) as exc_info:
            client.get(URL)
        assert exc_info.value.timeout == 0.05
        assert len(client.cache) == 0

    def test_timeout_exception(self) -> None:
        client = _client(_raising(httpx.ReadTimeout("read timed out")), timeout=0.05)
        with pytest.raises(RequestTimeoutError) as exc_info:
            client.get(URL)
        assert exc_info.value.timeout == 0.05
        assert str(exc_info.value) == "Request timed out after 0.05s"
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)

    def test_per_call_timeout_reported(self) -> None:
        client = _client(_raising(httpx.ConnectTimeout("connect timeout")), timeout=5)
        with pytest.raises(RequestTimeoutError) as exc_info:
            client.get(URL, timeout=0.2)
        assert exc_info.value.timeout == 0.2

    def test_timeout_message_maps_when_timeout_set(self) -> None:
        client = _client(_raising(httpx.RemoteProtocolError("Connection timed out")), timeout=1)
        with pytest.raises(RequestTimeoutError):
            client.get(URL)

    def test_timeout_message_without_timeout_is_transport_error(self) -> None:
        client = _client(_raising(httpx.RemoteProtocolError("Connection timed out")))
        with pytest.raises(TransportError):
            client.get(URL)

    def test_connect_error(self) -> None:
        client = _client(_raising(httpx.ConnectError("Connection refused")))
        with pytest.raises(TransportError, match="Connection refused") as exc_info:
            client.get(URL)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert exc_info.value.exit_code == 6

    def test_invalid_url(self) -> None:
        client = _client(_raising(httpx.InvalidURL("Invalid port")))
        with pytest.raises(InvalidUsageError, match="Invalid URL"):
            client.get(URL)

    def test_failure_not_cached(self) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ConnectError("refused")
            return httpx.Response(200, json={"ok": True})

        client = _client(handler)
        with pytest.raises(TransportError):
            client.get(URL)
        assert client.get(URL).data == {"ok": True}
        assert client.get(URL).from_cache is True
