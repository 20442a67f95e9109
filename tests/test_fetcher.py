from __future__ import annotations

from typing import List

import httpx
import pytest

from kamistream.core.errors import ProviderHTTPError, ProviderUnavailable
from kamistream.utils.fetcher import RateLimitedFetcher


def _fetcher(client: httpx.AsyncClient, delays: List[float]) -> RateLimitedFetcher:
    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    return RateLimitedFetcher(client=client, max_attempts=3, base_delay=1.0, sleep=fake_sleep)


async def test_throttled_request_gives_up_after_three_attempts() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(429)

    delays: List[float] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        fetcher = _fetcher(client, delays)
        with pytest.raises(ProviderUnavailable) as exc_info:
            await fetcher.fetch("GET", "https://api.test/anime/zoro/naruto")

    assert len(calls) == 3
    assert delays == [1.0, 2.0]
    assert exc_info.value.attempts == 3
    assert exc_info.value.status_code == 429


async def test_throttled_request_recovers_on_retry() -> None:
    responses = iter([httpx.Response(429), httpx.Response(200, json={"results": []})])

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    delays: List[float] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        data = await _fetcher(client, delays).get_json("https://api.test/anime/zoro/naruto")

    assert data == {"results": []}
    assert delays == [1.0]


async def test_not_found_is_not_retried() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        return httpx.Response(404)

    delays: List[float] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ProviderHTTPError) as exc_info:
            await _fetcher(client, delays).fetch("GET", "https://api.test/missing")

    assert calls == ["GET"]
    assert delays == []
    assert exc_info.value.status_code == 404


async def test_service_unavailable_retried_only_with_retry_after() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path == "/busy":
            return httpx.Response(503, headers={"Retry-After": "1"})
        return httpx.Response(503)

    delays: List[float] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        fetcher = _fetcher(client, delays)
        with pytest.raises(ProviderUnavailable):
            await fetcher.fetch("GET", "https://api.test/busy")
        with pytest.raises(ProviderHTTPError):
            await fetcher.fetch("GET", "https://api.test/down")

    assert calls.count("/busy") == 3
    assert calls.count("/down") == 1


async def test_transport_error_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    delays: List[float] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ProviderUnavailable):
            await _fetcher(client, delays).fetch("GET", "https://api.test/anime")

    assert delays == []


def test_backoff_delay_doubles() -> None:
    fetcher = RateLimitedFetcher(client=object(), max_attempts=3, base_delay=0.5)
    assert [fetcher.backoff_delay(attempt) for attempt in range(3)] == [0.5, 1.0, 2.0]
