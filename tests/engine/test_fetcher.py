from __future__ import annotations

from typing import Callable

import httpx
import pytest

from ingest_pipeline.config import FetchConfig
from ingest_pipeline.engine import RateLimitedFetcher, RateLimitState

URL = "https://example.com/article"


def make_fetcher(
    handler: Callable[[httpx.Request], httpx.Response],
    clock,
    config: FetchConfig | None = None,
) -> RateLimitedFetcher:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RateLimitedFetcher(
        config or FetchConfig(),
        client=client,
        clock=clock,
        sleep=clock.sleep,
    )


def test_successful_fetch_returns_body(fake_clock) -> None:
    fetcher = make_fetcher(lambda request: httpx.Response(200, text="hello"), fake_clock)
    assert fetcher.fetch_content(URL) == "hello"
    assert fetcher.request_count == 1
    assert fake_clock.sleeps == []


def test_back_to_back_requests_are_throttled(fake_clock) -> None:
    fetcher = make_fetcher(lambda request: httpx.Response(200, text="ok"), fake_clock)
    fetcher.fetch_content(URL)
    fake_clock.advance(0.25)
    fetcher.fetch_content(URL)
    assert fake_clock.sleeps == [pytest.approx(0.75)]

    fake_clock.advance(5)
    fetcher.fetch_content(URL)
    assert len(fake_clock.sleeps) == 1


def test_server_errors_are_retried_with_backoff(fake_clock) -> None:
    statuses = iter([500, 503, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        return httpx.Response(status, text="recovered" if status == 200 else "")

    fetcher = make_fetcher(handler, fake_clock)
    assert fetcher.fetch_content(URL) == "recovered"
    assert fetcher.request_count == 3
    assert fake_clock.sleeps == [1.0, 2.0]


def test_exhausted_retries_return_none(fake_clock) -> None:
    fetcher = make_fetcher(lambda request: httpx.Response(502), fake_clock)
    assert fetcher.fetch_content(URL) is None
    assert fetcher.request_count == 3


def test_backoff_is_capped(fake_clock) -> None:
    config = FetchConfig(max_retries=3, retry_base_delay=1.0, retry_max_delay=1.5)
    fetcher = make_fetcher(lambda request: httpx.Response(500), fake_clock, config)
    assert fetcher.fetch_content(URL) is None
    assert fake_clock.sleeps == [1.0, 1.5, 1.5]


def test_client_errors_are_not_retried(fake_clock) -> None:
    fetcher = make_fetcher(lambda request: httpx.Response(404), fake_clock)
    assert fetcher.fetch_content(URL) is None
    assert fetcher.request_count == 1
    assert fake_clock.sleeps == []


def test_transport_errors_are_retried(fake_clock) -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, text="second time lucky")

    fetcher = make_fetcher(handler, fake_clock)
    assert fetcher.fetch_content(URL) == "second time lucky"
    assert calls["n"] == 2


def test_429_with_reset_header_blocks_until_reset(fake_clock) -> None:
    reset_at = fake_clock.now + 120
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(429, headers={"x-rate-limit-reset": str(int(reset_at))})
        return httpx.Response(200, text="after reset")

    fetcher = make_fetcher(handler, fake_clock)
    assert fetcher.fetch_content(URL) is None
    assert fetcher.is_rate_limited()
    assert fetcher.get_rate_limit_reset_time() == reset_at

    assert fetcher.fetch_content(URL) is None
    assert calls["n"] == 1

    fake_clock.advance(121)
    assert not fetcher.is_rate_limited()
    assert fetcher.get_rate_limit_reset_time() == 0
    assert fetcher.fetch_content(URL) == "after reset"


def test_429_with_retry_after_seconds(fake_clock) -> None:
    fetcher = make_fetcher(
        lambda request: httpx.Response(429, headers={"Retry-After": "30"}), fake_clock
    )
    fetcher.fetch_content(URL)
    assert fetcher.get_rate_limit_reset_time() == fake_clock.now + 30


def test_429_without_headers_uses_default_backoff(fake_clock) -> None:
    fetcher = make_fetcher(lambda request: httpx.Response(429), fake_clock)
    fetcher.fetch_content(URL)
    assert fetcher.get_rate_limit_reset_time() == fake_clock.now + 60
    fetcher.clear_rate_limit()
    assert not fetcher.is_rate_limited()


def test_rate_limit_state_self_clears(fake_clock) -> None:
    state = RateLimitState(fake_clock)
    assert not state.is_active()
    state.set(fake_clock.now + 10)
    assert state.is_active()
    assert state.seconds_remaining() == 10
    fake_clock.advance(10)
    assert not state.is_active()
    assert state.reset_at == 0


def test_throttle_applies_when_first_request_is_at_time_zero(fake_clock) -> None:
    fake_clock.now = 0.0
    fetcher = make_fetcher(lambda request: httpx.Response(200, text="ok"), fake_clock)
    fetcher.fetch_content(URL)
    fetcher.fetch_content(URL)
    assert fake_clock.sleeps == [1.0]
