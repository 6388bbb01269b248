"""HTTP fetching with throttling, retry/backoff and rate-limit tracking."""

from __future__ import annotations

import time
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Callable, Mapping

import httpx
import structlog

from ..config import FetchConfig
from .errors import FetchError
from .ports import ContentFetcher

Clock = Callable[[], float]
Sleeper = Callable[[float], None]


class RateLimitState:
    """Single reset-at timestamp that clears itself once it has passed.

    ``is_active`` reads and may reset the state in the same call; that is
    only safe while a single thread owns the fetcher. Concurrent callers
    would need an atomic compare-and-clear around ``reset_at``.
    """

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self.reset_at: float = 0.0

    def is_active(self) -> bool:
        if self.reset_at and self.reset_at <= self._clock():
            self.reset_at = 0.0
        return self.reset_at > self._clock()

    def set(self, reset_at: float) -> None:
        self.reset_at = reset_at

    def clear(self) -> None:
        self.reset_at = 0.0

    def seconds_remaining(self) -> float:
        return max(0.0, self.reset_at - self._clock())


@dataclass(slots=True)
class _Attempt:
    """Outcome of one outbound request."""

    text: str | None = None
    retryable: bool = False
    rate_limited: bool = False
    status_code: int | None = None
    error: str | None = None


class RateLimitedFetcher(ContentFetcher):
    """Fetch remote content defensively; recoverable failures become ``None``."""

    def __init__(
        self,
        config: FetchConfig | None = None,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
        clock: Clock = time.time,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self.config = config or FetchConfig()
        self.logger = logger or structlog.get_logger("ingest_pipeline.fetcher")
        self._clock = clock
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=self.config.timeout,
            headers={"User-Agent": self.config.user_agent} if self.config.user_agent else None,
        )
        self.rate_limit = RateLimitState(clock)
        self._last_request_time: float | None = None
        self.request_count = 0

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch_content(self, url: str) -> str | None:
        if self.is_rate_limited():
            self.logger.warning(
                "rate_limited_skip",
                url=url,
                resets_in=round(self.rate_limit.seconds_remaining(), 1),
            )
            return None
        try:
            return self._fetch_with_retry(url)
        except FetchError as exc:
            self.logger.error("fetch_failed", url=url, status=exc.status_code, error=str(exc))
            return None

    def is_rate_limited(self) -> bool:
        return self.rate_limit.is_active()

    def get_rate_limit_reset_time(self) -> float:
        return self.rate_limit.reset_at

    def clear_rate_limit(self) -> None:
        self.rate_limit.clear()

    # ------------------------------------------------------------------
    def _fetch_with_retry(self, url: str) -> str | None:
        max_attempts = self.config.max_retries + 1
        self._apply_throttle()
        last: _Attempt | None = None
        for attempt in range(max_attempts):
            if attempt > 0:
                delay = self._backoff(attempt)
                self.logger.info("fetch_retry", url=url, attempt=attempt, delay=delay)
                self._sleep(delay)
            last = self._attempt(url)
            if last.text is not None:
                return last.text
            if last.rate_limited:
                return None
            if not last.retryable:
                raise FetchError(last.error or "non-retryable response", url, last.status_code)
            self.logger.warning(
                "fetch_error",
                url=url,
                attempt=attempt + 1,
                max_attempts=max_attempts,
                error=last.error,
            )
        raise FetchError(
            f"Fetch failed after {max_attempts} attempts: {last.error if last else 'unknown'}",
            url,
            last.status_code if last else None,
        )

    def _attempt(self, url: str) -> _Attempt:
        self._last_request_time = self._clock()
        self.request_count += 1
        try:
            response = self._client.get(url, timeout=self.config.timeout)
        except httpx.TransportError as exc:
            return _Attempt(retryable=True, error=str(exc))
        status = response.status_code
        if status == 429:
            self._handle_rate_limit(response.headers)
            return _Attempt(rate_limited=True, status_code=status, error="status 429")
        if status >= 500:
            return _Attempt(retryable=True, status_code=status, error=f"status {status}")
        if status >= 400:
            return _Attempt(retryable=False, status_code=status, error=f"status {status}")
        return _Attempt(text=response.text)

    def _apply_throttle(self) -> None:
        if self._last_request_time is None:
            return
        elapsed = self._clock() - self._last_request_time
        wait = self.config.throttle_seconds - elapsed
        if wait > 0:
            self.logger.debug("throttle_wait", seconds=round(wait, 3))
            self._sleep(wait)

    def _backoff(self, attempt: int) -> float:
        return min(self.config.retry_base_delay * (2 ** (attempt - 1)), self.config.retry_max_delay)

    def _handle_rate_limit(self, headers: Mapping[str, str]) -> None:
        now = self._clock()
        reset_at = self._parse_reset_header(headers, now)
        if reset_at is None:
            reset_at = now + self.config.rate_limit_backoff
        self.rate_limit.set(reset_at)
        self.logger.warning("rate_limited", resets_in=round(max(0.0, reset_at - now), 1))

    @staticmethod
    def _parse_reset_header(headers: Mapping[str, str], now: float) -> float | None:
        reset = headers.get("x-rate-limit-reset") or headers.get("x-ratelimit-reset")
        if reset:
            try:
                return float(reset)
            except ValueError:
                pass
        retry_after = headers.get("retry-after")
        if retry_after:
            try:
                return now + float(retry_after)
            except ValueError:
                try:
                    return parsedate_to_datetime(retry_after).timestamp()
                except (TypeError, ValueError):
                    return None
        return None


__all__ = ["RateLimitState", "RateLimitedFetcher"]
