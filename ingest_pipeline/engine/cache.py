"""Time-bounded content cache and the fetcher decorator built on it."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, TypeVar

import structlog

from .ports import ContentFetcher

ValueT = TypeVar("ValueT")


@dataclass(slots=True)
class CacheEntry(Generic[ValueT]):
    value: ValueT
    expires_at: float | None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now > self.expires_at


class ContentCache(Generic[ValueT]):
    """In-memory key/value cache; a ``ttl`` of 0 means entries never expire.

    Expired entries are evicted lazily, either when they are read or when
    a fresh value is written under the same key.
    """

    def __init__(self, ttl: float = 0.0, clock: Callable[[], float] = time.time) -> None:
        if ttl < 0:
            raise ValueError("ttl must be >= 0")
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry[ValueT]] = {}

    def get(self, key: str) -> ValueT | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: ValueT) -> None:
        expires_at = self._clock() + self.ttl if self.ttl > 0 else None
        self._entries[key] = CacheEntry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)


class CachedFetcher(ContentFetcher):
    """Serve live cache hits without touching the wrapped fetcher."""

    def __init__(
        self,
        inner: ContentFetcher,
        ttl: float = 0.0,
        cache: ContentCache[str] | None = None,
        logger: structlog.BoundLogger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.inner = inner
        self.cache: ContentCache[str] = cache or ContentCache(ttl=ttl, clock=clock)
        self.logger = logger or structlog.get_logger("ingest_pipeline.cache")
        self.hits = 0
        self.misses = 0

    def fetch_content(self, url: str) -> str | None:
        cached = self.cache.get(url)
        if cached is not None:
            self.hits += 1
            self.logger.debug("cache_hit", url=url)
            return cached
        self.misses += 1
        content = self.inner.fetch_content(url)
        if content is not None:
            self.cache.set(url, content)
        return content

    def is_rate_limited(self) -> bool:
        return self.inner.is_rate_limited()

    def get_rate_limit_reset_time(self) -> float:
        return self.inner.get_rate_limit_reset_time()

    def clear_rate_limit(self) -> None:
        self.inner.clear_rate_limit()

    def clear_cache(self, url: str | None = None) -> None:
        if url is None:
            self.cache.clear()
        else:
            self.cache.delete(url)

    def close(self) -> None:
        self.inner.close()


__all__ = ["CacheEntry", "CachedFetcher", "ContentCache"]
