"""Capability interfaces the core consumes; adapters subclass these explicitly."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Iterator, Protocol, TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")
ItemT = TypeVar("ItemT")


@dataclass(frozen=True, slots=True)
class ReadConfig:
    """Bounds a single producer read."""

    since: datetime | None = None
    filter: str | None = None


class Logger(Protocol):
    """Logging surface used by the core (structlog bound loggers satisfy it)."""

    def debug(self, event: str, **kw: object) -> object: ...

    def info(self, event: str, **kw: object) -> object: ...

    def warning(self, event: str, **kw: object) -> object: ...

    def error(self, event: str, **kw: object) -> object: ...


class Producer(ABC, Generic[ItemT]):
    """Source-side read boundary yielding a lazy, finite item sequence."""

    @abstractmethod
    def produce(self, config: ReadConfig) -> Iterator[ItemT]:
        """Yield raw items; raise if the source cannot be read."""


class Stage(ABC, Generic[InT, OutT]):
    """Transform one input item into zero, one or many output items."""

    @abstractmethod
    def process(self, item: InT) -> Iterator[OutT]:
        """Yield the outputs derived from ``item``."""

    @property
    def name(self) -> str:
        return type(self).__name__


class Consumer(ABC, Generic[ItemT]):
    """Sink-side boundary receiving final items one at a time."""

    def on_start(self) -> None:
        """Called once before the first item is delivered."""

    @abstractmethod
    def consume(self, item: ItemT) -> None:
        """Accept a single item."""

    def on_complete(self) -> None:
        """Called once after the producer is exhausted."""


class CursorStore(ABC):
    """Persists the timestamp of the last successful run."""

    @abstractmethod
    def get_last_execution_time(self) -> datetime | None:
        """Return the stored cursor or ``None`` on a first run."""

    @abstractmethod
    def save_last_execution_time(self, timestamp: datetime) -> None:
        """Persist ``timestamp``; raise ``StoreError`` on failure."""

    def clear(self) -> None:
        """Forget the cursor so the next run starts from the default window."""


class DedupStore(ABC):
    """Seen-set backing the deduplication stage."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return True when ``key`` was already saved."""

    @abstractmethod
    def save(self, key: str, item: object | None = None) -> None:
        """Mark ``key`` as seen."""

    @abstractmethod
    def clear(self) -> None:
        """Forget every saved key."""


class ContentFetcher(ABC):
    """Rate-limit aware fetch capability returning ``None`` on recoverable failures."""

    @abstractmethod
    def fetch_content(self, url: str) -> str | None:
        """Return the body for ``url`` or ``None``."""

    @abstractmethod
    def is_rate_limited(self) -> bool:
        """Return True while a rate limit window is active."""

    @abstractmethod
    def get_rate_limit_reset_time(self) -> float:
        """Return the epoch seconds at which the rate limit lifts (0 when unset)."""

    @abstractmethod
    def clear_rate_limit(self) -> None:
        """Drop any recorded rate limit."""

    def close(self) -> None:
        """Release network resources."""


__all__ = [
    "Consumer",
    "ContentFetcher",
    "CursorStore",
    "DedupStore",
    "Logger",
    "Producer",
    "ReadConfig",
    "Stage",
]
