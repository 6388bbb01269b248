"""Exporter contract layered on the ``Consumer`` port."""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import asdict, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Generic, TypeVar

from ..ports import Consumer

ItemT = TypeVar("ItemT")


def to_record(item: Any) -> dict:
    """Flatten dataclasses and mappings into JSON-friendly dicts."""

    if is_dataclass(item) and not isinstance(item, type):
        data = asdict(item)
    elif isinstance(item, dict):
        data = dict(item)
    else:
        data = {"value": item}
    return {key: _plain(value) for key, value in data.items()}


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    return value


class BaseExporter(Consumer[Any]):
    """Consumer that persists every item as a record and flushes on completion."""

    def consume(self, item: Any) -> None:
        self.export(to_record(item))

    def on_complete(self) -> None:
        self.flush()

    @abstractmethod
    def export(self, record: dict) -> None:
        """Persist a single record."""

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered data to destination."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


class CollectingConsumer(Consumer[ItemT], Generic[ItemT]):
    """Accumulate delivered items in memory for the caller to read afterwards."""

    def __init__(self) -> None:
        self.items: list[ItemT] = []
        self.started = False
        self.completed = False

    def on_start(self) -> None:
        self.started = True

    def consume(self, item: ItemT) -> None:
        self.items.append(item)

    def on_complete(self) -> None:
        self.completed = True


__all__ = ["BaseExporter", "CollectingConsumer", "to_record"]
