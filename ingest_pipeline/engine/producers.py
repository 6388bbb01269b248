"""Generic producers: in-memory iterables and local folders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator
from urllib.parse import unquote, urlparse

import structlog

from .errors import SourceError
from .ports import Producer, ReadConfig


@dataclass(frozen=True, slots=True)
class SourceDocument:
    """A file read from a folder producer."""

    name: str
    path: Path
    content: str
    modified_at: datetime


class IterableProducer(Producer[Any]):
    """Yield items from an iterable, honouring ``since`` and ``filter`` when possible.

    ``timestamp_of`` maps an item to its datetime for the ``since`` bound;
    ``matches`` decides whether an item satisfies ``ReadConfig.filter``.
    Without them the corresponding bound is ignored.
    """

    def __init__(
        self,
        items: Iterable[Any],
        timestamp_of: Callable[[Any], datetime | None] | None = None,
        matches: Callable[[Any, str], bool] | None = None,
    ) -> None:
        self.items = items
        self.timestamp_of = timestamp_of
        self.matches = matches

    def produce(self, config: ReadConfig) -> Iterator[Any]:
        for item in self.items:
            if config.since is not None and self.timestamp_of is not None:
                timestamp = self.timestamp_of(item)
                if timestamp is not None and timestamp < config.since:
                    continue
            if config.filter and self.matches is not None and not self.matches(item, config.filter):
                continue
            yield item


def resolve_folder_uri(uri: str) -> Path:
    """Turn a plain path or ``file://`` URI into a local ``Path``."""

    if "://" not in uri:
        return Path(uri).expanduser()
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        raise SourceError(f"Unsupported URI scheme: {uri}")
    return Path(unquote(parsed.netloc + parsed.path)).expanduser()


class DirectoryProducer(Producer[SourceDocument]):
    """Lazily read files matching ``pattern`` from a single folder.

    Files modified before ``ReadConfig.since`` are skipped; ``filter`` is a
    case-insensitive substring match against the file name.
    """

    def __init__(
        self,
        uri: str,
        pattern: str = "*.eml",
        encoding: str = "utf-8",
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.uri = uri
        self.pattern = pattern
        self.encoding = encoding
        self.logger = logger or structlog.get_logger("ingest_pipeline.producers")

    def produce(self, config: ReadConfig) -> Iterator[SourceDocument]:
        folder = resolve_folder_uri(self.uri)
        if not folder.is_dir():
            raise SourceError(f"Source folder not found: {folder}")
        try:
            candidates = sorted(folder.glob(self.pattern))
        except OSError as exc:
            raise SourceError(f"Cannot list {folder}: {exc}") from exc
        needle = config.filter.lower() if config.filter else None
        for path in candidates:
            if not path.is_file():
                continue
            if needle and needle not in path.name.lower():
                continue
            try:
                stat = path.stat()
                modified_at = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
                if config.since is not None and modified_at < config.since:
                    continue
                content = path.read_text(encoding=self.encoding, errors="replace")
            except OSError as exc:
                raise SourceError(f"Failed to read {path}: {exc}") from exc
            self.logger.debug("document_read", path=str(path))
            yield SourceDocument(
                name=path.name,
                path=path,
                content=content,
                modified_at=modified_at,
            )


__all__ = ["DirectoryProducer", "IterableProducer", "SourceDocument", "resolve_folder_uri"]
