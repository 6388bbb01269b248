"""Reusable stages: callable adapters, link extraction and content fetching."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator

import structlog

from .ports import ContentFetcher, Stage


@dataclass(frozen=True, slots=True)
class ExtractedLink:
    url: str
    source: str | None = None


@dataclass(frozen=True, slots=True)
class FetchedPage:
    url: str
    content: str | None
    source: str | None = None


class FunctionStage(Stage[Any, Any]):
    """Wrap a callable returning an iterable of outputs."""

    def __init__(self, fn: Callable[[Any], Iterable[Any]], name: str | None = None) -> None:
        self.fn = fn
        self._name = name or getattr(fn, "__name__", type(self).__name__)

    @property
    def name(self) -> str:
        return self._name

    def process(self, item: Any) -> Iterator[Any]:
        yield from self.fn(item)


class MapStage(Stage[Any, Any]):
    """One output per input."""

    def __init__(self, fn: Callable[[Any], Any]) -> None:
        self.fn = fn

    def process(self, item: Any) -> Iterator[Any]:
        yield self.fn(item)


class FilterStage(Stage[Any, Any]):
    """Keep items for which ``predicate`` is truthy."""

    def __init__(self, predicate: Callable[[Any], bool]) -> None:
        self.predicate = predicate
        self.filtered_count = 0

    def process(self, item: Any) -> Iterator[Any]:
        if self.predicate(item):
            yield item
        else:
            self.filtered_count += 1


_URL_PATTERN = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+", re.IGNORECASE)
_TRAILING_PUNCTUATION = re.compile(r"[,;.!?)'\"]+$")


def extract_links(text: str) -> list[str]:
    """Return the distinct http(s) links in ``text`` in order of appearance."""

    # Quoted-printable soft line breaks split long URLs across lines.
    unfolded = re.sub(r"=\r?\n", "", text)
    links: list[str] = []
    seen: set[str] = set()
    for match in _URL_PATTERN.findall(unfolded):
        cleaned = _TRAILING_PUNCTUATION.sub("", match)
        cleaned = cleaned.replace("=3D", "=").replace("=3d", "=")
        cleaned = html.unescape(cleaned).rstrip("=")
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            links.append(cleaned)
    return links


class LinkExtractionStage(Stage[Any, ExtractedLink]):
    """Fan a text document out into one ``ExtractedLink`` per URL found."""

    def __init__(
        self,
        text_of: Callable[[Any], str] | None = None,
        source_of: Callable[[Any], str | None] | None = None,
    ) -> None:
        self.text_of = text_of or self._default_text
        self.source_of = source_of or self._default_source

    def process(self, item: Any) -> Iterator[ExtractedLink]:
        source = self.source_of(item)
        for url in extract_links(self.text_of(item)):
            yield ExtractedLink(url=url, source=source)

    @staticmethod
    def _default_text(item: Any) -> str:
        if isinstance(item, str):
            return item
        content = getattr(item, "content", None)
        if isinstance(content, str):
            return content
        raise TypeError(f"No text content on {type(item).__name__}")

    @staticmethod
    def _default_source(item: Any) -> str | None:
        return getattr(item, "name", None)


class FetchContentStage(Stage[ExtractedLink, FetchedPage]):
    """Resolve links through a ``ContentFetcher``.

    Fetch problems surface as ``content=None`` (or as a dropped item when
    ``drop_missing`` is set), never as an exception.
    """

    def __init__(
        self,
        fetcher: ContentFetcher,
        drop_missing: bool = False,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.drop_missing = drop_missing
        self.logger = logger or structlog.get_logger("ingest_pipeline.stages")
        self.missing_count = 0

    def process(self, item: ExtractedLink) -> Iterator[FetchedPage]:
        content = self.fetcher.fetch_content(item.url)
        if content is None:
            self.missing_count += 1
            self.logger.debug("content_missing", url=item.url)
            if self.drop_missing:
                return
        yield FetchedPage(url=item.url, content=content, source=item.source)


__all__ = [
    "ExtractedLink",
    "FetchContentStage",
    "FetchedPage",
    "FilterStage",
    "FunctionStage",
    "LinkExtractionStage",
    "MapStage",
    "extract_links",
]
