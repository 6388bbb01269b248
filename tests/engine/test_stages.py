from __future__ import annotations

from datetime import datetime, timezone

from ingest_pipeline.engine import (
    ExtractedLink,
    FetchContentStage,
    FetchedPage,
    LinkExtractionStage,
)
from ingest_pipeline.engine.producers import SourceDocument
from ingest_pipeline.engine.ports import ContentFetcher
from ingest_pipeline.engine.stages import extract_links


class DictFetcher(ContentFetcher):
    def __init__(self, pages: dict[str, str]) -> None:
        self.pages = pages

    def fetch_content(self, url: str) -> str | None:
        return self.pages.get(url)

    def is_rate_limited(self) -> bool:
        return False

    def get_rate_limit_reset_time(self) -> float:
        return 0.0

    def clear_rate_limit(self) -> None:
        return None


def test_extract_links_cleans_and_deduplicates() -> None:
    text = (
        "Read https://example.com/a, then (https://example.com/b).\n"
        "Again: https://example.com/a\n"
        '<a href="https://example.com/c?x=1&amp;y=2">c</a>'
    )
    assert extract_links(text) == [
        "https://example.com/a",
        "https://example.com/b",
        "https://example.com/c?x=1&y=2",
    ]


def test_extract_links_unfolds_quoted_printable() -> None:
    text = "See https://example.com/very/long/pa=\nth?id=3D42 for details"
    assert extract_links(text) == ["https://example.com/very/long/path?id=42"]


def test_extract_links_ignores_non_http() -> None:
    assert extract_links("mailto:someone@example.com ftp://files.example.com") == []


def test_link_extraction_stage_fans_out(tmp_path) -> None:
    document = SourceDocument(
        name="mail-1.eml",
        path=tmp_path / "mail-1.eml",
        content="https://a.example/1 https://b.example/2",
        modified_at=datetime.now(timezone.utc),
    )
    links = list(LinkExtractionStage().process(document))
    assert links == [
        ExtractedLink(url="https://a.example/1", source="mail-1.eml"),
        ExtractedLink(url="https://b.example/2", source="mail-1.eml"),
    ]
    assert list(LinkExtractionStage().process("no links here")) == []


def test_fetch_content_stage_keeps_or_drops_missing() -> None:
    fetcher = DictFetcher({"https://ok": "body"})
    keep = FetchContentStage(fetcher)
    assert list(keep.process(ExtractedLink("https://ok", "s"))) == [
        FetchedPage(url="https://ok", content="body", source="s")
    ]
    assert list(keep.process(ExtractedLink("https://missing"))) == [
        FetchedPage(url="https://missing", content=None)
    ]
    assert keep.missing_count == 1

    drop = FetchContentStage(fetcher, drop_missing=True)
    assert list(drop.process(ExtractedLink("https://missing"))) == []
    assert drop.missing_count == 1
