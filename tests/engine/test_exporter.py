from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from ingest_pipeline.engine import ExtractedLink, FetchedPage
from ingest_pipeline.engine.exporter import FileExporter, to_record


def test_to_record_flattens_values() -> None:
    moment = datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc)
    assert to_record(ExtractedLink("https://a", "mail.eml")) == {"url": "https://a", "source": "mail.eml"}
    assert to_record({"at": moment, "path": Path("/tmp/x")}) == {
        "at": moment.isoformat(),
        "path": str(Path("/tmp/x")),
    }
    assert to_record("raw") == {"value": "raw"}


def test_json_lines_export(tmp_path: Path) -> None:
    exporter = FileExporter(tmp_path, "My Feed", "json", run_tag="t1")
    exporter.on_start()
    exporter.consume(ExtractedLink("https://a", "m1"))
    exporter.consume(ExtractedLink("https://b", None))
    exporter.on_complete()
    exporter.close()

    assert exporter.path.name == "My_Feed-t1.jsonl"
    lines = exporter.path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["url"] for line in lines] == ["https://a", "https://b"]
    assert exporter.count == 2


def test_csv_export_uses_first_record_columns(tmp_path: Path) -> None:
    exporter = FileExporter(tmp_path, "feed", "csv", run_tag="t2")
    exporter.consume(FetchedPage("https://a", "body", "m1"))
    exporter.consume({"url": "https://b", "content": None, "source": "m2", "extra": 1})
    exporter.close()

    with exporter.path.open(encoding="utf-8", newline="") as stream:
        rows = list(csv.DictReader(stream))
    assert list(rows[0].keys()) == ["content", "source", "url"]
    assert [row["url"] for row in rows] == ["https://a", "https://b"]


def test_txt_export_numbers_entries(tmp_path: Path) -> None:
    exporter = FileExporter(tmp_path, "feed", "txt", run_tag="t3")
    exporter.consume(FetchedPage("https://a", "some   text\nhere", "m1"))
    exporter.consume(ExtractedLink("https://b"))
    exporter.close()

    text = exporter.path.read_text(encoding="utf-8")
    assert "1. https://a" in text
    assert "source: m1" in text
    assert "some text here" in text
    assert "2. https://b" in text


def test_unknown_format_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        FileExporter(tmp_path, "feed", "xml")
