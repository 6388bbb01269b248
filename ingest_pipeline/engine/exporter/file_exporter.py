"""File based exporter supporting JSON lines, CSV and plain text."""

from __future__ import annotations

import csv
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .base import BaseExporter


class FileExporter(BaseExporter):
    """Write records to a per-run file in ``output_dir``."""

    def __init__(self, output_dir: Path, pipeline_name: str, fmt: str, run_tag: str | None = None) -> None:
        if fmt not in {"json", "csv", "txt"}:
            raise ValueError(f"Unsupported output format: {fmt}")
        self.output_dir = output_dir
        self.pipeline_name = pipeline_name
        self.format = fmt
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.run_tag = run_tag or datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        slug = re.sub(r"[^0-9A-Za-z_-]+", "_", pipeline_name.strip()) or "pipeline"
        self.path = self.output_dir / f"{slug}-{self.run_tag}.{self._extension}"
        self._file = None
        self._csv_writer: Optional[csv.DictWriter] = None
        self.count = 0

    @property
    def _extension(self) -> str:
        if self.format == "json":
            return "jsonl"
        if self.format == "csv":
            return "csv"
        return "txt"

    def on_start(self) -> None:
        self._open()

    def export(self, record: dict) -> None:
        stream = self._open()
        self.count += 1
        if self.format == "json":
            json.dump(record, stream, ensure_ascii=False)
            stream.write("\n")
        elif self.format == "csv":
            if not self._csv_writer:
                self._csv_writer = csv.DictWriter(
                    stream, fieldnames=sorted(record.keys()), extrasaction="ignore"
                )
                self._csv_writer.writeheader()
            self._csv_writer.writerow(record)
        else:
            stream.write(self._format_txt(record, index=self.count))

    def flush(self) -> None:
        if self._file is not None:
            self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def _open(self):
        if self._file is None:
            self._file = self.path.open("a", encoding="utf-8", newline="")
        return self._file

    @staticmethod
    def _format_txt(record: dict, index: int) -> str:
        url = record.get("url") or record.get("value") or ""
        lines = [f"{index}. {url}"]
        source = record.get("source")
        if source:
            lines.append(f"source: {source}")
        content = record.get("content")
        if isinstance(content, str) and content.strip():
            lines.append(" ".join(content.split())[:240])
        return "\n".join(lines) + "\n\n"


__all__ = ["FileExporter"]
