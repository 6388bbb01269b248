"""Cursor stores persisting the last successful execution time."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from ..engine.errors import StoreError
from ..engine.ports import CursorStore


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class FileCursorStore(CursorStore):
    """Store the cursor as a single ISO-8601 timestamp in a text file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def get_last_execution_time(self) -> datetime | None:
        if not self.path.exists():
            return None
        try:
            text = self.path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise StoreError(f"Cannot read cursor {self.path}: {exc}") from exc
        if not text:
            return None
        normalised = text[:-1] + "+00:00" if text.endswith("Z") else text
        try:
            return _as_utc(datetime.fromisoformat(normalised))
        except ValueError as exc:
            raise StoreError(f"Corrupt cursor in {self.path}: {text!r}") from exc

    def save_last_execution_time(self, timestamp: datetime) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(_as_utc(timestamp).isoformat(), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            raise StoreError(f"Failed to save cursor {self.path}: {exc}") from exc

    def clear(self) -> None:
        try:
            if self.path.exists():
                self.path.unlink()
        except OSError as exc:
            raise StoreError(f"Failed to clear cursor {self.path}: {exc}") from exc


class InMemoryCursorStore(CursorStore):
    """Process-local cursor, mainly for tests and one-off runs."""

    def __init__(self, initial: datetime | None = None) -> None:
        self._value = _as_utc(initial) if initial else None
        self.save_calls = 0

    def get_last_execution_time(self) -> datetime | None:
        return self._value

    def save_last_execution_time(self, timestamp: datetime) -> None:
        self._value = _as_utc(timestamp)
        self.save_calls += 1

    def clear(self) -> None:
        self._value = None


__all__ = ["FileCursorStore", "InMemoryCursorStore"]
