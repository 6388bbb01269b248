"""Deduplication stage plus in-memory and SQLite-backed seen-sets."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, is_dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Iterator, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import structlog

from ..infra.storage import SQLiteManager
from .errors import StoreError
from .ports import DedupStore, Stage

_TRACKING_PARAMS = {"fbclid", "gclid", "mc_cid", "mc_eid"}
_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Return a canonical form of ``url`` suitable as a dedup key."""

    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port
    netloc = host
    if parts.username:
        netloc = f"{parts.username}@{host}"
    if port and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"
    path = parts.path or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    query = urlencode(
        [
            (name, value)
            for name, value in parse_qsl(parts.query, keep_blank_values=True)
            if not name.lower().startswith("utm_") and name.lower() not in _TRACKING_PARAMS
        ]
    )
    return urlunsplit((scheme, netloc, path, query, ""))


def default_dedup_key(item: Any) -> str:
    """Derive the identity of ``item``: its normalised URL when it has one."""

    if isinstance(item, str):
        return normalize_url(item) if "://" in item else item
    url = item.get("url") if isinstance(item, Mapping) else getattr(item, "url", None)
    if isinstance(url, str) and url:
        return normalize_url(url)
    key = item.get("key") if isinstance(item, Mapping) else getattr(item, "key", None)
    if key is not None:
        return str(key)
    raise ValueError(f"Cannot derive a dedup key from {type(item).__name__}")


class InMemoryDedupStore(DedupStore):
    """Ephemeral seen-set scoped to the lifetime of this object."""

    def __init__(self) -> None:
        self._keys: set[str] = set()

    def exists(self, key: str) -> bool:
        return key in self._keys

    def save(self, key: str, item: object | None = None) -> None:
        self._keys.add(key)

    def clear(self) -> None:
        self._keys.clear()

    def __len__(self) -> int:
        return len(self._keys)


class SQLiteDedupStore(DedupStore):
    """Persistent seen-set surviving across runs."""

    def __init__(self, manager: SQLiteManager, db_path: Path, namespace: str = "default") -> None:
        self.manager = manager
        self.db_path = db_path
        self.namespace = namespace
        self._lock = Lock()
        try:
            self._conn = self.manager.connect(db_path)
        except (sqlite3.Error, OSError) as exc:
            raise StoreError(f"Cannot open dedup store {db_path}: {exc}") from exc

    def exists(self, key: str) -> bool:
        with self._lock:
            try:
                cur = self._conn.execute(
                    "SELECT 1 FROM seen_items WHERE namespace = ? AND key = ?",
                    (self.namespace, key),
                )
                return cur.fetchone() is not None
            except sqlite3.Error as exc:
                raise StoreError(f"Dedup lookup failed for {key}: {exc}") from exc

    def save(self, key: str, item: object | None = None) -> None:
        payload = self._serialise(item)
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT OR REPLACE INTO seen_items(namespace, key, payload, timestamp) "
                    "VALUES (?, ?, ?, datetime('now'))",
                    (self.namespace, key, payload),
                )
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"Dedup save failed for {key}: {exc}") from exc

    def clear(self) -> None:
        with self._lock:
            try:
                self._conn.execute("DELETE FROM seen_items WHERE namespace = ?", (self.namespace,))
                self._conn.commit()
            except sqlite3.Error as exc:
                raise StoreError(f"Dedup clear failed: {exc}") from exc

    def recent(self, limit: int = 20) -> list[tuple[str, str]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT key, timestamp FROM seen_items WHERE namespace = ? "
                "ORDER BY timestamp DESC, rowid DESC LIMIT ?",
                (self.namespace, limit),
            ).fetchall()
        return [(row["key"], row["timestamp"]) for row in rows]

    def __len__(self) -> int:
        with self._lock:
            row = self._conn.execute(
                "SELECT count(*) FROM seen_items WHERE namespace = ?", (self.namespace,)
            ).fetchone()
        return int(row[0])

    @staticmethod
    def _serialise(item: object | None) -> str | None:
        if item is None:
            return None
        if is_dataclass(item) and not isinstance(item, type):
            item = asdict(item)
        try:
            return json.dumps(item, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return repr(item)


class DeduplicationStage(Stage[Any, Any]):
    """Drop items whose key was already seen by ``store``.

    Keys are saved *before* the item is yielded, so a downstream failure
    never lets the same key through twice. The flip side is that an item
    whose delivery fails stays marked as seen.
    """

    def __init__(
        self,
        store: DedupStore,
        key_fn: Callable[[Any], str] = default_dedup_key,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.key_fn = key_fn
        self.logger = logger or structlog.get_logger("ingest_pipeline.dedup")
        self._duplicate_count = 0

    def process(self, item: Any) -> Iterator[Any]:
        key = self.key_fn(item)
        if self.store.exists(key):
            self._duplicate_count += 1
            self.logger.debug("duplicate_skipped", key=key)
            return
        self.store.save(key, item)
        yield item

    @property
    def duplicate_count(self) -> int:
        return self._duplicate_count

    def get_duplicate_count(self) -> int:
        return self._duplicate_count

    def reset(self) -> None:
        self._duplicate_count = 0

    def clear(self) -> None:
        self.store.clear()
        self._duplicate_count = 0


__all__ = [
    "DeduplicationStage",
    "InMemoryDedupStore",
    "SQLiteDedupStore",
    "default_dedup_key",
    "normalize_url",
]
