"""Cursor-bounded execution: read the cursor once, advance it only on success."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Event
from typing import Callable

import structlog

from .executor import RunStats, WorkflowExecutor, WorkflowHooks, WorkflowState
from .ports import CursorStore, ReadConfig


@dataclass(frozen=True, slots=True)
class RunReport:
    state: WorkflowState
    stats: RunStats
    since: datetime | None
    cursor_advanced: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IncrementalRunner:
    """Wrap a ``WorkflowExecutor`` with cursor bookkeeping.

    The cursor is read once before the run to bound the producer and saved
    once afterwards with the run's start time. Failed or cancelled runs
    leave it untouched so the next run re-reads the same window.
    """

    def __init__(
        self,
        cursor_store: CursorStore | None,
        default_lookback: timedelta | None = timedelta(days=30),
        clock: Callable[[], datetime] = _utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.cursor_store = cursor_store
        self.default_lookback = default_lookback
        self.clock = clock
        self.logger = logger or structlog.get_logger("ingest_pipeline.runner")

    def resolve_since(self, ignore_cursor: bool = False) -> datetime | None:
        last_run = None
        if self.cursor_store is not None and not ignore_cursor:
            last_run = self.cursor_store.get_last_execution_time()
        if last_run is not None:
            return last_run
        if self.default_lookback is None:
            return None
        return self.clock() - self.default_lookback

    def run(
        self,
        executor: WorkflowExecutor,
        hooks: WorkflowHooks | None = None,
        filter: str | None = None,
        ignore_cursor: bool = False,
        cancel_event: Event | None = None,
    ) -> RunReport:
        started_at = self.clock()
        since = self.resolve_since(ignore_cursor=ignore_cursor)
        self.logger.info(
            "incremental_run_started",
            since=since.isoformat() if since else None,
            ignore_cursor=ignore_cursor,
        )
        stats = executor.execute(
            hooks=hooks,
            config=ReadConfig(since=since, filter=filter),
            cancel_event=cancel_event,
        )
        advanced = False
        if self.cursor_store is not None and not stats.cancelled:
            self.cursor_store.save_last_execution_time(started_at)
            advanced = True
            self.logger.info("cursor_advanced", cursor=started_at.isoformat())
        return RunReport(
            state=executor.state,
            stats=stats,
            since=since,
            cursor_advanced=advanced,
        )


__all__ = ["IncrementalRunner", "RunReport"]
