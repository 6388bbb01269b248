"""Workflow executor: producer -> pipeline -> consumer with per-item isolation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import Event
from typing import Any, Callable, Iterator

import structlog

from .errors import SourceError, StoreError, WorkflowStateError
from .pipeline import Pipeline
from .ports import Consumer, Producer, ReadConfig, Stage


class WorkflowState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RunStats:
    """Final counters of one execution."""

    items_produced: int = 0
    items_consumed: int = 0
    items_errored: int = 0
    cancelled: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


@dataclass(slots=True)
class _Counters:
    produced: int = 0
    consumed: int = 0
    errored: int = 0
    cancelled: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def freeze(self) -> RunStats:
        return RunStats(
            items_produced=self.produced,
            items_consumed=self.consumed,
            items_errored=self.errored,
            cancelled=self.cancelled,
            started_at=self.started_at,
            finished_at=datetime.now(timezone.utc),
        )


@dataclass(slots=True)
class WorkflowHooks:
    """Optional lifecycle callbacks; any of them may be left unset."""

    on_start: Callable[[], None] | None = None
    on_error: Callable[[Exception, Any], None] | None = None
    on_complete: Callable[[RunStats], None] | None = None
    on_failure: Callable[[Exception, RunStats], None] | None = None


class WorkflowExecutor:
    """Run a producer through a stage chain into a consumer exactly once.

    Items are handled strictly in producer order: item ``n + 1`` is only
    pulled after item ``n`` and all of its outputs reached the consumer.
    Errors raised while handling one source item are isolated and reported
    through ``on_error``; producer failures and ``StoreError`` abort the run.
    """

    def __init__(
        self,
        producer: Producer[Any],
        pipeline: Stage[Any, Any] | None,
        consumer: Consumer[Any],
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.producer = producer
        self.pipeline: Stage[Any, Any] = pipeline if pipeline is not None else Pipeline()
        self.consumer = consumer
        self.logger = logger or structlog.get_logger("ingest_pipeline.executor")
        self.state = WorkflowState.IDLE
        self.stats: RunStats | None = None

    def execute(
        self,
        hooks: WorkflowHooks | None = None,
        config: ReadConfig | None = None,
        cancel_event: Event | None = None,
    ) -> RunStats:
        if self.state is not WorkflowState.IDLE:
            raise WorkflowStateError(f"Executor already used (state={self.state.value})")
        hooks = hooks or WorkflowHooks()
        config = config or ReadConfig()
        counters = _Counters()
        self.state = WorkflowState.RUNNING
        self.logger.info(
            "workflow_started",
            since=config.since.isoformat() if config.since else None,
            filter=config.filter,
        )
        try:
            if hooks.on_start:
                hooks.on_start()
            self.consumer.on_start()
            for item in self._pull(config, counters, cancel_event):
                counters.produced += 1
                self._process_item(item, hooks, counters)
            self.consumer.on_complete()
        except Exception as exc:
            self.state = WorkflowState.FAILED
            self.stats = counters.freeze()
            self.logger.error(
                "workflow_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                produced=self.stats.items_produced,
                consumed=self.stats.items_consumed,
            )
            if hooks.on_failure:
                hooks.on_failure(exc, self.stats)
            raise
        self.stats = counters.freeze()
        self.state = WorkflowState.COMPLETED
        self.logger.info(
            "workflow_completed",
            produced=self.stats.items_produced,
            consumed=self.stats.items_consumed,
            errored=self.stats.items_errored,
            cancelled=self.stats.cancelled,
        )
        if hooks.on_complete:
            hooks.on_complete(self.stats)
        return self.stats

    # ------------------------------------------------------------------
    def _pull(
        self, config: ReadConfig, counters: _Counters, cancel_event: Event | None
    ) -> Iterator[Any]:
        try:
            iterator = iter(self.producer.produce(config))
        except SourceError:
            raise
        except Exception as exc:
            raise SourceError(f"Producer could not start: {exc}") from exc
        while True:
            if cancel_event is not None and cancel_event.is_set():
                counters.cancelled = True
                self.logger.warning("workflow_cancelled", produced=counters.produced)
                close = getattr(iterator, "close", None)
                if close is not None:
                    close()
                return
            try:
                item = next(iterator)
            except StopIteration:
                return
            except SourceError:
                raise
            except Exception as exc:
                raise SourceError(f"Producer failed after {counters.produced} items: {exc}") from exc
            yield item

    def _process_item(self, item: Any, hooks: WorkflowHooks, counters: _Counters) -> None:
        try:
            for output in self.pipeline.process(item):
                self.consumer.consume(output)
                counters.consumed += 1
        except StoreError:
            raise
        except Exception as exc:  # noqa: BLE001
            counters.errored += 1
            self.logger.warning("item_failed", error=str(exc), error_type=type(exc).__name__)
            if hooks.on_error:
                hooks.on_error(exc, item)


__all__ = ["RunStats", "WorkflowExecutor", "WorkflowHooks", "WorkflowState"]
