from __future__ import annotations

from threading import Event
from typing import Iterator

import pytest

from ingest_pipeline.engine import (
    FilterStage,
    FunctionStage,
    ItemError,
    IterableProducer,
    Pipeline,
    ReadConfig,
    SourceError,
    StoreError,
    WorkflowExecutor,
    WorkflowHooks,
    WorkflowState,
    WorkflowStateError,
)
from ingest_pipeline.engine.exporter import CollectingConsumer
from ingest_pipeline.engine.ports import Producer


class _BrokenProducer(Producer[str]):
    """Yields ``items`` and then fails."""

    def __init__(self, items: list[str]) -> None:
        self.items = items

    def produce(self, config: ReadConfig) -> Iterator[str]:
        yield from self.items
        raise ConnectionError("source went away")


class _UnreachableProducer(Producer[str]):
    def produce(self, config: ReadConfig) -> Iterator[str]:
        raise ConnectionError("cannot connect")


def test_filtered_items_are_not_consumed() -> None:
    consumer = CollectingConsumer()
    executor = WorkflowExecutor(
        IterableProducer(["A", "B", "C"]),
        Pipeline([FilterStage(lambda item: item != "B")]),
        consumer,
    )
    stats = executor.execute()
    assert consumer.items == ["A", "C"]
    assert stats.items_produced == 3
    assert stats.items_consumed == 2
    assert executor.state is WorkflowState.COMPLETED
    assert consumer.started and consumer.completed


def test_item_error_is_isolated() -> None:
    errors: list[tuple[Exception, object]] = []

    def explode_on_b(item: str):
        if item == "B":
            raise ItemError("bad item", item)
        yield item

    consumer = CollectingConsumer()
    executor = WorkflowExecutor(
        IterableProducer(["A", "B"]),
        Pipeline([FunctionStage(explode_on_b)]),
        consumer,
    )
    stats = executor.execute(WorkflowHooks(on_error=lambda exc, item: errors.append((exc, item))))
    assert consumer.items == ["A"]
    assert len(errors) == 1
    assert errors[0][1] == "B"
    assert isinstance(errors[0][0], ItemError)
    assert stats.items_errored == 1
    assert executor.state is WorkflowState.COMPLETED


def test_consumer_error_is_isolated_per_item() -> None:
    class Picky(CollectingConsumer):
        def consume(self, item):
            if item == 2:
                raise ValueError("no twos")
            super().consume(item)

    consumer = Picky()
    stats = WorkflowExecutor(IterableProducer([1, 2, 3]), None, consumer).execute()
    assert consumer.items == [1, 3]
    assert stats.items_errored == 1
    assert stats.items_consumed == 2


def test_hooks_fire_in_order() -> None:
    events: list[str] = []
    hooks = WorkflowHooks(
        on_start=lambda: events.append("start"),
        on_complete=lambda stats: events.append(f"complete:{stats.items_consumed}"),
    )

    class Recording(CollectingConsumer):
        def consume(self, item):
            events.append(f"consume:{item}")

    WorkflowExecutor(IterableProducer(["x", "y"]), Pipeline(), Recording()).execute(hooks)
    assert events == ["start", "consume:x", "consume:y", "complete:2"]


def test_outputs_reach_consumer_before_next_pull() -> None:
    events: list[str] = []

    def source():
        for name in ("a", "b"):
            events.append(f"pull:{name}")
            yield name

    class Recording(CollectingConsumer):
        def consume(self, item):
            events.append(f"consume:{item}")

    fan_out = FunctionStage(lambda item: [f"{item}1", f"{item}2"])
    WorkflowExecutor(IterableProducer(source()), Pipeline([fan_out]), Recording()).execute()
    assert events == ["pull:a", "consume:a1", "consume:a2", "pull:b", "consume:b1", "consume:b2"]


def test_producer_failure_fails_run_after_delivering_earlier_items() -> None:
    failures: list[Exception] = []
    consumer = CollectingConsumer()
    executor = WorkflowExecutor(_BrokenProducer(["A", "B"]), Pipeline(), consumer)
    with pytest.raises(SourceError):
        executor.execute(WorkflowHooks(on_failure=lambda exc, stats: failures.append(exc)))
    assert consumer.items == ["A", "B"]
    assert not consumer.completed
    assert executor.state is WorkflowState.FAILED
    assert executor.stats is not None and executor.stats.items_produced == 2
    assert len(failures) == 1


def test_unreachable_source_aborts_before_any_item() -> None:
    consumer = CollectingConsumer()
    executor = WorkflowExecutor(_UnreachableProducer(), Pipeline(), consumer)
    with pytest.raises(SourceError):
        executor.execute()
    assert consumer.items == []
    assert executor.state is WorkflowState.FAILED


def test_store_error_aborts_run() -> None:
    def broken_store(item):
        raise StoreError("disk full")
        yield item  # pragma: no cover

    executor = WorkflowExecutor(
        IterableProducer(["A", "B"]), Pipeline([FunctionStage(broken_store)]), CollectingConsumer()
    )
    with pytest.raises(StoreError):
        executor.execute()
    assert executor.state is WorkflowState.FAILED


def test_executor_cannot_be_reused() -> None:
    executor = WorkflowExecutor(IterableProducer([]), Pipeline(), CollectingConsumer())
    executor.execute()
    with pytest.raises(WorkflowStateError):
        executor.execute()


def test_cancellation_stops_pulling() -> None:
    cancel = Event()

    class CancelAfterFirst(CollectingConsumer):
        def consume(self, item):
            super().consume(item)
            cancel.set()

    consumer = CancelAfterFirst()
    executor = WorkflowExecutor(IterableProducer(["A", "B", "C"]), Pipeline(), consumer)
    stats = executor.execute(cancel_event=cancel)
    assert consumer.items == ["A"]
    assert stats.cancelled
    assert stats.items_produced == 1
    assert executor.state is WorkflowState.COMPLETED


def test_read_config_reaches_producer() -> None:
    seen: list[ReadConfig] = []

    class Spy(Producer[str]):
        def produce(self, config: ReadConfig) -> Iterator[str]:
            seen.append(config)
            return iter(())

    WorkflowExecutor(Spy(), Pipeline(), CollectingConsumer()).execute(
        config=ReadConfig(filter="news")
    )
    assert seen == [ReadConfig(filter="news")]
