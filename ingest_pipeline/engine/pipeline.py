"""Left-to-right stage composition streaming one item at a time."""

from __future__ import annotations

from typing import Any, Iterable, Iterator

from .ports import Stage


class Pipeline(Stage[Any, Any]):
    """Chain stages so that every output of stage N feeds stage N+1.

    Stages are wired as nested generators: nothing is materialised between
    stages, so only the items currently in flight are held in memory. A
    pipeline without stages yields its input unchanged.
    """

    def __init__(self, stages: Iterable[Stage[Any, Any]] | None = None) -> None:
        self._stages: list[Stage[Any, Any]] = list(stages or [])

    def add_stage(self, stage: Stage[Any, Any]) -> "Pipeline":
        self._stages.append(stage)
        return self

    @property
    def stages(self) -> tuple[Stage[Any, Any], ...]:
        return tuple(self._stages)

    def __len__(self) -> int:
        return len(self._stages)

    def process(self, item: Any) -> Iterator[Any]:
        stream: Iterator[Any] = iter((item,))
        for stage in self._stages:
            stream = self._apply(stage, stream)
        yield from stream

    execute = process

    @staticmethod
    def _apply(stage: Stage[Any, Any], stream: Iterator[Any]) -> Iterator[Any]:
        for upstream_item in stream:
            yield from stage.process(upstream_item)


__all__ = ["Pipeline"]
