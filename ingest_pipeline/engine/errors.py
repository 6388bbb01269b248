"""Error taxonomy shared by producers, stages, stores and the executor."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error raised by the ingestion core."""


class SourceError(PipelineError):
    """The producer could not obtain the next item; aborts the run."""


class ItemError(PipelineError):
    """A single item failed in a stage or in the consumer.

    The executor isolates these: the failing item is reported through the
    ``on_error`` hook and the run continues with the next item.
    """

    def __init__(self, message: str, item: object | None = None) -> None:
        super().__init__(message)
        self.item = item


class FetchError(PipelineError):
    """A network fetch exhausted its retries or hit a rate limit.

    Never escapes ``ContentFetcher.fetch_content``; callers see ``None``.
    """

    def __init__(self, message: str, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class StoreError(PipelineError):
    """A dedup or cursor store failed to read or persist state."""


class WorkflowStateError(PipelineError):
    """An executor was asked to run outside the ``IDLE`` state."""


__all__ = [
    "FetchError",
    "ItemError",
    "PipelineError",
    "SourceError",
    "StoreError",
    "WorkflowStateError",
]
