"""Engine components orchestrating produce → stages → dedup → consume."""

from .cache import CachedFetcher, ContentCache
from .dedup import (
    DeduplicationStage,
    InMemoryDedupStore,
    SQLiteDedupStore,
    default_dedup_key,
    normalize_url,
)
from .errors import FetchError, ItemError, PipelineError, SourceError, StoreError, WorkflowStateError
from .executor import RunStats, WorkflowExecutor, WorkflowHooks, WorkflowState
from .fetcher import RateLimitedFetcher, RateLimitState
from .pipeline import Pipeline
from .ports import Consumer, ContentFetcher, CursorStore, DedupStore, Producer, ReadConfig, Stage
from .producers import DirectoryProducer, IterableProducer, SourceDocument
from .runner import IncrementalRunner, RunReport
from .stages import (
    ExtractedLink,
    FetchContentStage,
    FetchedPage,
    FilterStage,
    FunctionStage,
    LinkExtractionStage,
    MapStage,
)

__all__ = [
    "CachedFetcher",
    "Consumer",
    "ContentCache",
    "ContentFetcher",
    "CursorStore",
    "DedupStore",
    "DeduplicationStage",
    "DirectoryProducer",
    "ExtractedLink",
    "FetchContentStage",
    "FetchError",
    "FetchedPage",
    "FilterStage",
    "FunctionStage",
    "InMemoryDedupStore",
    "IncrementalRunner",
    "ItemError",
    "IterableProducer",
    "LinkExtractionStage",
    "MapStage",
    "Pipeline",
    "PipelineError",
    "Producer",
    "RateLimitState",
    "RateLimitedFetcher",
    "ReadConfig",
    "RunReport",
    "RunStats",
    "SQLiteDedupStore",
    "SourceDocument",
    "SourceError",
    "Stage",
    "StoreError",
    "WorkflowExecutor",
    "WorkflowHooks",
    "WorkflowState",
    "WorkflowStateError",
    "default_dedup_key",
    "normalize_url",
]
