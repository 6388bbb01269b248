"""Pipeline orchestrator wiring producer, stages, dedup, cursor and exporter."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Event
from typing import Any, Iterable

import structlog

from .config import ConfigRepository, GlobalConfig, PipelineConfig
from .engine import (
    CachedFetcher,
    DeduplicationStage,
    DirectoryProducer,
    FetchContentStage,
    IncrementalRunner,
    InMemoryDedupStore,
    LinkExtractionStage,
    Pipeline,
    RateLimitedFetcher,
    SQLiteDedupStore,
    WorkflowExecutor,
    WorkflowHooks,
)
from .engine.exporter import FileExporter
from .engine.ports import ContentFetcher, CursorStore, DedupStore
from .infra import FileCursorStore, SQLiteManager
from .logging_conf import configure_logging, pipeline_logger


@dataclass(slots=True)
class BuiltWorkflow:
    """Components assembled for one run, kept so the caller can inspect them."""

    executor: WorkflowExecutor
    dedup_stage: DeduplicationStage | None
    exporter: FileExporter
    fetcher: ContentFetcher | None


class Orchestrator:
    """Central coordinator managing the lifecycle of pipeline runs."""

    def __init__(
        self,
        config_repository: ConfigRepository,
        storage: SQLiteManager,
        scheduler=None,
    ) -> None:
        self.config_repository = config_repository
        self.global_config: GlobalConfig = config_repository.load_global_config()
        self.storage = storage
        self.scheduler = scheduler
        self.logger = configure_logging().bind(component="orchestrator")

    # ------------------------------------------------------------------
    def register_schedules(self, pipelines: Iterable[PipelineConfig]) -> None:
        if self.scheduler is None:
            raise RuntimeError("No scheduler configured")
        for pipeline in pipelines:
            self.scheduler.schedule_pipeline(pipeline, self.run_scheduled)
        self.scheduler.start()

    def run_scheduled(self, pipeline: PipelineConfig) -> None:
        try:
            self.run_pipeline(pipeline.name)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("scheduled_run_failed", pipeline=pipeline.name, error=str(exc))

    def run_pipeline(
        self,
        name: str,
        ignore_cursor: bool = False,
        cancel_event: Event | None = None,
    ) -> dict[str, Any]:
        pipeline = self.config_repository.load_pipeline(name)
        log = pipeline_logger(pipeline.name)
        cursor_store = self._cursor_store(pipeline)
        runner = IncrementalRunner(
            cursor_store,
            default_lookback=(
                timedelta(days=pipeline.cursor.default_lookback_days)
                if pipeline.cursor.default_lookback_days
                else None
            ),
            logger=log,
        )
        built = self.build_workflow(pipeline, log)
        errors: list[str] = []

        def _on_error(error: Exception, item: Any) -> None:
            errors.append(f"{getattr(item, 'name', item)}: {error}")
            log.warning("item_error", item=str(getattr(item, "name", item)), error=str(error))

        hooks = WorkflowHooks(
            on_start=lambda: log.info("pipeline_started", input_uri=pipeline.input_uri),
            on_error=_on_error,
            on_complete=lambda stats: log.info(
                "pipeline_completed",
                produced=stats.items_produced,
                consumed=stats.items_consumed,
                errored=stats.items_errored,
            ),
        )
        try:
            report = runner.run(
                built.executor,
                hooks=hooks,
                filter=pipeline.filter,
                ignore_cursor=ignore_cursor,
                cancel_event=cancel_event,
            )
        finally:
            built.exporter.close()
            if built.fetcher is not None:
                built.fetcher.close()
        return {
            "state": report.state.value,
            "produced": report.stats.items_produced,
            "consumed": report.stats.items_consumed,
            "errored": report.stats.items_errored,
            "duplicates": built.dedup_stage.duplicate_count if built.dedup_stage else 0,
            "cancelled": report.stats.cancelled,
            "cursor_advanced": report.cursor_advanced,
            "since": report.since.isoformat() if report.since else None,
            "output": str(built.exporter.path),
            "errors": errors,
        }

    def build_workflow(
        self, pipeline: PipelineConfig, logger: structlog.BoundLogger | None = None
    ) -> BuiltWorkflow:
        log = logger or structlog.get_logger("ingest_pipeline.orchestrator")
        producer = DirectoryProducer(pipeline.input_uri, pattern=pipeline.file_pattern, logger=log)
        stages = Pipeline([LinkExtractionStage()])
        dedup_stage: DeduplicationStage | None = None
        if pipeline.deduplication.enabled:
            dedup_stage = DeduplicationStage(self._dedup_store(pipeline), logger=log)
            stages.add_stage(dedup_stage)
        fetcher: ContentFetcher | None = None
        if pipeline.fetch_content:
            fetch_config = pipeline.fetch or self.global_config.fetch
            fetcher = CachedFetcher(
                RateLimitedFetcher(fetch_config, logger=log),
                ttl=fetch_config.cache_ttl,
                logger=log,
            )
            stages.add_stage(
                FetchContentStage(fetcher, drop_missing=pipeline.drop_missing_content, logger=log)
            )
        run_tag = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
        exporter = FileExporter(
            self._resolve(self.global_config.outputs_dir),
            pipeline.name,
            pipeline.output_format,
            run_tag=run_tag,
        )
        executor = WorkflowExecutor(producer, stages, exporter, logger=log)
        return BuiltWorkflow(
            executor=executor, dedup_stage=dedup_stage, exporter=exporter, fetcher=fetcher
        )

    # ------------------------------------------------------------------
    def view_history(self, name: str, limit: int = 20) -> list[tuple[str, str]]:
        pipeline = self.config_repository.load_pipeline(name)
        store = self._dedup_store(pipeline)
        if not isinstance(store, SQLiteDedupStore):
            return []
        return store.recent(limit)

    def view_cursor(self, name: str) -> datetime | None:
        pipeline = self.config_repository.load_pipeline(name)
        store = self._cursor_store(pipeline)
        return store.get_last_execution_time() if store else None

    def reset_history(self, name: str) -> None:
        pipeline = self.config_repository.load_pipeline(name)
        if pipeline.deduplication.persistent:
            self._dedup_store(pipeline).clear()
        cursor_store = self._cursor_store(pipeline)
        if cursor_store is not None:
            cursor_store.clear()
        self.logger.info("history_reset", pipeline=pipeline.name)

    # ------------------------------------------------------------------
    def _dedup_store(self, pipeline: PipelineConfig) -> DedupStore:
        if not pipeline.deduplication.persistent:
            return InMemoryDedupStore()
        return SQLiteDedupStore(
            self.storage, self._history_path(pipeline), namespace=pipeline.name
        )

    def _history_path(self, pipeline: PipelineConfig) -> Path:
        return pipeline.resolved_history_path(self._resolve(self.global_config.history_dir))

    def _cursor_store(self, pipeline: PipelineConfig) -> CursorStore | None:
        if not pipeline.cursor.enabled:
            return None
        return FileCursorStore(
            pipeline.resolved_cursor_path(self._resolve(self.global_config.cursors_dir))
        )

    def _resolve(self, path: Path) -> Path:
        return self.config_repository.locator.resolve(Path(path))


__all__ = ["BuiltWorkflow", "Orchestrator"]
