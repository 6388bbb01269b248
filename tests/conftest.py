"""Shared fixtures for pipeline, store and configuration tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from ingest_pipeline.config import (
    ConfigLocator,
    ConfigRepository,
    CursorConfig,
    DeduplicationConfig,
    FetchConfig,
    GlobalConfig,
    PipelineConfig,
    ScheduleConfig,
)


class FakeClock:
    """Manually advanced clock; ``sleep`` moves time forward instead of blocking."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fast_fetch_config() -> FetchConfig:
    return FetchConfig(
        throttle_seconds=1.0,
        max_retries=2,
        retry_base_delay=1.0,
        retry_max_delay=5.0,
        rate_limit_backoff=60.0,
    )


@pytest.fixture
def sample_global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        history_dir=tmp_path / "history",
        cursors_dir=tmp_path / "cursors",
        outputs_dir=tmp_path / "outputs",
        pipelines_dir=tmp_path / "pipelines",
    )


@pytest.fixture
def sample_pipeline_config(tmp_path: Path) -> Callable[..., PipelineConfig]:
    def _builder(**overrides: Any) -> PipelineConfig:
        base: dict[str, Any] = {
            "name": "Example",
            "input_uri": str(tmp_path / "inbox"),
            "file_pattern": "*.eml",
            "output_format": "json",
            "schedule": ScheduleConfig(),
            "deduplication": DeduplicationConfig(),
            "cursor": CursorConfig(),
        }
        base.update(overrides)
        return PipelineConfig(**base)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("INGEST_PIPELINE_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


@pytest.fixture
def inbox(tmp_path: Path) -> Path:
    folder = tmp_path / "inbox"
    folder.mkdir(parents=True, exist_ok=True)
    return folder
