"""Pydantic models used across the ingestion configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class ScheduleType(str, Enum):
    """Scheduler modes for periodic pipeline runs."""

    CRON = "cron"
    INTERVAL = "interval"
    ONCE = "once"


class ScheduleConfig(BaseModel):
    """Configuration describing when a pipeline should run."""

    type: ScheduleType = Field(default=ScheduleType.ONCE)
    value: Any = Field(
        default=None,
        description="Cron expression, interval seconds or ISO datetime, depending on type.",
    )

    @model_validator(mode="after")
    def _validate_value(self) -> "ScheduleConfig":
        if self.type is ScheduleType.CRON and not isinstance(self.value, str):
            raise ValueError("Cron schedule requires string expression")
        if self.type is ScheduleType.INTERVAL and not isinstance(self.value, (int, float, dict)):
            raise ValueError("Interval schedule requires seconds (int/float) or kwargs dict")
        if (
            self.type is ScheduleType.ONCE
            and self.value is not None
            and not isinstance(self.value, str)
        ):
            raise ValueError("Once schedule expects ISO datetime string or null")
        return self


class FetchConfig(BaseModel):
    """Throttle, retry and cache settings for outbound content fetches."""

    throttle_seconds: float = 1.0
    max_retries: int = 2
    retry_base_delay: float = 1.0
    retry_max_delay: float = 5.0
    cache_ttl: float = Field(default=0.0, description="Seconds; 0 keeps entries forever.")
    rate_limit_backoff: float = Field(
        default=60.0, description="Seconds to back off when a 429 carries no reset header."
    )
    timeout: float = 20.0
    user_agent: str | None = None

    @field_validator(
        "throttle_seconds",
        "retry_base_delay",
        "retry_max_delay",
        "cache_ttl",
        "rate_limit_backoff",
    )
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("value must be >= 0")
        return value

    @field_validator("max_retries")
    @classmethod
    def _non_negative_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_retries must be >= 0")
        return value

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be > 0")
        return value

    @model_validator(mode="after")
    def _validate_backoff(self) -> "FetchConfig":
        if self.retry_max_delay < self.retry_base_delay:
            raise ValueError("retry_max_delay must be >= retry_base_delay")
        return self


class DeduplicationConfig(BaseModel):
    """Per-pipeline deduplication settings."""

    enabled: bool = True
    persistent: bool = True
    store_path: Path | None = None

    @field_validator("store_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path | None:
        return None if value in (None, "") else Path(value)


class CursorConfig(BaseModel):
    """Incremental-read cursor settings."""

    enabled: bool = True
    store_path: Path | None = None
    default_lookback_days: int | None = 30

    @field_validator("store_path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path | None:
        return None if value in (None, "") else Path(value)

    @field_validator("default_lookback_days")
    @classmethod
    def _positive_lookback(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError("default_lookback_days must be > 0")
        return value


class PipelineConfig(BaseModel):
    """Full definition of a folder-to-file link ingestion pipeline."""

    name: str
    input_uri: str
    file_pattern: str = "*.eml"
    filter: str | None = None
    fetch_content: bool = False
    drop_missing_content: bool = False
    output_format: Literal["json", "csv", "txt"] = "json"
    deduplication: DeduplicationConfig = Field(default_factory=DeduplicationConfig)
    cursor: CursorConfig = Field(default_factory=CursorConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    fetch: FetchConfig | None = None

    @model_validator(mode="after")
    def _validate_fields(self) -> "PipelineConfig":
        if not self.name.strip():
            raise ValueError("name cannot be empty")
        if not self.input_uri.strip():
            raise ValueError("input_uri cannot be empty")
        if not self.file_pattern.strip():
            raise ValueError("file_pattern cannot be empty")
        return self

    def resolved_history_path(self, base_dir: Path) -> Path:
        """Return the dedup store path, relative paths resolved under ``base_dir``."""

        path = self.deduplication.store_path or Path(f"{_slug(self.name)}.db")
        if not path.is_absolute():
            return (base_dir / path).resolve()
        return path

    def resolved_cursor_path(self, base_dir: Path) -> Path:
        path = self.cursor.store_path or Path(f"{_slug(self.name)}.cursor")
        if not path.is_absolute():
            return (base_dir / path).resolve()
        return path


class GlobalConfig(BaseModel):
    """Global controls shared across pipelines."""

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    history_dir: Path = Field(default=Path("data/history"))
    cursors_dir: Path = Field(default=Path("data/cursors"))
    outputs_dir: Path = Field(default=Path("data/outputs"))
    pipelines_dir: Path = Field(default=Path("data/pipelines"))

    @field_validator("history_dir", "cursors_dir", "outputs_dir", "pipelines_dir", mode="before")
    @classmethod
    def _coerce_dirs(cls, value: Any) -> Path:
        return Path(value)


def _slug(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() else "-" for ch in name).strip("-") or "pipeline"


__all__ = [
    "CursorConfig",
    "DeduplicationConfig",
    "FetchConfig",
    "GlobalConfig",
    "PipelineConfig",
    "ScheduleConfig",
    "ScheduleType",
]
