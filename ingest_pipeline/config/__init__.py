"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    CursorConfig,
    DeduplicationConfig,
    FetchConfig,
    GlobalConfig,
    PipelineConfig,
    ScheduleConfig,
    ScheduleType,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "CursorConfig",
    "DeduplicationConfig",
    "FetchConfig",
    "GlobalConfig",
    "PipelineConfig",
    "ScheduleConfig",
    "ScheduleType",
]
