"""Logging configuration built around structlog JSON logging."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Iterable

import structlog

from .config.loader import project_root

_LOGGING_INITIALISED = False


def _default_log_dir() -> Path:
    return project_root() / "logs"


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Configure structlog + stdlib handlers and return application logger."""

    global _LOGGING_INITIALISED
    log_dir = _default_log_dir()
    error_log = log_dir / "error.log"
    pipeline_log = log_dir / "pipeline.log"
    (log_dir / "pipelines").mkdir(parents=True, exist_ok=True)
    error_log.touch(exist_ok=True)
    pipeline_log.touch(exist_ok=True)

    if not _LOGGING_INITIALISED:
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "plain": {
                        "()": "pythonjsonlogger.json.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "plain",
                    },
                    "pipeline_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(pipeline_log),
                        "formatter": "plain",
                        "encoding": "utf-8",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "plain",
                        "encoding": "utf-8",
                    },
                },
                "loggers": {
                    "ingest_pipeline": {
                        "handlers": ["console", "pipeline_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger("ingest_pipeline")


def pipeline_logger(pipeline_name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Return a logger bound to one pipeline, writing to its own log file too."""

    configure_logging(verbose)
    log_path = _default_log_dir() / "pipelines" / f"{pipeline_name}.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger_name = f"ingest_pipeline.pipeline.{pipeline_name}"
    py_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(log_path)
        for handler in py_logger.handlers
    ):
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        root_handlers = logging.getLogger("ingest_pipeline").handlers
        if root_handlers:
            file_handler.setFormatter(root_handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)

    return structlog.get_logger(logger_name).bind(pipeline=pipeline_name)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def log_path_for(pipeline_name: str | None = None) -> Path:
    if pipeline_name:
        return _default_log_dir() / "pipelines" / f"{pipeline_name}.log"
    return _default_log_dir() / "pipeline.log"


def available_pipeline_logs() -> Iterable[Path]:
    """Return available per-pipeline log file paths."""

    pipelines_dir = _default_log_dir() / "pipelines"
    if not pipelines_dir.exists():
        return []
    return sorted(p for p in pipelines_dir.glob("*.log"))


__all__ = [
    "available_pipeline_logs",
    "configure_logging",
    "log_path_for",
    "pipeline_logger",
    "tail_log",
]
