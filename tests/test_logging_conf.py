from __future__ import annotations

from pathlib import Path

import pytest

from ingest_pipeline.logging_conf import (
    available_pipeline_logs,
    configure_logging,
    log_path_for,
    pipeline_logger,
    tail_log,
)


@pytest.fixture
def log_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("INGEST_PIPELINE_HOME", str(tmp_path))
    return tmp_path


def test_log_paths_follow_home(log_home: Path) -> None:
    assert log_path_for() == log_home.resolve() / "logs" / "pipeline.log"
    assert log_path_for("feed") == log_home.resolve() / "logs" / "pipelines" / "feed.log"


def test_pipeline_logger_creates_its_file(log_home: Path) -> None:
    configure_logging()
    logger = pipeline_logger("feed")
    logger.info("pipeline_started")
    assert log_path_for("feed").exists()
    assert log_path_for("feed") in list(available_pipeline_logs())


def test_tail_log(tmp_path: Path) -> None:
    path = tmp_path / "x.log"
    assert tail_log(path) == []
    path.write_text("".join(f"line {i}\n" for i in range(10)), encoding="utf-8")
    assert tail_log(path, 3) == ["line 7\n", "line 8\n", "line 9\n"]
