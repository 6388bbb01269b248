"""Configuration loading helpers for the ingestion pipeline."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml

from .models import GlobalConfig, PipelineConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
PIPELINE_CONFIG_SUFFIX = ".yaml"
HOME_ENV_VAR = "INGEST_PIPELINE_HOME"


def _slugify(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() else "-" for ch in name).strip("-")


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


def project_root() -> Path:
    env_root = os.environ.get(HOME_ENV_VAR)
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path(__file__).resolve().parents[2]


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    history_dir: Path | None = None
    cursors_dir: Path | None = None
    outputs_dir: Path | None = None
    pipelines_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        if os.environ.get(HOME_ENV_VAR):
            root = project_root()
        else:
            root = (self.project_root or project_root()).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.history_dir = (self.data_dir / "history").resolve()
        self.cursors_dir = (self.data_dir / "cursors").resolve()
        self.outputs_dir = (self.data_dir / "outputs").resolve()
        self.pipelines_dir = (self.data_dir / "pipelines").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (
            self.data_dir,
            self.history_dir,
            self.cursors_dir,
            self.outputs_dir,
            self.pipelines_dir,
            self.logs_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME

    def resolve(self, path: Path) -> Path:
        """Anchor relative config paths at the project root."""

        return path if path.is_absolute() else (self.project_root / path).resolve()


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    # ------------------------------------------------------------------
    # Global configuration helpers
    # ------------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if path.exists():
            global_cfg = GlobalConfig.model_validate(_read_file(path))
        else:
            global_cfg = GlobalConfig()
            self.save_global_config(global_cfg)
        self._global_cache = global_cfg
        return global_cfg

    def save_global_config(self, config: GlobalConfig) -> None:
        path = self.locator.global_config_path()
        _write_file(path, config.model_dump(mode="json"))
        self._global_cache = config

    # ------------------------------------------------------------------
    # Pipeline configuration helpers
    # ------------------------------------------------------------------
    def pipeline_path(self, name: str) -> Path:
        return self.locator.pipelines_dir / f"{_slugify(name)}{PIPELINE_CONFIG_SUFFIX}"

    def list_pipeline_files(self) -> Iterable[Path]:
        for path in sorted(self.locator.pipelines_dir.glob("*")):
            if path.is_file() and path.suffix in CONFIG_EXTENSIONS:
                yield path

    def list_pipelines(self) -> list[PipelineConfig]:
        return [self.load_pipeline(path) for path in self.list_pipeline_files()]

    def load_pipeline(self, identifier: str | Path) -> PipelineConfig:
        path = identifier if isinstance(identifier, Path) else self.pipeline_path(identifier)
        if not path.exists():
            raise FileNotFoundError(f"Pipeline configuration not found: {identifier}")
        return PipelineConfig.model_validate(_read_file(path))

    def save_pipeline(self, config: PipelineConfig) -> Path:
        path = self.pipeline_path(config.name)
        _write_file(path, config.model_dump(mode="json"))
        return path

    def delete_pipeline(self, name: str) -> None:
        path = self.pipeline_path(name)
        if path.exists():
            path.unlink()


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository", "HOME_ENV_VAR", "project_root"]
