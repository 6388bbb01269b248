"""Consumer implementations: in-memory collection and file exporters."""

from .base import BaseExporter, CollectingConsumer, to_record
from .file_exporter import FileExporter

__all__ = ["BaseExporter", "CollectingConsumer", "FileExporter", "to_record"]
