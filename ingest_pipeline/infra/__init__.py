"""Infra layer utilities (SQLite storage, cursor stores)."""

from .storage import SQLiteManager
from .cursor import FileCursorStore, InMemoryCursorStore

__all__ = ["FileCursorStore", "InMemoryCursorStore", "SQLiteManager"]
