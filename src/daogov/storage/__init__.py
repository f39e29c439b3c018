"""Keyed storage backends for governance state."""

from .database import DatabaseConfig, SQLiteStore
from .keyvalue import InMemoryStore, KeyValueStore, ReadOnlyView, StorageTransaction

__all__ = [
    "KeyValueStore",
    "StorageTransaction",
    "ReadOnlyView",
    "InMemoryStore",
    "SQLiteStore",
    "DatabaseConfig",
]
