"""
SQLite-backed keyed storage.

Values are stored as JSON text in a single ``kv`` table keyed by
``(namespace, key)``. Each governance operation maps onto one
``BEGIN IMMEDIATE ... COMMIT`` so a failed operation leaves the file
untouched. Multi-key queries read inside one ``BEGIN DEFERRED`` transaction.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

from ..errors.exceptions import StorageError
from .keyvalue import KeyValueStore, ReadOnlyView, StorageTransaction


@dataclass
class DatabaseConfig:
    """SQLite store configuration."""

    database_path: str = ":memory:"
    connection_timeout: float = 30.0
    synchronous: str = "NORMAL"
    journal_mode: str = "WAL"

    def __post_init__(self):
        if self.synchronous.upper() not in ("OFF", "NORMAL", "FULL", "EXTRA"):
            raise ValueError(f"Invalid synchronous mode: {self.synchronous}")


class _SQLiteTransaction(StorageTransaction):
    """Transaction executing directly on a connection inside BEGIN/COMMIT."""

    def __init__(self, connection: sqlite3.Connection):
        self._connection = connection

    def get(self, namespace: str, key: str) -> Optional[Any]:
        return _select_one(self._connection, namespace, key)

    def put(self, namespace: str, key: str, value: Any) -> None:
        if value is None:
            raise StorageError("Cannot store None; use delete()", operation="put")
        try:
            self._connection.execute(
                "INSERT OR REPLACE INTO kv (namespace, key, value) VALUES (?, ?, ?)",
                (namespace, key, json.dumps(value, sort_keys=True)),
            )
        except sqlite3.Error as e:
            raise StorageError(f"Write failed: {e}", storage_type="sqlite", operation="put", cause=e)

    def delete(self, namespace: str, key: str) -> None:
        try:
            self._connection.execute(
                "DELETE FROM kv WHERE namespace = ? AND key = ?", (namespace, key)
            )
        except sqlite3.Error as e:
            raise StorageError(f"Delete failed: {e}", storage_type="sqlite", operation="delete", cause=e)

    def scan(self, namespace: str, prefix: str = "") -> List[Tuple[str, Any]]:
        return _select_prefix(self._connection, namespace, prefix)


def _select_one(connection: sqlite3.Connection, namespace: str, key: str) -> Optional[Any]:
    try:
        row = connection.execute(
            "SELECT value FROM kv WHERE namespace = ? AND key = ?", (namespace, key)
        ).fetchone()
    except sqlite3.Error as e:
        raise StorageError(f"Read failed: {e}", storage_type="sqlite", operation="get", cause=e)
    return json.loads(row[0]) if row else None


def _select_prefix(
    connection: sqlite3.Connection, namespace: str, prefix: str
) -> List[Tuple[str, Any]]:
    try:
        rows = connection.execute(
            "SELECT key, value FROM kv WHERE namespace = ? AND substr(key, 1, ?) = ? "
            "ORDER BY key",
            (namespace, len(prefix), prefix),
        ).fetchall()
    except sqlite3.Error as e:
        raise StorageError(f"Scan failed: {e}", storage_type="sqlite", operation="scan", cause=e)
    return [(key, json.loads(value)) for key, value in rows]


class SQLiteStore(KeyValueStore):
    """SQLite keyed store.

    A single connection is shared and guarded by a lock, so transactions are
    serialized at the store level.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig()
        self._lock = threading.RLock()
        self._logger = logging.getLogger(__name__)
        self._connection: Optional[sqlite3.Connection] = None

        if self.config.database_path != ":memory:":
            Path(self.config.database_path).parent.mkdir(parents=True, exist_ok=True)

        self.connect()

    def connect(self) -> None:
        """Establish SQLite database connection."""
        with self._lock:
            if self._connection is not None:
                return

            try:
                self._connection = sqlite3.connect(
                    self.config.database_path,
                    timeout=self.config.connection_timeout,
                    isolation_level=None,  # transactions are explicit
                    check_same_thread=False,
                )
                self._connection.execute(f"PRAGMA synchronous = {self.config.synchronous}")
                if self.config.database_path != ":memory:":
                    self._connection.execute(f"PRAGMA journal_mode = {self.config.journal_mode}")
                self._connection.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv (
                        namespace TEXT NOT NULL,
                        key TEXT NOT NULL,
                        value TEXT NOT NULL,
                        PRIMARY KEY (namespace, key)
                    )
                    """
                )
                self._logger.info(f"Connected to SQLite store: {self.config.database_path}")
            except sqlite3.Error as e:
                raise StorageError(
                    f"Failed to connect to database: {e}",
                    storage_type="sqlite",
                    operation="connect",
                    cause=e,
                )

    def close(self) -> None:
        """Close SQLite database connection."""
        with self._lock:
            if self._connection is not None:
                try:
                    self._connection.close()
                    self._logger.info("Disconnected from SQLite store")
                except sqlite3.Error as e:
                    self._logger.error(f"Error closing database connection: {e}")
                finally:
                    self._connection = None

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StorageError("Database not connected", storage_type="sqlite")
        return self._connection

    def get(self, namespace: str, key: str) -> Optional[Any]:
        with self._lock:
            return _select_one(self._require_connection(), namespace, key)

    def scan(self, namespace: str, prefix: str = "") -> List[Tuple[str, Any]]:
        with self._lock:
            return _select_prefix(self._require_connection(), namespace, prefix)

    @contextmanager
    def transaction(self) -> Iterator[StorageTransaction]:
        with self._lock:
            connection = self._require_connection()
            try:
                connection.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageError(
                    f"Failed to begin transaction: {e}",
                    storage_type="sqlite",
                    operation="begin",
                    cause=e,
                )

            try:
                yield _SQLiteTransaction(connection)
            except BaseException:
                connection.execute("ROLLBACK")
                raise

            try:
                connection.execute("COMMIT")
            except sqlite3.Error as e:
                connection.execute("ROLLBACK")
                raise StorageError(
                    f"Commit failed: {e}",
                    storage_type="sqlite",
                    operation="commit",
                    cause=e,
                )

    @contextmanager
    def snapshot(self) -> Iterator[StorageTransaction]:
        with self._lock:
            connection = self._require_connection()
            if connection.in_transaction:
                yield ReadOnlyView(self)
                return

            try:
                connection.execute("BEGIN DEFERRED")
            except sqlite3.Error as e:
                raise StorageError(
                    f"Failed to begin read transaction: {e}",
                    storage_type="sqlite",
                    operation="begin",
                    cause=e,
                )

            try:
                yield ReadOnlyView(self)
            finally:
                connection.execute("COMMIT")
