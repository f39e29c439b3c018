"""
Keyed storage interface for governance state.

Governance tables (DAO records, proposals, votes, delegations, voting power,
payouts) are stored as JSON-compatible values under ``(namespace, key)``
pairs. Every mutating governance operation runs inside one transaction:
either all of its writes become visible at commit, or none do.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, ContextManager, Dict, Iterator, List, Optional, Tuple

from ..errors.exceptions import StorageError

logger = logging.getLogger(__name__)

_DELETED = object()


class StorageTransaction(ABC):
    """A unit of work against a ``KeyValueStore`` with read-your-writes."""

    @abstractmethod
    def get(self, namespace: str, key: str) -> Optional[Any]:
        """Read a value, seeing this transaction's own pending writes."""
        pass

    @abstractmethod
    def put(self, namespace: str, key: str, value: Any) -> None:
        """Stage a write."""
        pass

    @abstractmethod
    def delete(self, namespace: str, key: str) -> None:
        """Stage a delete. Deleting a missing key is a no-op."""
        pass

    @abstractmethod
    def scan(self, namespace: str, prefix: str = "") -> List[Tuple[str, Any]]:
        """Return ``(key, value)`` pairs whose key starts with ``prefix``, ordered by key."""
        pass


class KeyValueStore(ABC):
    """Abstract keyed-map store."""

    @abstractmethod
    def get(self, namespace: str, key: str) -> Optional[Any]:
        """Read a committed value."""
        pass

    @abstractmethod
    def scan(self, namespace: str, prefix: str = "") -> List[Tuple[str, Any]]:
        """Scan committed values by key prefix, ordered by key."""
        pass

    @abstractmethod
    def transaction(self) -> ContextManager[StorageTransaction]:
        """Open a transaction; commit on normal exit, roll back on exception."""
        pass

    @abstractmethod
    def snapshot(self) -> ContextManager[StorageTransaction]:
        """Open a read-only view; no commit becomes visible while it is open."""
        pass

    def close(self) -> None:
        """Release resources held by the store."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ReadOnlyView(StorageTransaction):
    """Committed state of a store behind the transaction interface."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    def get(self, namespace: str, key: str) -> Optional[Any]:
        return self._store.get(namespace, key)

    def put(self, namespace: str, key: str, value: Any) -> None:
        raise StorageError("Read-only view", operation="put")

    def delete(self, namespace: str, key: str) -> None:
        raise StorageError("Read-only view", operation="delete")

    def scan(self, namespace: str, prefix: str = "") -> List[Tuple[str, Any]]:
        return self._store.scan(namespace, prefix)


class _BufferedTransaction(StorageTransaction):
    """Transaction that buffers writes over a committed snapshot reader."""

    def __init__(self, store: "InMemoryStore"):
        self._store = store
        self._writes: Dict[Tuple[str, str], Any] = {}

    def get(self, namespace: str, key: str) -> Optional[Any]:
        staged = self._writes.get((namespace, key))
        if staged is _DELETED:
            return None
        if staged is not None:
            return copy.deepcopy(staged)
        return self._store.get(namespace, key)

    def put(self, namespace: str, key: str, value: Any) -> None:
        if value is None:
            raise StorageError("Cannot store None; use delete()", operation="put")
        self._writes[(namespace, key)] = copy.deepcopy(value)

    def delete(self, namespace: str, key: str) -> None:
        self._writes[(namespace, key)] = _DELETED

    def scan(self, namespace: str, prefix: str = "") -> List[Tuple[str, Any]]:
        merged = dict(self._store.scan(namespace, prefix))
        for (ns, key), value in self._writes.items():
            if ns != namespace or not key.startswith(prefix):
                continue
            if value is _DELETED:
                merged.pop(key, None)
            else:
                merged[key] = copy.deepcopy(value)
        return sorted(merged.items())

    @property
    def pending(self) -> Dict[Tuple[str, str], Any]:
        return self._writes


class InMemoryStore(KeyValueStore):
    """Dictionary-backed store; commits are applied atomically under a lock."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()
        self.commits = 0
        self.rollbacks = 0

    def get(self, namespace: str, key: str) -> Optional[Any]:
        with self._lock:
            value = self._data.get(namespace, {}).get(key)
            return copy.deepcopy(value)

    def scan(self, namespace: str, prefix: str = "") -> List[Tuple[str, Any]]:
        with self._lock:
            table = self._data.get(namespace, {})
            return sorted(
                (key, copy.deepcopy(value))
                for key, value in table.items()
                if key.startswith(prefix)
            )

    @contextmanager
    def transaction(self) -> Iterator[StorageTransaction]:
        txn = _BufferedTransaction(self)
        try:
            yield txn
        except BaseException:
            self.rollbacks += 1
            raise
        self._apply(txn.pending)

    @contextmanager
    def snapshot(self) -> Iterator[StorageTransaction]:
        # Commits take the same lock, so they wait until the view is closed
        with self._lock:
            yield ReadOnlyView(self)

    def _apply(self, writes: Dict[Tuple[str, str], Any]) -> None:
        with self._lock:
            for (namespace, key), value in writes.items():
                table = self._data.setdefault(namespace, {})
                if value is _DELETED:
                    table.pop(key, None)
                else:
                    table[key] = value
            self.commits += 1
        logger.debug(f"Committed {len(writes)} writes")
