"""
Time sources for the governance engine.

The engine never owns time: it asks an injected clock for ``now()`` once per
operation and compares every deadline against that single snapshot.
"""

import threading
import time
from abc import ABC, abstractmethod

from ..errors.exceptions import ValidationError


class GovernanceClock(ABC):
    """Monotonically non-decreasing source of integer seconds."""

    @abstractmethod
    def now(self) -> int:
        """Return the current time in seconds."""
        pass


class SystemClock(GovernanceClock):
    """Wall clock, clamped so it never goes backwards."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last = 0

    def now(self) -> int:
        with self._lock:
            current = int(time.time())
            if current < self._last:
                current = self._last
            self._last = current
            return current


class ManualClock(GovernanceClock):
    """Externally driven clock (block time, tests)."""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValidationError("Clock cannot start before zero", field="start", value=start)
        self._lock = threading.Lock()
        self._now = start

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, timestamp: int) -> None:
        """Jump to ``timestamp``; moving backwards is rejected."""
        with self._lock:
            if timestamp < self._now:
                raise ValidationError(
                    f"Clock cannot move backwards ({timestamp} < {self._now})",
                    field="timestamp",
                    value=timestamp,
                )
            self._now = timestamp

    def advance(self, seconds: int) -> int:
        """Move forward by ``seconds`` and return the new time."""
        if seconds < 0:
            raise ValidationError("Cannot advance by a negative amount", field="seconds", value=seconds)
        with self._lock:
            self._now += seconds
            return self._now
