"""
Clock -- where measurement and registration timestamps come from.

The ledger engine takes ``measured_at`` as an argument and never reads
the wall clock itself. Kernel services get the time from a Clock handed
to them at construction, so tests can pin every ``measured_at`` value.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time as a timezone-aware UTC datetime."""
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock.

    Returns ``start`` until moved. With ``step`` set, every ``now()`` call
    moves the clock forward by that amount afterwards, so consecutive
    weighings get strictly increasing timestamps. Safe to share between
    threads.
    """

    def __init__(
        self,
        start: datetime | None = None,
        step: timedelta | None = None,
    ):
        self._current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self._step = step
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = self._current
            if self._step is not None:
                self._current = current + self._step
            return current

    def set_time(self, moment: datetime) -> None:
        with self._lock:
            self._current = moment

    def advance(self, seconds: float = 1) -> datetime:
        with self._lock:
            self._current += timedelta(seconds=seconds)
            return self._current
