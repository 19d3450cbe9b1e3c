from __future__ import annotations

from functools import lru_cache
from operator import attrgetter
from threading import Lock
from typing import Dict, List, Optional

from app.schemas import Reading
from models.records import SensorReading
from services.normalizer import expand
from settings import get_settings

DEFAULT_HISTORY_LIMIT = 1000

_by_timestamp = attrgetter("timestamp")


class TimeSeriesStore:
    """Bounded in-memory reading history keyed by field.

    Each field has its own lock, so appends and the eviction pass for a field
    are atomic with respect to that field's other operations while separate
    fields proceed independently.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError("History limit must be positive.")
        self.limit = limit
        self._series: Dict[str, List[SensorReading]] = {}
        self._locks: Dict[str, Lock] = {}
        self._registry_lock = Lock()

    def append(self, field_id: str, reading: Reading) -> int:
        """Store a reading and return how many history entries it produced."""
        entries = expand(reading)
        if not entries:
            return 0

        with self._lock_for(field_id):
            series = self._series.get(field_id)
            if series is None:
                series = []
                self._series[field_id] = series
            series.extend(entries)
            if len(series) > self.limit:
                self._series[field_id] = sorted(series, key=_by_timestamp, reverse=True)[
                    : self.limit
                ]
        return len(entries)

    def query(self, field_id: str, sensor_type: str) -> List[SensorReading]:
        """Return a snapshot of the field's readings for a sensor type.

        Matching ignores case. The order is whatever the store holds; callers
        sort as they need.
        """
        wanted = sensor_type.casefold()
        with self._lock_for(field_id):
            series = self._series.get(field_id)
            if not series:
                return []
            return [entry for entry in series if entry.sensor_type.casefold() == wanted]

    def count(self, field_id: str) -> int:
        with self._lock_for(field_id):
            return len(self._series.get(field_id, ()))

    def field_ids(self) -> List[str]:
        with self._registry_lock:
            return sorted(field_id for field_id, series in list(self._series.items()) if series)

    def clear(self) -> None:
        with self._registry_lock:
            self._series.clear()

    def _lock_for(self, field_id: str) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(field_id)
            if lock is None:
                lock = Lock()
                self._locks[field_id] = lock
            return lock


@lru_cache
def build_default_store(limit: Optional[int] = None) -> TimeSeriesStore:
    settings = get_settings()
    return TimeSeriesStore(limit=settings.history_limit if limit is None else limit)
