"""Thread-safe in-memory TTL cache for city weather records."""

import logging
import threading

from config import (
    FRESH_WINDOW_MS, PRESSURE_WINDOW_MS, PRESSURE_RATIO,
    MAX_CACHE_SIZE, CLEANUP_INTERVAL_MS, now_ms,
)
from models import CacheEntry

log = logging.getLogger(__name__)


class WeatherCache:
    """City id -> CacheEntry, fresh for ``fresh_window_ms`` after each set.

    Expired entries read as absent but stay in memory until a cleanup pass
    removes them. Cleanup runs at most once per ``cleanup_interval_ms`` and
    only when ``get``/``set`` are called, never on its own timer.
    """

    def __init__(self, clock=now_ms, fresh_window_ms=FRESH_WINDOW_MS,
                 max_size=MAX_CACHE_SIZE, cleanup_interval_ms=CLEANUP_INTERVAL_MS,
                 pressure_window_ms=PRESSURE_WINDOW_MS, pressure_ratio=PRESSURE_RATIO):
        self._lock = threading.Lock()
        self._clock = clock
        self.fresh_window_ms = fresh_window_ms
        self.max_size = max_size
        self.cleanup_interval_ms = cleanup_interval_ms
        self.pressure_window_ms = pressure_window_ms
        self.pressure_ratio = pressure_ratio
        self._entries = {}
        self._last_cleanup = clock()

    def get(self, city_id):
        with self._lock:
            self._cleanup()
            entry = self._entries.get(city_id)
            if entry is None:
                return None
            if self._clock() - entry.timestamp < self.fresh_window_ms:
                return entry.data
            return None

    def set(self, record):
        with self._lock:
            self._entries[record.id] = CacheEntry(data=record, timestamp=self._clock())
            self._cleanup()

    def stats(self):
        """Return {"size", "oldest_entry_age_ms"} for monitoring."""
        with self._lock:
            size = len(self._entries)
            if not size:
                return {"size": 0, "oldest_entry_age_ms": None}
            oldest = min(e.timestamp for e in self._entries.values())
            return {"size": size, "oldest_entry_age_ms": self._clock() - oldest}

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def _cleanup(self):
        now = self._clock()
        if now - self._last_cleanup < self.cleanup_interval_ms:
            return
        self._last_cleanup = now

        before = len(self._entries)
        expired = [k for k, e in self._entries.items()
                   if now - e.timestamp > self.fresh_window_ms]
        for key in expired:
            del self._entries[key]

        # Near capacity: also drop anything older than the tighter window
        if len(self._entries) > self.max_size * self.pressure_ratio:
            aged = [k for k, e in self._entries.items()
                    if now - e.timestamp > self.pressure_window_ms]
            for key in aged:
                del self._entries[key]

        if len(self._entries) > self.max_size:
            by_age = sorted(self._entries, key=lambda k: self._entries[k].timestamp)
            for key in by_age[:len(self._entries) - self.max_size]:
                del self._entries[key]

        removed = before - len(self._entries)
        if removed:
            log.debug("Cache cleanup removed %d entries, %d remain", removed, len(self._entries))
