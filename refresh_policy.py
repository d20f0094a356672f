"""Staleness and per-city refresh throttling."""

import logging
import threading

from config import FRESH_WINDOW_MS, REFRESH_THROTTLE_MS, now_ms

log = logging.getLogger(__name__)


class RefreshPolicy:
    """Decides whether a city's data is stale and whether it may refresh now.

    Staleness looks at the record's ``last_updated``. Throttling is separate:
    it tracks the last refresh attempt per city id and enforces a minimum gap
    regardless of staleness.
    """

    def __init__(self, clock=now_ms, stale_after_ms=FRESH_WINDOW_MS,
                 throttle_ms=REFRESH_THROTTLE_MS):
        self._lock = threading.Lock()
        self._clock = clock
        self.stale_after_ms = stale_after_ms
        self.throttle_ms = throttle_ms
        self._last_attempt = {}

    def is_stale(self, record):
        if record is None or not record.last_updated:
            return True
        return self._clock() - record.last_updated > self.stale_after_ms

    def can_attempt(self, city_id):
        """True when no attempt happened within the throttle window.

        A True answer also records the attempt, so two back-to-back calls
        for the same id return True then False.
        """
        with self._lock:
            now = self._clock()
            last = self._last_attempt.get(city_id)
            if last is not None and now - last < self.throttle_ms:
                log.debug("Refresh of %s throttled (%d ms since last attempt)", city_id, now - last)
                return False
            self._last_attempt[city_id] = now
            return True

    def should_auto_refresh(self, record):
        # Short-circuit keeps fresh records from consuming a throttle slot
        return self.is_stale(record) and self.can_attempt(record.id)

    def mark_refreshed(self, city_id):
        """Stamp the throttle after a manual refresh."""
        with self._lock:
            self._last_attempt[city_id] = self._clock()

    def forget(self, city_id):
        with self._lock:
            self._last_attempt.pop(city_id, None)
