"""Periodic background refresh of saved cities with staged visible updates."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait

from apscheduler.schedulers.background import BackgroundScheduler

from config import (
    BACKGROUND_INTERVAL_SEC, BACKGROUND_THRESHOLD_MS,
    BACKGROUND_BATCH_SIZE, BACKGROUND_BATCH_DELAY_SEC,
    DEFAULT_LOCALE, now_ms,
)
from events import Observable
from models import CityRecord, PendingBackgroundUpdate, parse_utc_ms

log = logging.getLogger(__name__)

_PAYLOAD_FIELDS = ("current", "forecast", "hourly", "name", "country", "lastUpdatedUtc")


def run_in_batches(items, func, batch_size=BACKGROUND_BATCH_SIZE,
                   delay_sec=BACKGROUND_BATCH_DELAY_SEC, sleep=time.sleep):
    """Call ``func(item)`` for every item, ``batch_size`` at a time.

    Each batch fully settles before the next starts; one failure never
    cancels its siblings. Sleeps ``delay_sec`` between batches.
    """
    items = list(items)
    if not items:
        return
    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for start in range(0, len(items), batch_size):
            batch = items[start:start + batch_size]
            futures = [executor.submit(func, item) for item in batch]
            wait(futures)
            for future in futures:
                if future.exception() is not None:
                    log.debug("Batch item failed: %s", future.exception())
            if start + batch_size < len(items):
                sleep(delay_sec)


class BackgroundRefresher(Observable):
    """Refreshes saved cities on a timer without changing what the user sees.

    Each tick picks cities older than ``threshold_ms`` and fetches them in
    batches; every attempt stamps the refresh throttle. A result is applied
    silently unless the provider reports a newer observation than the one
    on display, in which case a PendingBackgroundUpdate is staged for the
    user to apply or dismiss. Fetch failures are logged and never surfaced;
    the city's ``last_updated`` is stamped so it is not retried immediately.
    """

    def __init__(self, store, cache, policy, fetch_weather, clock=now_ms,
                 interval_sec=BACKGROUND_INTERVAL_SEC, threshold_ms=BACKGROUND_THRESHOLD_MS,
                 batch_size=BACKGROUND_BATCH_SIZE, batch_delay_sec=BACKGROUND_BATCH_DELAY_SEC,
                 sleep=time.sleep, locale=lambda: DEFAULT_LOCALE):
        super().__init__()
        self.store = store
        self.cache = cache
        self.policy = policy
        self.fetch_weather = fetch_weather
        self.interval_sec = interval_sec
        self.threshold_ms = threshold_ms
        self.batch_size = batch_size
        self.batch_delay_sec = batch_delay_sec
        self._clock = clock
        self._sleep = sleep
        self._locale = locale
        self._lock = threading.Lock()
        self._pending = {}         # city id -> PendingBackgroundUpdate
        self._scheduler = None

    # ── Scheduling ────────────────────────────────────────────────────

    def start(self, scheduler=None):
        if self._scheduler is not None:
            return
        self._scheduler = scheduler or BackgroundScheduler()
        self._scheduler.add_job(
            self.tick, "interval", seconds=self.interval_sec,
            id="background-refresh", max_instances=1, coalesce=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        log.info("Background refresh every %d seconds", self.interval_sec)

    def stop(self):
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    @property
    def running(self):
        return self._scheduler is not None and self._scheduler.running

    # ── Refresh ───────────────────────────────────────────────────────

    def select_candidates(self):
        """Cities whose data is older than the background threshold."""
        now = self._clock()
        return [c for c in self.store.cities if now - c.last_updated > self.threshold_ms]

    def tick(self):
        """One background pass over all saved cities."""
        candidates = self.select_candidates()
        if not candidates:
            return 0
        log.info("Background refresh of %d cities", len(candidates))
        run_in_batches(
            [c.id for c in candidates], self.refresh_city_background,
            batch_size=self.batch_size, delay_sec=self.batch_delay_sec, sleep=self._sleep,
        )
        return len(candidates)

    def refresh_city_background(self, city_id):
        """Fetch one city; returns True on success, False on any failure."""
        city = self.store.get_city(city_id)
        if city is None:
            return False
        self.policy.mark_refreshed(city_id)
        try:
            payload = self.fetch_weather(city.id, city.lat, city.lon, city.unit, city.name, city.country)
        except Exception as e:
            log.debug("Background refresh failed for %s: %s", city_id, e)
            self.store.apply_update(city_id, {"last_updated": self._clock()})
            return False

        now = self._clock()
        record = CityRecord.from_payload(payload, now, unit=city.unit, id=city.id,
                                         name=city.name, country=city.country)
        self.cache.set(record)

        new_time = parse_utc_ms(payload.get("lastUpdatedUtc"))
        new_data = {k: payload[k] for k in _PAYLOAD_FIELDS if k in payload}
        # Compare against what is on screen; a first observation applies directly
        displayed = city.updated_at_utc if city.current is not None else 0
        with self._lock:
            staged = city_id in self._pending or bool(displayed and new_time > displayed)
            if staged:
                self._pending[city_id] = PendingBackgroundUpdate(
                    city_id=city_id,
                    city_name=city.label(self._locale()),
                    new_data=new_data,
                    timestamp=now,
                )

        if staged:
            self.store.apply_update(city_id, {"last_updated": now})
            log.info("Staged background update for %s", city_id)
            self._notify()
        else:
            data = dict(new_data)
            data["last_updated"] = now
            self.store.apply_update(city_id, data)
            log.debug("Background refresh applied silently for %s", city_id)
        return True

    # ── Pending updates ───────────────────────────────────────────────

    def pending_updates(self):
        with self._lock:
            return list(self._pending.values())

    def has_pending_updates(self):
        with self._lock:
            return bool(self._pending)

    def apply_background_update(self, city_id):
        with self._lock:
            pending = self._pending.pop(city_id, None)
        if pending is None:
            return False
        data = dict(pending.new_data)
        data["last_updated"] = self._clock()
        self.store.apply_update(city_id, data)
        log.info("Applied background update for %s", city_id)
        self._notify()
        return True

    def dismiss_background_update(self, city_id):
        with self._lock:
            pending = self._pending.pop(city_id, None)
        if pending is None:
            return False
        self._notify()
        return True

    def forget(self, city_id):
        with self._lock:
            had_pending = self._pending.pop(city_id, None) is not None
        if had_pending:
            self._notify()
