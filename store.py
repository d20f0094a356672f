"""Ordered collection of saved cities and the current-city pointer."""

import logging
import threading
from dataclasses import replace

from config import MAX_CITIES
from events import Observable
from models import CityRecord, parse_utc_ms

log = logging.getLogger(__name__)

ADDED = "added"
EXISTS = "exists"
MAX_CITIES_REACHED = "max_cities"


class WeatherDataStore(Observable):
    """Single source of truth for which cities the UI shows.

    City ids are unique within the collection and its size never exceeds
    ``max_cities``. At most one record carries ``is_current_location``.
    """

    def __init__(self, max_cities=MAX_CITIES):
        super().__init__()
        self._lock = threading.RLock()
        self.max_cities = max_cities
        self._cities = []
        self._current_index = 0
        self.auto_location_city_id = None

    # ── Reads ─────────────────────────────────────────────────────────

    @property
    def cities(self):
        with self._lock:
            return list(self._cities)

    @property
    def current_index(self):
        with self._lock:
            return self._current_index

    def __len__(self):
        with self._lock:
            return len(self._cities)

    def get_city(self, city_id):
        with self._lock:
            return next((c for c in self._cities if c.id == city_id), None)

    def has_city(self, city_id):
        return self.get_city(city_id) is not None

    def is_full(self):
        with self._lock:
            return len(self._cities) >= self.max_cities

    def current_city(self):
        with self._lock:
            if not self._cities:
                return None
            return self._cities[self._current_index]

    def snapshot(self):
        with self._lock:
            return {
                "cities": [c.to_dict() for c in self._cities],
                "current_index": self._current_index,
                "auto_location_city_id": self.auto_location_city_id,
                "max_cities": self.max_cities,
            }

    # ── Mutations ─────────────────────────────────────────────────────

    def add_city(self, record):
        """Append ``record`` and make it current; returns added/exists/max_cities."""
        with self._lock:
            if any(c.id == record.id for c in self._cities):
                return EXISTS
            if len(self._cities) >= self.max_cities:
                return MAX_CITIES_REACHED
            if record.is_current_location:
                record = replace(record, is_current_location=False)
            self._cities.append(record)
            self._current_index = len(self._cities) - 1
        log.info("Added city %s", record.id)
        self._notify()
        return ADDED

    def can_place_current_location(self, city_id):
        """True if ``city_id`` would replace an entry or fits under the bound."""
        with self._lock:
            replaced = {city_id, self.auto_location_city_id}
            if any(c.id in replaced for c in self._cities):
                return True
            return len(self._cities) < self.max_cities

    def add_or_replace_current_location(self, record):
        """Put ``record`` first as the only current-location city.

        Saved cities are never dropped to make room: returns max_cities when
        the record would grow a full collection, otherwise added.
        """
        with self._lock:
            if not self.can_place_current_location(record.id):
                return MAX_CITIES_REACHED
            previous = self.auto_location_city_id
            kept = [c for c in self._cities if c.id != record.id and c.id != previous]
            kept = [replace(c, is_current_location=False) if c.is_current_location else c
                    for c in kept]
            self._cities = [replace(record, is_current_location=True)] + kept
            self._current_index = 0
            self.auto_location_city_id = record.id
        log.info("Current location set to %s", record.id)
        self._notify()
        return ADDED

    def update_city(self, record):
        """Replace the record with the same id; returns False if absent."""
        with self._lock:
            for i, existing in enumerate(self._cities):
                if existing.id == record.id:
                    self._cities[i] = record
                    break
            else:
                return False
        self._notify()
        return True

    def apply_update(self, city_id, data):
        """Merge payload fields from ``data`` into an existing record."""
        with self._lock:
            existing = self.get_city(city_id)
            if existing is None:
                return None
            updated = existing.merged(data)
            self._cities = [updated if c.id == city_id else c for c in self._cities]
        self._notify()
        return updated

    def remove_city(self, city_id):
        with self._lock:
            removed_index = next((i for i, c in enumerate(self._cities) if c.id == city_id), -1)
            if removed_index == -1:
                return False
            del self._cities[removed_index]
            if removed_index <= self._current_index:
                self._current_index = max(0, self._current_index - 1)
            if not self._cities:
                self._current_index = 0
            if city_id == self.auto_location_city_id:
                self.auto_location_city_id = None
        log.info("Removed city %s", city_id)
        self._notify()
        return True

    def set_cities(self, records):
        with self._lock:
            self._cities = list(records)
            self._current_index = min(self._current_index, max(0, len(self._cities) - 1))
        self._notify()

    def set_current_index(self, index):
        with self._lock:
            if not self._cities:
                self._current_index = 0
            else:
                self._current_index = index % len(self._cities)
        self._notify()

    def set_current_city(self, city_id):
        with self._lock:
            index = next((i for i, c in enumerate(self._cities) if c.id == city_id), -1)
            if index == -1:
                return False
            self._current_index = index
        self._notify()
        return True

    def next_city(self):
        with self._lock:
            if len(self._cities) < 2:
                return
            self._current_index = (self._current_index + 1) % len(self._cities)
        self._notify()

    def prev_city(self):
        with self._lock:
            if len(self._cities) < 2:
                return
            self._current_index = (self._current_index - 1) % len(self._cities)
        self._notify()

    def load_from_server(self, payload):
        """Replace the collection with the server's saved cities.

        ``payload`` is {"cities": [...], "currentCityId": optional id}; each
        city carries ``lastUpdatedUtc``. Records are stored metric.
        """
        records = []
        for city in payload.get("cities", [])[:self.max_cities]:
            updated_at = parse_utc_ms(city.get("lastUpdatedUtc"))
            data = dict(city)
            data["unit"] = "metric"
            data["last_updated"] = updated_at
            data["updated_at_utc"] = updated_at
            record = CityRecord.from_dict(data)
            if record.is_current_location and any(r.is_current_location for r in records):
                record = replace(record, is_current_location=False)
            records.append(record)

        current_id = payload.get("currentCityId")
        with self._lock:
            self._cities = records
            index = next((i for i, c in enumerate(records) if c.id == current_id), None)
            self._current_index = index or 0
            self.auto_location_city_id = current_id if index is not None else next(
                (c.id for c in records if c.is_current_location), None)
        log.info("Loaded %d cities from server", len(records))
        self._notify()

    def reset(self):
        with self._lock:
            self._cities = []
            self._current_index = 0
            self.auto_location_city_id = None
        self._notify()
