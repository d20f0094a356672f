"""User actions over the weather services: add, remove and refresh cities."""

import logging

from background import run_in_batches
from config import convert_temperature, convert_speed
from errors import PersistenceError
from models import (
    AddResult, RefreshResult, BusyStatus, CityRecord, make_city_id,
)
from store import ADDED, EXISTS, MAX_CITIES_REACHED

log = logging.getLogger(__name__)

OPERATION_IN_PROGRESS = "operation_in_progress"


class WeatherActions:
    """Orchestrates one user action at a time per logical key.

    Expected outcomes (exists, max_cities, duplicate in-flight request) are
    returned as AddResult/RefreshResult values. Collaborator failures are
    caught here, turned into an error outcome plus one toast, and the busy
    token is always released.
    """

    def __init__(self, services):
        self.services = services

    @property
    def store(self):
        return self.services.store

    @property
    def busy(self):
        return self.services.busy

    @property
    def toasts(self):
        return self.services.toasts

    def _locale(self):
        return self.services.preferences.locale

    def _now(self):
        return self.services.clock()

    # ── Add ───────────────────────────────────────────────────────────

    def add_city(self, lat, lon, name, country=None, city_id=None, unit=None):
        """Add a city picked from search suggestions or the popular list."""
        city_id = city_id or make_city_id(lat, lon)
        unit = unit or self.services.preferences.unit
        label = CityRecord(id=city_id, lat=lat, lon=lon, name=name).label(self._locale())

        token = self.busy.try_begin_busy(
            "add", city_id, blocking=True,
            status=BusyStatus("toasts.adding", {"city": label}),
        )
        if token is None:
            log.info("Add of %s already in progress", city_id)
            return AddResult("error", error=OPERATION_IN_PROGRESS)

        try:
            if self.store.has_city(city_id):
                self.toasts.show_toast("toasts.exists", "success", {"city": label})
                return AddResult(EXISTS, city_id=city_id)
            if self.store.is_full():
                return self._max_cities_reached()

            record = self.services.cache.get(city_id)
            if record is None:
                payload = self.services.fetch_weather(city_id, lat, lon, unit, name, country)
                record = CityRecord.from_payload(
                    payload, self._now(), unit=unit, id=city_id,
                    lat=lat, lon=lon, name=name, country=country,
                )
                self.services.cache.set(record)

            outcome = self.store.add_city(record)
            if outcome == MAX_CITIES_REACHED:
                return self._max_cities_reached()
            if outcome == EXISTS:
                self.toasts.show_toast("toasts.exists", "success", {"city": label})
                return AddResult(EXISTS, city_id=city_id)

            self.services.policy.mark_refreshed(city_id)
            self.toasts.show_toast("toasts.added", "success", {"city": label})
            self.sync_preferences()
            return AddResult(ADDED, city_id=city_id)
        except Exception as e:
            log.exception("Failed to add city %s", city_id)
            self.toasts.show_toast("toasts.error", "error")
            return AddResult("error", error=str(e))
        finally:
            self.busy.end_busy(token)

    def add_current_location(self, lat, lon, unit=None):
        """Reverse-geocode a location fix and make it the current-location city."""
        unit = unit or self.services.preferences.unit
        token = self.busy.try_begin_busy(
            "add", "location", blocking=True, status=BusyStatus("toasts.locationAdding"),
        )
        if token is None:
            return AddResult("error", error=OPERATION_IN_PROGRESS)

        try:
            info = self.services.fetch_city(lat, lon)
            if not self.store.can_place_current_location(info["id"]):
                return self._max_cities_reached()
            payload = self.services.fetch_weather(
                info["id"], info["lat"], info["lon"], unit, info["name"], info["country"])
            record = CityRecord.from_payload(
                payload, self._now(), unit=unit, id=info["id"],
                lat=info["lat"], lon=info["lon"], name=info["name"], country=info["country"],
            )
            self.services.cache.set(record)
            if self.store.add_or_replace_current_location(record) == MAX_CITIES_REACHED:
                return self._max_cities_reached()
            self.services.policy.mark_refreshed(record.id)
            self.toasts.show_toast("toasts.locationAdded", "success",
                                   {"city": record.label(self._locale())})
            self.sync_preferences()
            return AddResult(ADDED, city_id=record.id)
        except Exception as e:
            log.exception("Failed to add current location %s,%s", lat, lon)
            self.toasts.show_toast("toasts.error", "error")
            return AddResult("error", error=str(e))
        finally:
            self.busy.end_busy(token)

    def _max_cities_reached(self):
        self.toasts.show_toast("toasts.maxCities", "info", {"maxCities": self.store.max_cities})
        return AddResult(MAX_CITIES_REACHED)

    # ── Remove / navigate ─────────────────────────────────────────────

    def remove_city(self, city_id):
        removed = self.store.remove_city(city_id)
        if removed:
            self.services.refresher.forget(city_id)
            self.services.policy.forget(city_id)
            self.sync_preferences()
        return removed

    # ── Refresh ───────────────────────────────────────────────────────

    def refresh_city(self, city_id, force=False):
        """Manual refresh. Without ``force`` fresh data is left alone."""
        city = self.store.get_city(city_id)
        if city is None:
            return RefreshResult("not_found", city_id=city_id)
        if not force:
            if not self.services.policy.is_stale(city):
                return RefreshResult("fresh", city_id=city_id)
            if not self.services.policy.can_attempt(city_id):
                return RefreshResult("throttled", city_id=city_id)

        token = self.busy.try_begin_busy("refresh", city_id)
        if token is None:
            return RefreshResult("error", city_id=city_id, error=OPERATION_IN_PROGRESS)

        try:
            payload = self.services.fetch_weather(
                city.id, city.lat, city.lon, city.unit, city.name, city.country)
            record = CityRecord.from_payload(
                payload, self._now(), unit=city.unit, id=city.id,
                name=city.name, country=city.country,
                is_current_location=city.is_current_location or None,
            )
            self.store.update_city(record)
            self.services.cache.set(record)
            self.services.policy.mark_refreshed(city_id)
            self.services.refresher.dismiss_background_update(city_id)
            if force:
                self.toasts.show_toast("toasts.refreshed", "success",
                                       {"city": city.label(self._locale())})
            return RefreshResult("refreshed", city_id=city_id)
        except Exception as e:
            log.exception("Manual refresh failed for %s", city_id)
            self.toasts.show_toast("toasts.error", "error")
            return RefreshResult("error", city_id=city_id, error=str(e))
        finally:
            self.busy.end_busy(token)

    def refresh_stale_cities(self):
        """Auto-refresh every stale, unthrottled city; failures stay silent."""
        policy = self.services.policy
        stale = [c for c in self.store.cities if policy.should_auto_refresh(c)]
        if not stale:
            return 0
        log.info("Auto-refreshing %d stale cities", len(stale))
        run_in_batches(
            stale, self._refresh_silently,
            batch_size=self.services.refresher.batch_size,
            delay_sec=self.services.refresher.batch_delay_sec,
            sleep=self.services.sleep,
        )
        return len(stale)

    def _refresh_silently(self, city):
        try:
            payload = self.services.fetch_weather(
                city.id, city.lat, city.lon, city.unit, city.name, city.country)
        except Exception as e:
            log.debug("Auto-refresh failed for %s: %s", city.id, e)
            self.store.apply_update(city.id, {"last_updated": self._now()})
            return
        data = dict(payload)
        data["last_updated"] = self._now()
        updated = self.store.apply_update(city.id, data)
        if updated is not None:
            self.services.cache.set(updated)
            self.services.refresher.dismiss_background_update(city.id)

    # ── Preferences ───────────────────────────────────────────────────

    def update_preferences(self, locale=None, unit=None, theme=None):
        prefs = self.services.preferences
        if locale is not None:
            prefs.locale = locale
        if unit is not None:
            prefs.unit = unit
        if theme is not None:
            prefs.theme = theme
        self.sync_preferences()
        return prefs

    def preferences_payload(self):
        prefs = self.services.preferences
        return {
            "locale": prefs.locale,
            "theme": prefs.theme,
            "unit": prefs.unit,
            "cities": [_city_snapshot(c) for c in self.store.cities],
        }

    def sync_preferences(self):
        """Best-effort write-through; returns False when it failed."""
        try:
            self.services.persist_preferences(self.preferences_payload())
        except PersistenceError as e:
            log.warning("Preference sync failed: %s", e)
            return False
        except Exception:
            log.exception("Unexpected error syncing preferences")
            return False
        return True

    # ── Display ───────────────────────────────────────────────────────

    def display_city(self, record, unit=None):
        """Record dict with temperatures converted for display."""
        unit = unit or self.services.preferences.unit
        d = record.to_dict()
        current = d.get("current")
        if isinstance(current, dict):
            current = dict(current)
            for key in ("temperature", "feels_like"):
                if key in current:
                    current[key] = convert_temperature(current[key], unit)
            if "wind_speed" in current:
                current["wind_speed"] = convert_speed(current["wind_speed"], unit)
            d["current"] = current
        if isinstance(d.get("forecast"), list):
            d["forecast"] = [_convert_day(day, unit) for day in d["forecast"]]
        d["display_unit"] = unit
        return d


def _convert_day(day, unit):
    if not isinstance(day, dict):
        return day
    day = dict(day)
    for key in ("temp_max", "temp_min"):
        if key in day:
            day[key] = convert_temperature(day[key], unit)
    return day


def _city_snapshot(city):
    return {
        "id": city.id,
        "lat": city.lat,
        "lon": city.lon,
        "name": city.name,
        "country": city.country,
        "isCurrentLocation": city.is_current_location,
        "lastUpdated": city.last_updated,
        "current": city.current,
        "forecast": city.forecast,
        "hourly": city.hourly,
        "unit": city.unit,
    }
