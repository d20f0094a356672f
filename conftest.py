"""Shared fixtures: a controllable clock and fake collaborators."""

import threading

import pytest

from models import format_utc_ms
from services import build_services

T0 = 1_700_000_000_000
MINUTE = 60 * 1000
HOUR = 60 * MINUTE


class FakeClock:
    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FakeWeather:
    """Stands in for fetch_weather_by_coordinates."""

    def __init__(self, clock, temp=20.0):
        self.clock = clock
        self.temp = temp
        self.fail = set()
        self.calls = []
        self.observed_at = None
        self._lock = threading.Lock()

    def __call__(self, city_id, lat, lon, unit="metric", name=None, country=None):
        with self._lock:
            self.calls.append(city_id)
        if city_id in self.fail or "*" in self.fail:
            raise RuntimeError(f"provider down for {city_id}")
        observed = self.observed_at if self.observed_at is not None else self.clock()
        return {
            "id": city_id,
            "lat": lat,
            "lon": lon,
            "name": name or {"en": city_id, "he": city_id},
            "country": country or {"en": "", "he": ""},
            "current": {"temperature": self.temp, "feels_like": self.temp, "wind_speed": 10.0},
            "forecast": [{"date": "2023-11-14", "temp_max": self.temp + 5, "temp_min": self.temp - 5}],
            "hourly": [],
            "lastUpdatedUtc": format_utc_ms(observed),
        }


def fake_city(lat, lon, lang="en"):
    return {
        "id": f"city:{lat:.1f}_{lon:.1f}",
        "lat": lat,
        "lon": lon,
        "name": {"en": "Tel Aviv", "he": "תל אביב"},
        "country": {"en": "Israel", "he": "ישראל"},
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def weather(clock):
    return FakeWeather(clock)


@pytest.fixture
def persisted():
    return []


@pytest.fixture
def services(clock, weather, persisted):
    return build_services(
        fetch_weather=weather,
        fetch_city=fake_city,
        persist=persisted.append,
        clock=clock,
        sleep=lambda seconds: None,
    )
