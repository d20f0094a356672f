"""Tests for the TTL weather cache."""
import pytest

from cache import WeatherCache
from conftest import HOUR, MINUTE
from models import CityRecord


def make_record(i, lat=None):
    lat = lat if lat is not None else (i % 180) - 89.5
    return CityRecord(id=f"city:{i}", lat=lat, lon=0.0, name=f"City {i}")


@pytest.fixture
def cache(clock):
    return WeatherCache(clock=clock)


def test_set_then_get_returns_record(cache):
    """A just-set record is readable at zero elapsed time."""
    record = make_record(1)
    cache.set(record)
    assert cache.get("city:1") is record


def test_get_missing_returns_none(cache):
    assert cache.get("city:unknown") is None


def test_entry_expires_after_fresh_window(cache, clock):
    cache.set(make_record(1))
    clock.advance(3 * HOUR - 1)
    assert cache.get("city:1") is not None
    clock.advance(1)
    assert cache.get("city:1") is None


def test_expired_entry_removed_by_next_cleanup(cache, clock):
    """Expired reads are a miss; the cleanup pass on that access drops them."""
    cache.set(make_record(1))
    clock.advance(3 * HOUR + 1)
    assert cache.get("city:1") is None
    assert len(cache) == 0


def test_expired_entry_kept_until_cleanup_interval(clock):
    cache = WeatherCache(clock=clock, fresh_window_ms=5 * MINUTE)
    cache.set(make_record(1))
    clock.advance(6 * MINUTE)
    assert cache.get("city:1") is None
    assert len(cache) == 1


def test_set_overwrites_existing_entry(cache, clock):
    cache.set(make_record(1))
    clock.advance(2 * HOUR)
    newer = make_record(1)
    cache.set(newer)
    clock.advance(2 * HOUR)
    assert cache.get("city:1") is newer


def test_cleanup_is_throttled(clock):
    cache = WeatherCache(clock=clock, max_size=2)
    for i in range(5):
        cache.set(make_record(i))
    # No cleanup interval has elapsed since construction
    assert len(cache) == 5


def test_occupancy_bounded_after_cleanup_interval(clock):
    cache = WeatherCache(clock=clock, max_size=3)
    for i in range(6):
        cache.set(make_record(i))
        clock.advance(1)
    clock.advance(10 * MINUTE)
    cache.set(make_record(99))
    assert len(cache) <= 3
    # Oldest entries went first
    assert cache.get("city:0") is None
    assert cache.get("city:99") is not None


def test_pressure_window_drops_hour_old_entries(clock):
    cache = WeatherCache(clock=clock, max_size=10)
    for i in range(5):
        cache.set(make_record(i))
    clock.advance(2 * HOUR)
    for i in range(5, 9):
        cache.set(make_record(i))
    clock.advance(10 * MINUTE)
    cache.get("city:5")
    # 9 entries > 80% of 10, so the 2-hour-old ones are gone
    assert len(cache) == 4
    assert cache.get("city:0") is None


def test_no_pressure_eviction_below_threshold(clock):
    cache = WeatherCache(clock=clock, max_size=10)
    for i in range(3):
        cache.set(make_record(i))
    clock.advance(2 * HOUR)
    assert cache.get("city:0") is not None
    assert len(cache) == 3


def test_stats(cache, clock):
    assert cache.stats() == {"size": 0, "oldest_entry_age_ms": None}
    cache.set(make_record(1))
    clock.advance(5000)
    cache.set(make_record(2))
    stats = cache.stats()
    assert stats["size"] == 2
    assert stats["oldest_entry_age_ms"] == 5000
