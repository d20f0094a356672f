"""Tests for staleness and refresh throttling."""
import pytest

from conftest import HOUR, MINUTE
from models import CityRecord
from refresh_policy import RefreshPolicy


@pytest.fixture
def policy(clock):
    return RefreshPolicy(clock=clock)


def record(clock, age_ms=0, last_updated=None, city_id="city:32.1_34.8"):
    return CityRecord(
        id=city_id, lat=32.1, lon=34.8, name="Tel Aviv",
        last_updated=clock() - age_ms if last_updated is None else last_updated,
    )


def test_missing_timestamp_is_stale(policy, clock):
    assert policy.is_stale(record(clock, last_updated=0))


def test_fresh_record_not_stale(policy, clock):
    assert not policy.is_stale(record(clock, age_ms=3 * HOUR))


def test_old_record_is_stale(policy, clock):
    assert policy.is_stale(record(clock, age_ms=3 * HOUR + 1))


def test_can_attempt_true_then_false_then_true(policy, clock):
    assert policy.can_attempt("city:1")
    assert not policy.can_attempt("city:1")
    clock.advance(MINUTE - 1)
    assert not policy.can_attempt("city:1")
    clock.advance(1)
    assert policy.can_attempt("city:1")


def test_throttle_is_per_city(policy):
    assert policy.can_attempt("city:1")
    assert policy.can_attempt("city:2")
    assert not policy.can_attempt("city:1")


def test_should_auto_refresh_false_when_fresh(policy, clock):
    fresh = record(clock, age_ms=MINUTE)
    assert not policy.should_auto_refresh(fresh)
    # A fresh check does not consume the throttle
    assert policy.can_attempt(fresh.id)


def test_should_auto_refresh_stale_and_unthrottled(policy, clock):
    stale = record(clock, age_ms=4 * HOUR)
    assert policy.should_auto_refresh(stale)
    assert not policy.should_auto_refresh(stale)


def test_mark_refreshed_suppresses_auto_refresh(policy, clock):
    stale = record(clock, age_ms=4 * HOUR)
    policy.mark_refreshed(stale.id)
    assert not policy.should_auto_refresh(stale)
    clock.advance(MINUTE)
    assert policy.should_auto_refresh(stale)


def test_forget_clears_throttle(policy):
    assert policy.can_attempt("city:1")
    policy.forget("city:1")
    assert policy.can_attempt("city:1")
