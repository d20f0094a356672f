"""Process-wide service wiring: one instance of each store per process."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from actions import WeatherActions
from background import BackgroundRefresher
from busy import BusyCoordinator
from cache import WeatherCache
from config import MAX_CITIES, now_ms
from data_sources.geoapify import fetch_city_names
from data_sources.open_meteo import fetch_weather_by_coordinates
from data_sources.preferences import persist_preferences
from models import AppPreferences
from notifications import ToastStore
from refresh_policy import RefreshPolicy
from store import WeatherDataStore

log = logging.getLogger(__name__)


@dataclass
class Services:
    store: WeatherDataStore
    cache: WeatherCache
    policy: RefreshPolicy
    busy: BusyCoordinator
    toasts: ToastStore
    refresher: BackgroundRefresher
    preferences: AppPreferences
    fetch_weather: Callable
    fetch_city: Callable
    persist_preferences: Callable
    clock: Callable = now_ms
    sleep: Callable = time.sleep
    actions: WeatherActions = field(init=False)

    def __post_init__(self):
        self.actions = WeatherActions(self)

    def start(self):
        self.refresher.start()

    def stop(self):
        self.refresher.stop()


def build_services(fetch_weather=fetch_weather_by_coordinates, fetch_city=fetch_city_names,
                   persist=persist_preferences, clock=now_ms, sleep=time.sleep,
                   max_cities=MAX_CITIES, preferences=None):
    """Construct the stores and wire them to the given collaborators."""
    preferences = preferences or AppPreferences()
    store = WeatherDataStore(max_cities=max_cities)
    cache = WeatherCache(clock=clock)
    policy = RefreshPolicy(clock=clock)
    refresher = BackgroundRefresher(
        store, cache, policy, fetch_weather,
        clock=clock, sleep=sleep, locale=lambda: preferences.locale,
    )
    log.debug("Services built (max_cities=%d)", max_cities)
    return Services(
        store=store,
        cache=cache,
        policy=policy,
        busy=BusyCoordinator(),
        toasts=ToastStore(),
        refresher=refresher,
        preferences=preferences,
        fetch_weather=fetch_weather,
        fetch_city=fetch_city,
        persist_preferences=persist,
        clock=clock,
        sleep=sleep,
    )
