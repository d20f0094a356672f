"""Constants, environment settings and lookup tables for the weather cache."""

import os
import time

# Cache freshness (milliseconds)
FRESH_WINDOW_MS = 3 * 60 * 60 * 1000      # 3 hr, cached records stay valid
PRESSURE_WINDOW_MS = 60 * 60 * 1000       # 1 hr, tighter window near capacity
PRESSURE_RATIO = 0.8
MAX_CACHE_SIZE = 150
CLEANUP_INTERVAL_MS = 10 * 60 * 1000      # 10 min between cleanup passes

# Refresh throttle
REFRESH_THROTTLE_MS = 60 * 1000           # 1 min between attempts per city

# Background refresh
BACKGROUND_INTERVAL_SEC = 5 * 60
BACKGROUND_THRESHOLD_MS = 20 * 60 * 1000
BACKGROUND_BATCH_SIZE = 3
BACKGROUND_BATCH_DELAY_SEC = 0.1

# Saved cities
MAX_CITIES = 15

SUPPORTED_LOCALES = ("en", "he")
DEFAULT_LOCALE = "he"
UNITS = ("metric", "imperial")
DEFAULT_UNIT = "metric"
THEMES = ("system", "light", "dark")
DEFAULT_THEME = "system"

# Collaborators
GEOAPIFY_KEY = os.environ.get("GEOAPIFY_KEY", "")
PREFERENCES_URL = os.environ.get("PREFERENCES_URL", "")
WEATHER_TIMEOUT = 12      # seconds
GEOCODE_TIMEOUT = 10
PREFERENCES_TIMEOUT = 10

HOST = os.environ.get("WEATHER_HOST", "0.0.0.0")
PORT = int(os.environ.get("WEATHER_PORT", "5051"))


def now_ms():
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# WMO Weather interpretation codes
# https://open-meteo.com/en/docs
WMO_CODES = {
    0:  {"description": "Clear sky",            "icon_day": "\u2600\ufe0f",  "icon_night": "\U0001f311"},
    1:  {"description": "Mainly clear",         "icon_day": "\U0001f324\ufe0f",  "icon_night": "\U0001f311"},
    2:  {"description": "Partly cloudy",        "icon_day": "\u26c5",       "icon_night": "\u2601\ufe0f"},
    3:  {"description": "Overcast",             "icon_day": "\u2601\ufe0f",  "icon_night": "\u2601\ufe0f"},
    45: {"description": "Fog",                  "icon_day": "\U0001f32b\ufe0f",  "icon_night": "\U0001f32b\ufe0f"},
    48: {"description": "Depositing rime fog",  "icon_day": "\U0001f32b\ufe0f",  "icon_night": "\U0001f32b\ufe0f"},
    51: {"description": "Light drizzle",        "icon_day": "\U0001f326\ufe0f",  "icon_night": "\U0001f327\ufe0f"},
    53: {"description": "Moderate drizzle",     "icon_day": "\U0001f327\ufe0f",  "icon_night": "\U0001f327\ufe0f"},
    55: {"description": "Dense drizzle",        "icon_day": "\U0001f327\ufe0f",  "icon_night": "\U0001f327\ufe0f"},
    61: {"description": "Slight rain",          "icon_day": "\U0001f326\ufe0f",  "icon_night": "\U0001f327\ufe0f"},
    63: {"description": "Moderate rain",        "icon_day": "\U0001f327\ufe0f",  "icon_night": "\U0001f327\ufe0f"},
    65: {"description": "Heavy rain",           "icon_day": "\U0001f327\ufe0f",  "icon_night": "\U0001f327\ufe0f"},
    71: {"description": "Slight snow",          "icon_day": "\U0001f328\ufe0f",  "icon_night": "\U0001f328\ufe0f"},
    73: {"description": "Moderate snow",        "icon_day": "\U0001f328\ufe0f",  "icon_night": "\U0001f328\ufe0f"},
    75: {"description": "Heavy snow",           "icon_day": "\U0001f328\ufe0f",  "icon_night": "\U0001f328\ufe0f"},
    80: {"description": "Slight rain showers",  "icon_day": "\U0001f326\ufe0f",  "icon_night": "\U0001f327\ufe0f"},
    81: {"description": "Moderate rain showers","icon_day": "\U0001f327\ufe0f",  "icon_night": "\U0001f327\ufe0f"},
    82: {"description": "Violent rain showers", "icon_day": "\U0001f327\ufe0f",  "icon_night": "\U0001f327\ufe0f"},
    95: {"description": "Thunderstorm",         "icon_day": "\u26c8\ufe0f",  "icon_night": "\u26c8\ufe0f"},
    96: {"description": "Thunderstorm with slight hail", "icon_day": "\u26c8\ufe0f", "icon_night": "\u26c8\ufe0f"},
    99: {"description": "Thunderstorm with heavy hail",  "icon_day": "\u26c8\ufe0f", "icon_night": "\u26c8\ufe0f"},
}

# 16-point compass directions
WIND_DIRECTIONS = [
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
]


def degree_to_compass(deg):
    """Convert wind direction in degrees to compass string."""
    if deg is None:
        return "N/A"
    idx = round(deg / 22.5) % 16
    return WIND_DIRECTIONS[idx]


def get_wmo_info(code, is_day=True):
    """Return (description, icon) for a WMO weather code."""
    info = WMO_CODES.get(code, {"description": "Unknown", "icon_day": "\u2753", "icon_night": "\u2753"})
    icon = info["icon_day"] if is_day else info["icon_night"]
    return (info["description"], icon)


# Storage is always metric; these run at render time only.

def convert_temperature(celsius, unit):
    """Celsius to the display unit, rounded to one decimal."""
    if celsius is None:
        return None
    if unit == "imperial":
        return round(celsius * 9 / 5 + 32, 1)
    return round(celsius, 1)


def convert_speed(kmh, unit):
    """km/h to the display unit (mph for imperial)."""
    if kmh is None:
        return None
    if unit == "imperial":
        return round(kmh / 1.609344, 1)
    return round(kmh, 1)
