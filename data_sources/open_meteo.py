"""Open-Meteo client: current conditions, daily and hourly forecast by coordinates."""

import logging
from datetime import datetime, timedelta, timezone

import requests

from config import WEATHER_TIMEOUT, get_wmo_info, degree_to_compass
from errors import WeatherFetchError
from models import CurrentWeather, HourlyForecast, DailyForecast, make_city_id

log = logging.getLogger(__name__)

_URL = "https://api.open-meteo.com/v1/forecast"
_FORECAST_DAYS = 7
_FORECAST_HOURS = 24


def fetch_weather_by_coordinates(city_id, lat, lon, unit="metric", name=None, country=None):
    """Fetch and parse weather for one city.

    Values are always requested in metric; ``unit`` is carried through for
    display only. Returns the payload dict the cache core stores:
    id, lat, lon, name, country, current, forecast, hourly, lastUpdatedUtc.
    """
    params = {
        "latitude": lat,
        "longitude": lon,
        "timezone": "auto",
        "temperature_unit": "celsius",
        "windspeed_unit": "kmh",
        "precipitation_unit": "mm",
        "forecast_days": _FORECAST_DAYS,
        "forecast_hours": _FORECAST_HOURS,
        "current": ",".join([
            "temperature_2m", "apparent_temperature", "relative_humidity_2m",
            "wind_speed_10m", "wind_direction_10m", "precipitation",
            "weather_code", "is_day", "uv_index", "cloud_cover",
        ]),
        "hourly": ",".join([
            "temperature_2m", "precipitation_probability", "weather_code",
            "wind_speed_10m", "is_day",
        ]),
        "daily": ",".join([
            "temperature_2m_max", "temperature_2m_min", "weather_code",
            "precipitation_sum", "precipitation_probability_max",
            "sunrise", "sunset",
        ]),
    }
    try:
        resp = requests.get(_URL, params=params, timeout=WEATHER_TIMEOUT)
        resp.raise_for_status()
        raw = resp.json()
    except requests.Timeout as e:
        raise WeatherFetchError("Weather fetch timeout") from e
    except (requests.RequestException, ValueError) as e:
        raise WeatherFetchError(f"Failed to fetch weather data: {e}") from e

    payload = parse_weather(raw)
    payload.update({
        "id": city_id or make_city_id(lat, lon),
        "lat": lat,
        "lon": lon,
        "unit": unit,
    })
    if name:
        payload["name"] = name
    if country:
        payload["country"] = country
    log.debug("Fetched weather for %s (%s)", payload["id"], payload["lastUpdatedUtc"])
    return payload


def parse_weather(raw):
    """Parse an Open-Meteo forecast response into payload fields."""
    current = parse_current(raw)
    return {
        "current": current.to_dict() if current else None,
        "forecast": [d.to_dict() for d in parse_daily(raw)],
        "hourly": [h.to_dict() for h in parse_hourly(raw)],
        "lastUpdatedUtc": _observed_utc(raw),
    }


def parse_current(raw):
    """Parse current conditions from Open-Meteo response."""
    c = raw.get("current", {})
    if not c:
        return None
    code = c.get("weather_code", 0)
    is_day = bool(c.get("is_day", 1))
    desc, icon = get_wmo_info(code, is_day)
    return CurrentWeather(
        temperature=c.get("temperature_2m", 0),
        feels_like=c.get("apparent_temperature", 0),
        humidity=c.get("relative_humidity_2m", 0),
        wind_speed=c.get("wind_speed_10m", 0),
        wind_direction=degree_to_compass(c.get("wind_direction_10m")),
        precipitation=c.get("precipitation", 0),
        weather_code=code,
        weather_desc=desc,
        weather_icon=icon,
        is_day=is_day,
        uv_index=c.get("uv_index", 0),
        observed_at=c.get("time", ""),
        cloud_cover=c.get("cloud_cover"),
    )


def parse_hourly(raw):
    hourly_data = raw.get("hourly", {})
    hourly = []
    for i, t in enumerate(hourly_data.get("time", [])):
        code = _safe_get(hourly_data, "weather_code", i, 0)
        is_day = bool(_safe_get(hourly_data, "is_day", i, 1))
        desc, icon = get_wmo_info(code, is_day)
        hourly.append(HourlyForecast(
            time=t,
            temperature=_safe_get(hourly_data, "temperature_2m", i, 0),
            precipitation_prob=_safe_get(hourly_data, "precipitation_probability", i, 0),
            weather_code=code,
            weather_desc=desc,
            weather_icon=icon,
            wind_speed=_safe_get(hourly_data, "wind_speed_10m", i, 0),
            is_day=is_day,
        ))
    return hourly


def parse_daily(raw):
    daily_data = raw.get("daily", {})
    daily = []
    for i, d in enumerate(daily_data.get("time", [])):
        code = _safe_get(daily_data, "weather_code", i, 0)
        desc, icon = get_wmo_info(code, True)
        daily.append(DailyForecast(
            date=d,
            temp_max=_safe_get(daily_data, "temperature_2m_max", i, 0),
            temp_min=_safe_get(daily_data, "temperature_2m_min", i, 0),
            weather_code=code,
            weather_desc=desc,
            weather_icon=icon,
            precipitation_sum=_safe_get(daily_data, "precipitation_sum", i, 0),
            precipitation_prob_max=_safe_get(daily_data, "precipitation_probability_max", i, 0),
            sunrise=_safe_get(daily_data, "sunrise", i, ""),
            sunset=_safe_get(daily_data, "sunset", i, ""),
        ))
    return daily


def _observed_utc(raw):
    """UTC ISO time of the current observation; local time minus the offset.

    None when the response carries no observation time.
    """
    local = raw.get("current", {}).get("time")
    if not local:
        return None
    offset = raw.get("utc_offset_seconds", 0) or 0
    observed = datetime.fromisoformat(local).replace(tzinfo=timezone.utc) - timedelta(seconds=offset)
    return observed.isoformat()


def _safe_get(data, key, index, default):
    """Safely get a value from an Open-Meteo array response."""
    arr = data.get(key, [])
    if index < len(arr) and arr[index] is not None:
        return arr[index]
    return default
