"""Tests for the Open-Meteo client."""
from unittest.mock import patch, MagicMock

import pytest
import requests

from config import get_wmo_info
from data_sources.open_meteo import fetch_weather_by_coordinates, parse_weather
from errors import WeatherFetchError
from models import parse_utc_ms


SAMPLE_RESPONSE = {
    "utc_offset_seconds": 7200,
    "current": {
        "time": "2024-01-15T14:00",
        "temperature_2m": 18.4,
        "apparent_temperature": 17.0,
        "relative_humidity_2m": 55,
        "wind_speed_10m": 12.0,
        "wind_direction_10m": 270,
        "precipitation": 0.0,
        "weather_code": 2,
        "is_day": 1,
        "uv_index": 3.1,
        "cloud_cover": 40,
    },
    "hourly": {
        "time": ["2024-01-15T14:00", "2024-01-15T15:00"],
        "temperature_2m": [18.4, None],
        "precipitation_probability": [0, 10],
        "weather_code": [2, 3],
        "wind_speed_10m": [12.0, 13.0],
        "is_day": [1, 1],
    },
    "daily": {
        "time": ["2024-01-15"],
        "temperature_2m_max": [20.1],
        "temperature_2m_min": [11.3],
        "weather_code": [2],
        "precipitation_sum": [0.0],
        "precipitation_probability_max": [10],
        "sunrise": ["2024-01-15T06:38"],
        "sunset": ["2024-01-15T17:05"],
    },
}


def mock_response(json_data):
    resp = MagicMock()
    resp.json.return_value = json_data
    resp.raise_for_status.return_value = None
    return resp


def test_parse_weather():
    payload = parse_weather(SAMPLE_RESPONSE)
    current = payload["current"]
    assert current["temperature"] == 18.4
    assert current["wind_direction"] == "W"
    assert current["weather_desc"] == "Partly cloudy"
    assert len(payload["forecast"]) == 1
    assert payload["forecast"][0]["temp_max"] == 20.1
    assert len(payload["hourly"]) == 2
    # Missing array values fall back to defaults
    assert payload["hourly"][1]["temperature"] == 0


def test_observation_time_converted_to_utc():
    payload = parse_weather(SAMPLE_RESPONSE)
    assert parse_utc_ms(payload["lastUpdatedUtc"]) == parse_utc_ms("2024-01-15T12:00:00Z")


def test_parse_empty_response():
    payload = parse_weather({})
    assert payload["current"] is None
    assert payload["forecast"] == []
    assert payload["hourly"] == []
    assert payload["lastUpdatedUtc"] is None


def test_missing_observation_time_is_none():
    raw = dict(SAMPLE_RESPONSE, current={"temperature_2m": 18.4})
    assert parse_weather(raw)["lastUpdatedUtc"] is None


def test_wmo_icons():
    assert get_wmo_info(0, True) == ("Clear sky", "\u2600\ufe0f")
    assert get_wmo_info(0, False) == ("Clear sky", "\U0001f311")
    assert get_wmo_info(1234) == ("Unknown", "\u2753")


@patch("data_sources.open_meteo.requests.get")
def test_fetch_weather(mock_get):
    mock_get.return_value = mock_response(SAMPLE_RESPONSE)
    payload = fetch_weather_by_coordinates(
        "city:31.8_35.2", 31.77, 35.21, name={"en": "Jerusalem", "he": "ירושלים"})
    assert payload["id"] == "city:31.8_35.2"
    assert payload["name"]["en"] == "Jerusalem"
    assert payload["current"]["temperature"] == 18.4
    params = mock_get.call_args.kwargs["params"]
    assert params["temperature_unit"] == "celsius"
    assert params["latitude"] == 31.77


@patch("data_sources.open_meteo.requests.get")
def test_fetch_weather_always_metric(mock_get):
    mock_get.return_value = mock_response(SAMPLE_RESPONSE)
    payload = fetch_weather_by_coordinates(None, 31.77, 35.21, unit="imperial")
    assert payload["id"] == "city:31.8_35.2"
    assert payload["unit"] == "imperial"
    assert mock_get.call_args.kwargs["params"]["windspeed_unit"] == "kmh"


@patch("data_sources.open_meteo.requests.get")
def test_fetch_weather_timeout(mock_get):
    mock_get.side_effect = requests.Timeout()
    with pytest.raises(WeatherFetchError, match="timeout"):
        fetch_weather_by_coordinates("city:1", 1.0, 1.0)


@patch("data_sources.open_meteo.requests.get")
def test_fetch_weather_http_error(mock_get):
    resp = mock_response({})
    resp.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
    mock_get.return_value = resp
    with pytest.raises(WeatherFetchError, match="503"):
        fetch_weather_by_coordinates("city:1", 1.0, 1.0)


@patch("data_sources.open_meteo.requests.get")
def test_fetch_weather_bad_json(mock_get):
    resp = mock_response(None)
    resp.json.side_effect = ValueError("not json")
    mock_get.return_value = resp
    with pytest.raises(WeatherFetchError):
        fetch_weather_by_coordinates("city:1", 1.0, 1.0)
