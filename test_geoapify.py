"""Tests for reverse geocoding and preference persistence clients."""
from unittest.mock import patch, MagicMock

import pytest
import requests

from data_sources.geoapify import fetch_city_by_coordinates, fetch_city_names
from data_sources.preferences import persist_preferences
from errors import GeocodeError, PersistenceError


def geo_response(**hit):
    resp = MagicMock()
    resp.json.return_value = {"results": [hit] if hit else []}
    resp.raise_for_status.return_value = None
    return resp


@patch("data_sources.geoapify.requests.get")
def test_reverse_geocode(mock_get):
    mock_get.return_value = geo_response(
        city="Tel Aviv-Yafo", address_line1="Tel Aviv", country="Israel", lat=32.0853, lon=34.7818)
    city = fetch_city_by_coordinates(32.08, 34.78, api_key="k")
    assert city == {
        "id": "city:32.1_34.8",
        "name": "Tel Aviv",
        "country": "Israel",
        "lat": 32.0853,
        "lon": 34.7818,
    }
    params = mock_get.call_args.kwargs["params"]
    assert params["apiKey"] == "k"
    assert params["type"] == "city"


@patch("data_sources.geoapify.requests.get")
def test_reverse_geocode_no_city(mock_get):
    mock_get.return_value = geo_response()
    with pytest.raises(GeocodeError, match="City not found"):
        fetch_city_by_coordinates(0.0, -30.0, api_key="k")


@patch("data_sources.geoapify.requests.get")
def test_reverse_geocode_timeout(mock_get):
    mock_get.side_effect = requests.Timeout()
    with pytest.raises(GeocodeError, match="timed out"):
        fetch_city_by_coordinates(32.08, 34.78, api_key="k")


def test_city_names_in_both_locales():
    def fetch(lat, lon, lang, api_key=None):
        names = {"en": ("Tel Aviv", "Israel"), "he": ("תל אביב", "ישראל")}
        name, country = names[lang]
        return {"id": "city:32.1_34.8", "name": name, "country": country, "lat": lat, "lon": lon}

    city = fetch_city_names(32.08, 34.78, fetch=fetch)
    assert city["name"] == {"en": "Tel Aviv", "he": "תל אביב"}
    assert city["country"] == {"en": "Israel", "he": "ישראל"}


def test_city_names_fall_back_to_english():
    def fetch(lat, lon, lang, api_key=None):
        if lang == "he":
            raise GeocodeError("no hebrew")
        return {"id": "city:32.1_34.8", "name": "Tel Aviv", "country": "Israel", "lat": lat, "lon": lon}

    city = fetch_city_names(32.08, 34.78, fetch=fetch)
    assert city["name"] == {"en": "Tel Aviv", "he": "Tel Aviv"}


@patch("data_sources.preferences.requests.post")
def test_persist_preferences(mock_post):
    mock_post.return_value = MagicMock(ok=True)
    persist_preferences({"unit": "metric", "cities": []}, url="https://example.test/prefs",
                        auth_token="tok")
    kwargs = mock_post.call_args.kwargs
    assert kwargs["json"] == {"unit": "metric", "cities": []}
    assert kwargs["headers"]["Authorization"] == "Bearer tok"


@patch("data_sources.preferences.requests.post")
def test_persist_preferences_rejected(mock_post):
    mock_post.return_value = MagicMock(ok=False, status_code=500, text="oops")
    with pytest.raises(PersistenceError, match="500"):
        persist_preferences({"cities": []}, url="https://example.test/prefs")


@patch("data_sources.preferences.requests.post")
def test_persist_preferences_network_error(mock_post):
    mock_post.side_effect = requests.ConnectionError("refused")
    with pytest.raises(PersistenceError):
        persist_preferences({"cities": []}, url="https://example.test/prefs")


@patch("data_sources.preferences.PREFERENCES_URL", "")
@patch("data_sources.preferences.requests.post")
def test_persist_preferences_without_endpoint(mock_post):
    persist_preferences({"cities": []})
    mock_post.assert_not_called()
