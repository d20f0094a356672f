"""Geoapify reverse geocoding: coordinates to a nameable city."""

import logging

import requests

from config import GEOAPIFY_KEY, GEOCODE_TIMEOUT
from errors import GeocodeError
from models import make_city_id

log = logging.getLogger(__name__)

_URL = "https://api.geoapify.com/v1/geocode/reverse"


def fetch_city_by_coordinates(lat, lon, lang="en", api_key=None):
    """Resolve coordinates to {id, name, country, lat, lon} in ``lang``.

    Raises GeocodeError on HTTP failure, timeout, or when no city is found.
    """
    params = {
        "lat": lat,
        "lon": lon,
        "lang": lang,
        "type": "city",
        "format": "json",
        "apiKey": api_key or GEOAPIFY_KEY,
    }
    try:
        resp = requests.get(_URL, params=params, timeout=GEOCODE_TIMEOUT)
        resp.raise_for_status()
        data = resp.json()
    except requests.Timeout as e:
        raise GeocodeError("Reverse geocode timed out") from e
    except (requests.RequestException, ValueError) as e:
        raise GeocodeError(f"Reverse geocode failed: {e}") from e

    results = data.get("results") or []
    hit = results[0] if results else {}
    if not hit.get("city") or not hit.get("country"):
        raise GeocodeError(f"City not found for {lat},{lon}")

    return {
        "id": make_city_id(hit["lat"], hit["lon"]),
        "name": hit.get("address_line1") or hit["city"],
        "country": hit["country"],
        "lat": hit["lat"],
        "lon": hit["lon"],
    }


def fetch_city_names(lat, lon, api_key=None, fetch=fetch_city_by_coordinates):
    """Resolve a city in both locales; returns {id, lat, lon, name, country} with {en, he} labels."""
    en = fetch(lat, lon, "en", api_key=api_key)
    try:
        he = fetch(lat, lon, "he", api_key=api_key)
    except GeocodeError:
        log.warning("Hebrew reverse geocode failed for %s,%s; using English names", lat, lon)
        he = en
    return {
        "id": en["id"],
        "lat": en["lat"],
        "lon": en["lon"],
        "name": {"en": en["name"], "he": he["name"]},
        "country": {"en": en["country"], "he": he["country"]},
    }
