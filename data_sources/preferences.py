"""Write-through of user preferences to the account backend."""

import logging

import requests

from config import PREFERENCES_URL, PREFERENCES_TIMEOUT
from errors import PersistenceError

log = logging.getLogger(__name__)


def persist_preferences(payload, url=None, auth_token=None):
    """POST {locale, theme, unit, cities} to the preferences endpoint.

    Does nothing when no endpoint is configured. Raises PersistenceError on
    any failure; callers treat that as non-fatal.
    """
    target = url or PREFERENCES_URL
    if not target:
        log.debug("No preferences endpoint configured, skipping sync")
        return

    headers = {"Content-Type": "application/json"}
    if auth_token:
        headers["Authorization"] = f"Bearer {auth_token}"
    try:
        resp = requests.post(target, json=payload, headers=headers, timeout=PREFERENCES_TIMEOUT)
    except requests.RequestException as e:
        raise PersistenceError(f"Failed to persist user preferences: {e}") from e
    if not resp.ok:
        raise PersistenceError(
            f"Failed to persist user preferences: {resp.status_code} {resp.text}")
    log.info("Persisted preferences (%d cities)", len(payload.get("cities", [])))
