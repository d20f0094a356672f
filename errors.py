"""Exceptions raised by the weather data collaborators."""


class WeatherAppError(Exception):
    """Base class for weather app failures."""


class WeatherFetchError(WeatherAppError):
    """Raised when the weather provider fails or times out."""


class GeocodeError(WeatherAppError):
    """Raised when coordinates cannot be resolved to a city."""


class PersistenceError(WeatherAppError):
    """Raised when saving user preferences fails."""
