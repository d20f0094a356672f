"""Dataclasses for saved cities, cache entries and coordination state."""

from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config import UNITS, DEFAULT_UNIT, DEFAULT_LOCALE, DEFAULT_THEME


def make_city_id(lat, lon):
    """Stable city key from coordinates rounded to one decimal."""
    return f"city:{lat:.1f}_{lon:.1f}"


def parse_utc_ms(value):
    """ISO-8601 timestamp (or epoch ms) to epoch milliseconds; 0 if missing."""
    if value is None or value == "":
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).replace("Z", "+00:00")
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def format_utc_ms(ms):
    """Epoch milliseconds to an ISO-8601 UTC string."""
    if not ms:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


def _label(value):
    """Normalize a bilingual label to {"en", "he"}."""
    if isinstance(value, dict):
        en = value.get("en") or value.get("he") or ""
        he = value.get("he") or value.get("en") or ""
        return {"en": en, "he": he}
    text = value or ""
    return {"en": text, "he": text}


@dataclass
class CityRecord:
    id: str
    lat: float
    lon: float
    name: dict = field(default_factory=lambda: {"en": "", "he": ""})
    country: dict = field(default_factory=lambda: {"en": "", "he": ""})
    current: Any = None
    forecast: Any = field(default_factory=list)
    hourly: Any = field(default_factory=list)
    unit: str = DEFAULT_UNIT
    is_current_location: bool = False
    last_updated: int = 0
    updated_at_utc: int = 0

    def __post_init__(self):
        if not -90 <= self.lat <= 90:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180 <= self.lon <= 180:
            raise ValueError(f"Longitude out of range: {self.lon}")
        if self.unit not in UNITS:
            raise ValueError(f"Unknown unit: {self.unit}")
        self.name = _label(self.name)
        self.country = _label(self.country)

    def label(self, locale):
        return self.name.get(locale) or self.name.get("en") or self.id

    def merged(self, data):
        """Copy of this record with payload fields from ``data`` applied."""
        changes = {}
        for key in ("current", "forecast", "hourly", "name", "country", "unit"):
            if data.get(key) is not None:
                changes[key] = data[key]
        if "lastUpdatedUtc" in data:
            changes["updated_at_utc"] = parse_utc_ms(data["lastUpdatedUtc"])
        elif data.get("updated_at_utc") is not None:
            changes["updated_at_utc"] = data["updated_at_utc"]
        if data.get("last_updated") is not None:
            changes["last_updated"] = data["last_updated"]
        return replace(self, **changes)

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        lat = float(d["lat"])
        lon = float(d["lon"])
        return cls(
            id=d.get("id") or make_city_id(lat, lon),
            lat=lat,
            lon=lon,
            name=d.get("name", ""),
            country=d.get("country", ""),
            current=d.get("current"),
            forecast=d.get("forecast") or [],
            hourly=d.get("hourly") or [],
            unit=d.get("unit") or DEFAULT_UNIT,
            is_current_location=bool(d.get("is_current_location", d.get("isCurrentLocation", False))),
            last_updated=int(d.get("last_updated", d.get("lastUpdated", 0)) or 0),
            updated_at_utc=parse_utc_ms(d.get("updated_at_utc", d.get("lastUpdatedUtc"))),
        )

    @classmethod
    def from_payload(cls, payload, fetched_at, unit=DEFAULT_UNIT, **overrides):
        """Build a record from a weather collaborator payload."""
        data = dict(payload)
        data.update({k: v for k, v in overrides.items() if v is not None})
        data["unit"] = unit
        data["last_updated"] = fetched_at
        return cls.from_dict(data)


@dataclass
class CacheEntry:
    data: CityRecord
    timestamp: int


@dataclass
class PendingBackgroundUpdate:
    city_id: str
    city_name: str
    new_data: dict
    timestamp: int

    def to_dict(self):
        return {
            "city_id": self.city_id,
            "city_name": self.city_name,
            "timestamp": self.timestamp,
            "updated_at_utc": format_utc_ms(parse_utc_ms(self.new_data.get("lastUpdatedUtc"))),
        }


@dataclass
class AddResult:
    status: str  # added | exists | max_cities | error
    city_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self):
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class RefreshResult:
    status: str  # refreshed | fresh | throttled | not_found | error
    city_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self):
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class BusyStatus:
    key: str
    values: Dict[str, str] = field(default_factory=dict)

    def to_dict(self):
        return {"key": self.key, "values": dict(self.values)}


@dataclass(frozen=True)
class BusyToken:
    handle: int


@dataclass
class Toast:
    id: int
    message: str
    type: str = "info"
    values: dict = field(default_factory=dict)
    duration: Optional[int] = None

    def to_dict(self):
        return asdict(self)


@dataclass
class AppPreferences:
    locale: str = DEFAULT_LOCALE
    unit: str = DEFAULT_UNIT
    theme: str = DEFAULT_THEME

    def to_dict(self):
        return asdict(self)


# Weather payload pieces, always stored metric (°C, km/h, mm).

@dataclass
class CurrentWeather:
    temperature: float
    feels_like: float
    humidity: float
    wind_speed: float
    wind_direction: str
    precipitation: float
    weather_code: int
    weather_desc: str
    weather_icon: str
    is_day: bool
    uv_index: float
    observed_at: str = ""
    cloud_cover: Optional[float] = None

    def to_dict(self):
        return asdict(self)


@dataclass
class HourlyForecast:
    time: str
    temperature: float
    precipitation_prob: float
    weather_code: int
    weather_desc: str
    weather_icon: str
    wind_speed: float
    is_day: bool

    def to_dict(self):
        return asdict(self)


@dataclass
class DailyForecast:
    date: str
    temp_max: float
    temp_min: float
    weather_code: int
    weather_desc: str
    weather_icon: str
    precipitation_sum: float
    precipitation_prob_max: float
    sunrise: str
    sunset: str

    def to_dict(self):
        return asdict(self)
