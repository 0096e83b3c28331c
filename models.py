"""Dataclasses and status enums for the city weather cache."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional


class RecordStatus(str, Enum):
    """Outcome of the last update attempt, as persisted in a CacheRecord."""

    VALID = "valid"
    EXPIRED = "expired"
    NO_COORDINATES = "no_coordinates"
    API_ERROR = "api_error"
    NO_TEMPERATURE = "no_temperature"
    UNAVAILABLE = "unavailable"


class CacheStatus(str, Enum):
    """View-layer status derived per request. Never persisted."""

    VALID = "valid"
    EXPIRED = "expired"
    EXPECTED = "expected"
    UNAVAILABLE = "unavailable"
    NO_COORDINATES = "no_coordinates"
    ABORT = "abort"


# Older revisions wrote "success" for a good fetch
_LEGACY_STATUSES = {"success": RecordStatus.VALID}


def parse_record_status(value):
    """Map a stored status string onto RecordStatus, or None if unknown."""
    if isinstance(value, RecordStatus):
        return value
    if value in _LEGACY_STATUSES:
        return _LEGACY_STATUSES[value]
    try:
        return RecordStatus(value)
    except ValueError:
        return None


@dataclass
class CacheRecord:
    temperature: Optional[float]
    timestamp: int
    ttl: int
    status: RecordStatus

    @property
    def expires_at(self):
        return self.timestamp + self.ttl

    def to_dict(self):
        return {
            "temperature_celsius": self.temperature,
            "timestamp": self.timestamp,
            "ttl": self.ttl,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, d):
        """Decode a stored record. Returns None when the payload is unusable."""
        if not isinstance(d, dict):
            return None
        status = parse_record_status(d.get("status"))
        if status is None:
            return None
        temp = d.get("temperature_celsius")
        try:
            temperature = float(temp) if temp is not None else None
            timestamp = int(d.get("timestamp") or 0)
            ttl = int(d.get("ttl") or 0)
        except (TypeError, ValueError):
            return None
        return cls(temperature=temperature, timestamp=timestamp, ttl=ttl, status=status)


@dataclass
class Coordinates:
    lat: float
    lon: float

    @property
    def is_valid(self):
        return -90 <= self.lat <= 90 and -180 <= self.lon <= 180

    def to_dict(self):
        return asdict(self)

    @classmethod
    def parse(cls, lat, lon):
        """Build coordinates from raw values, raising ValueError when out of range."""
        try:
            coords = cls(lat=float(lat), lon=float(lon))
        except (TypeError, ValueError):
            raise ValueError("Coordinates must be numeric.")
        if not -90 <= coords.lat <= 90:
            raise ValueError("Latitude must be between -90 and 90.")
        if not -180 <= coords.lon <= 180:
            raise ValueError("Longitude must be between -180 and 180.")
        return coords


@dataclass
class City:
    city_id: int
    city_name: str
    country_name: str = ""
    country_slug: str = ""
    extra: dict = field(default_factory=dict)

    def to_dict(self):
        d = dict(self.extra)
        d.update({
            "city_id": self.city_id,
            "city_name": self.city_name,
            "country_name": self.country_name,
            "country_slug": self.country_slug,
        })
        return d

    @classmethod
    def from_dict(cls, d):
        known = {"city_id", "city_name", "country_name", "country_slug", "lat", "lon"}
        try:
            city_id = int(d.get("city_id") or 0)
        except (TypeError, ValueError):
            city_id = 0
        return cls(
            city_id=city_id,
            city_name=str(d.get("city_name", "")),
            country_name=str(d.get("country_name", "")),
            country_slug=str(d.get("country_slug", "")),
            extra={k: v for k, v in d.items() if k not in known},
        )


@dataclass
class Evaluation:
    temperature: Optional[float]
    status: RecordStatus
    needs_refresh: bool
