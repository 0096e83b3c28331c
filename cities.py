"""City directory: published cities, their countries and coordinates.

Backed by a JSON file shaped ``{"cities": [{city_id, city_name, country_name,
country_slug, lat, lon}, ...]}``.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from config import MIN_SEARCH_LENGTH
from models import City, Coordinates

log = logging.getLogger(__name__)


def _row_id(row):
    """City id of a raw row, coerced the same way as City.from_dict."""
    try:
        return int(row.get("city_id") or 0)
    except (TypeError, ValueError):
        return 0


class CityDirectory:
    def __init__(self, path):
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load(self):
        if not self._path.exists():
            return {"cities": []}
        with open(self._path) as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected city directory format in {self._path}")
        data.setdefault("cities", [])
        return data

    def _save(self, data):
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=self._path.name + ".",
                                   suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self._path)
        except BaseException:
            os.unlink(tmp)
            raise

    def _rows(self):
        with self._lock:
            return self._load()["cities"]

    # ── Queries ──────────────────────────────────────────────────────

    def cities(self):
        """All cities ordered by country, then city name."""
        cities = [City.from_dict(r) for r in self._rows()]
        cities = [c for c in cities if c.city_id > 0]
        cities.sort(key=lambda c: (c.country_name.lower(), c.city_name.lower()))
        return cities

    def list_all(self):
        return [c.city_id for c in self.cities()]

    def search(self, term):
        """Case-insensitive match on city or country name.

        Terms shorter than MIN_SEARCH_LENGTH return every city.
        """
        term = (term or "").strip().lower()
        cities = self.cities()
        if len(term) < MIN_SEARCH_LENGTH:
            return cities
        return [c for c in cities
                if term in c.city_name.lower() or term in c.country_name.lower()]

    def get(self, city_id):
        if city_id <= 0:
            return None
        return next((c for c in self.cities() if c.city_id == city_id), None)

    def get_coordinates(self, city_id):
        """Return stored Coordinates, or None when missing or non-numeric."""
        row = next((r for r in self._rows() if _row_id(r) == city_id), None)
        if row is None:
            return None
        lat, lon = row.get("lat"), row.get("lon")
        if lat in (None, "") or lon in (None, ""):
            return None
        try:
            return Coordinates(lat=float(lat), lon=float(lon))
        except (TypeError, ValueError):
            log.warning("City %s has non-numeric coordinates %r, %r", city_id, lat, lon)
            return None

    # ── Mutations ────────────────────────────────────────────────────

    def add(self, city, lat=None, lon=None):
        """Insert or replace a city row."""
        row = city.to_dict()
        if lat is not None and lon is not None:
            coords = Coordinates.parse(lat, lon)
            row.update(coords.to_dict())
        with self._lock:
            data = self._load()
            data["cities"] = [r for r in data["cities"] if _row_id(r) != city.city_id]
            data["cities"].append(row)
            self._save(data)

    def set_coordinates(self, city_id, lat, lon):
        """Validate and store coordinates. Raises ValueError or KeyError."""
        coords = Coordinates.parse(lat, lon)
        with self._lock:
            data = self._load()
            row = next((r for r in data["cities"] if _row_id(r) == city_id), None)
            if row is None:
                raise KeyError(city_id)
            row.update(coords.to_dict())
            self._save(data)
        log.info("Coordinates updated for city %s: %s, %s", city_id, coords.lat, coords.lon)
        return coords
