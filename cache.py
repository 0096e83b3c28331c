"""Per-city weather cache records on top of the shared JSON store."""

import logging

from models import CacheRecord

log = logging.getLogger(__name__)

_KEY_PREFIX = "weather_cache_"


def _key(city_id):
    return f"{_KEY_PREFIX}{int(city_id)}"


class WeatherCache:
    def __init__(self, store):
        self._store = store

    def get(self, city_id):
        """Return the CacheRecord for a city, or None if absent or unreadable."""
        raw = self._store.get(_key(city_id))
        if raw is None:
            return None
        record = CacheRecord.from_dict(raw)
        if record is None:
            log.warning("Discarding malformed weather cache for city %s: %r", city_id, raw)
        return record

    def put(self, city_id, record):
        # Unconditional overwrite; concurrent runs for one city are last-writer-wins
        self._store.set(_key(city_id), record.to_dict())

    def clear(self, city_id=None):
        """Drop one city's record, or every record when no id is given."""
        if city_id is not None:
            return 1 if self._store.delete(_key(city_id)) else 0
        deleted = self._store.delete_prefix(_KEY_PREFIX)
        log.info("Weather cache flushed: %d entries deleted", deleted)
        return deleted
