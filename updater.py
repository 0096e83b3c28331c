"""Weather update job: refresh one city's cache record.

Runs from the scheduler, once per queued city. Each run re-checks
everything (abort state, freshness, coordinates, budget) against the
current store, so duplicate or late runs settle into no-ops.
"""

import logging
import time

from config import CACHE_TTL
from data_sources.openweathermap import PARSE, FetchError, fetch_temperature
from evaluator import evaluate
from models import CacheRecord, RecordStatus

log = logging.getLogger(__name__)


class WeatherUpdater:
    def __init__(self, cache, directory, budget, aborts,
                 fetch=fetch_temperature, ttl=CACHE_TTL):
        self._cache = cache
        self._directory = directory
        self._budget = budget
        self._aborts = aborts
        self._fetch = fetch
        self._ttl = ttl

    def run(self, city_id, now=None):
        """Scheduler entry point. Never raises; failures are logged."""
        try:
            return self.update_city(city_id, now=now)
        except Exception:
            log.exception("Weather update failed for city %s", city_id)
            return None

    def update_city(self, city_id, now=None):
        """Refresh one city. Returns the status written, or None if skipped."""
        if city_id <= 0:
            return None
        now = int(time.time()) if now is None else now

        if self._aborts.is_aborted(city_id, now=now):
            log.debug("City %s is aborted; skipping update", city_id)
            return None

        if not evaluate(self._cache.get(city_id), now).needs_refresh:
            log.debug("City %s already fresh", city_id)
            return None

        # Coordinates first: a city that can never succeed must not cost budget
        coords = self._directory.get_coordinates(city_id)
        if coords is None or not coords.is_valid:
            return self._store(city_id, None, RecordStatus.NO_COORDINATES, now)

        if not self._budget.try_consume(now=now):
            log.info("Weather API budget exhausted; city %s deferred", city_id)
            return None

        try:
            temperature = self._fetch(coords.lat, coords.lon)
        except FetchError as exc:
            log.warning("Weather fetch failed for city %s (%s): %s", city_id, exc.kind, exc)
            status = RecordStatus.NO_TEMPERATURE if exc.kind == PARSE else RecordStatus.API_ERROR
            return self._store(city_id, None, status, now)

        if temperature is None:
            return self._store(city_id, None, RecordStatus.NO_TEMPERATURE, now)
        return self._store(city_id, temperature, RecordStatus.VALID, now)

    def update_cities(self, city_ids, now=None):
        """Run updates synchronously: {city_id: status or None}."""
        return {cid: self.run(cid, now=now) for cid in city_ids}

    def _store(self, city_id, temperature, status, now):
        record = CacheRecord(temperature=temperature, timestamp=now, ttl=self._ttl, status=status)
        self._cache.put(city_id, record)
        if status is RecordStatus.VALID:
            self._aborts.reset(city_id)
            log.info("Weather updated for city %s: %.1f°C", city_id, temperature)
        else:
            self._aborts.increment(city_id, now=now)
            log.info("Weather update for city %s ended with %s", city_id, status.value)
        return status
