"""Cities enriched with cached temperatures.

Reading a batch queues background updates for every stale city and flushes
once per batch, so duplicates across the page collapse into one job and the
stagger spans the whole page.
"""

import logging
import time

from config import STAGGER_SECONDS
from evaluator import evaluate
from models import CacheStatus, City, RecordStatus
from update_queue import UpdateQueue

log = logging.getLogger(__name__)


def view_status(status):
    """Map a record/evaluation status onto the status shown to users."""
    if status is RecordStatus.VALID:
        return CacheStatus.VALID
    if status is RecordStatus.EXPIRED:
        return CacheStatus.EXPIRED
    if status is RecordStatus.NO_COORDINATES:
        return CacheStatus.NO_COORDINATES
    if status in (RecordStatus.API_ERROR, RecordStatus.NO_TEMPERATURE, RecordStatus.UNAVAILABLE):
        return CacheStatus.UNAVAILABLE
    raise ValueError(f"Unhandled record status: {status!r}")


class CitiesWithTemperature:
    def __init__(self, directory, cache, scheduler, updater, aborts,
                 stagger_seconds=STAGGER_SECONDS):
        self._directory = directory
        self._cache = cache
        self._scheduler = scheduler
        self._updater = updater
        self._aborts = aborts
        self._stagger = stagger_seconds

    def with_temperature(self, cities, now=None):
        """Return each city's fields plus ``temperature`` and ``cache_status``."""
        now = int(time.time()) if now is None else now
        queue = UpdateQueue(self._scheduler, self._updater.run, self._stagger)
        enriched = []
        for city in cities:
            if isinstance(city, dict):
                city = City.from_dict(city)
            row = city.to_dict()
            temperature, status = self._status_for(city.city_id, queue, now)
            row["temperature"] = temperature
            row["cache_status"] = status.value
            enriched.append(row)
        queue.flush()
        return enriched

    def _status_for(self, city_id, queue, now):
        if city_id <= 0:
            return None, CacheStatus.UNAVAILABLE
        record = self._cache.get(city_id)
        if self._aborts.is_aborted(city_id, now=now):
            return (record.temperature if record else None), CacheStatus.ABORT
        ev = evaluate(record, now)
        if not ev.needs_refresh:
            return ev.temperature, CacheStatus.VALID
        queue.enqueue(city_id)
        return ev.temperature, CacheStatus.EXPECTED

    def all_with_temperature(self, now=None):
        return self.with_temperature(self._directory.cities(), now=now)

    def search_with_temperature(self, term, now=None):
        return self.with_temperature(self._directory.search(term), now=now)

    def by_id(self, city_id, now=None):
        city = self._directory.get(city_id)
        if city is None:
            return None
        return self.with_temperature([city], now=now)[0]

    def check_status(self, city_ids, now=None):
        """Read-only status poll: {city_id: {status, temperature}}.

        Cities without a stored record are left out. Nothing is queued.
        """
        now = int(time.time()) if now is None else now
        result = {}
        for city_id in city_ids:
            if city_id <= 0 or city_id in result:
                continue
            record = self._cache.get(city_id)
            if record is None:
                continue
            if self._aborts.is_aborted(city_id, now=now):
                status = CacheStatus.ABORT
            else:
                status = view_status(evaluate(record, now).status)
            result[city_id] = {"status": status.value, "temperature": record.temperature}
        return result
