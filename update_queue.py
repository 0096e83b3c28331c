"""Per-operation batch of cities waiting for a background weather update.

Create one UpdateQueue per page render, AJAX request or sweep tick, enqueue
ids, then flush once. Never share an instance between requests.
"""

import logging

from config import STAGGER_SECONDS, UPDATE_JOB_PREFIX

log = logging.getLogger(__name__)


def update_job_id(city_id):
    return f"{UPDATE_JOB_PREFIX}{city_id}"


class UpdateQueue:
    def __init__(self, scheduler, job, stagger_seconds=STAGGER_SECONDS):
        """``job`` is the callable run per city, normally WeatherUpdater.run."""
        self._scheduler = scheduler
        self._job = job
        self._stagger = stagger_seconds
        self._ids = {}  # dict keeps insertion order

    def __len__(self):
        return len(self._ids)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.flush()
        else:
            self._ids.clear()
        return False

    def pending(self):
        return list(self._ids)

    def enqueue(self, city_id):
        """Add a city to the batch. Returns False for duplicates and invalid ids."""
        if isinstance(city_id, bool) or not isinstance(city_id, int) or city_id <= 0:
            return False
        if city_id in self._ids:
            return False
        self._ids[city_id] = None
        return True

    def flush(self):
        """Schedule one staggered update job per queued city, then clear.

        Cities with an update already pending are skipped. Returns the number
        of jobs scheduled.
        """
        if not self._ids:
            return 0
        scheduled = 0
        offset = 0
        for city_id in self._ids:
            job_id = update_job_id(city_id)
            if self._scheduler.is_scheduled(job_id):
                continue
            offset += self._stagger
            try:
                if self._scheduler.schedule_once(offset, job_id, self._job, args=(city_id,)):
                    scheduled += 1
            except Exception:
                # Not retried here; the next read or sweep re-enqueues it
                log.exception("Failed to schedule weather update for city %s", city_id)
        queued = len(self._ids)
        self._ids.clear()
        if scheduled:
            self._scheduler.wakeup()
        log.debug("Flushed update queue: %d queued, %d scheduled", queued, scheduled)
        return scheduled
