"""Recurring sweep that queues every city for a weather update."""

import logging

from config import STAGGER_SECONDS, SWEEP_INTERVAL, SWEEP_JOB_ID
from update_queue import UpdateQueue

log = logging.getLogger(__name__)


class WeatherSweep:
    def __init__(self, directory, scheduler, updater,
                 interval=SWEEP_INTERVAL, stagger_seconds=STAGGER_SECONDS):
        self._directory = directory
        self._scheduler = scheduler
        self._updater = updater
        self.interval = interval
        self._stagger = stagger_seconds

    def tick(self):
        """Queue all cities and flush. Logs and returns 0 on directory errors."""
        try:
            city_ids = self._directory.list_all()
        except Exception:
            log.exception("Weather sweep: failed to list cities")
            return 0
        if not city_ids:
            log.info("Weather sweep: no cities found to update")
            return 0

        queue = UpdateQueue(self._scheduler, self._updater.run, self._stagger)
        count = sum(1 for cid in city_ids if queue.enqueue(cid))
        scheduled = queue.flush()
        log.info("Weather sweep: queued %d cities, scheduled %d updates", count, scheduled)
        return count

    # ── Admin operations ─────────────────────────────────────────────

    def start(self):
        """Schedule the recurring sweep unless it is already scheduled."""
        if self._scheduler.schedule_recurring(self.interval, SWEEP_JOB_ID, self.tick):
            log.info("Weather sweep scheduled every %d seconds", self.interval)
            return True
        return False

    def trigger_now(self):
        return self.tick()

    def stop(self):
        stopped = self._scheduler.unschedule(SWEEP_JOB_ID)
        if stopped:
            log.info("Weather sweep stopped")
        return stopped

    def reschedule(self):
        self.stop()
        return self.start()

    def is_scheduled(self):
        return self._scheduler.is_scheduled(SWEEP_JOB_ID)

    def status(self):
        next_run = self._scheduler.next_run_time(SWEEP_JOB_ID)
        try:
            cities_count = len(self._directory.list_all())
        except Exception:
            log.warning("Weather sweep status: city directory unavailable")
            cities_count = None
        return {
            "scheduled": self.is_scheduled(),
            "next_run": int(next_run.timestamp()) if next_run else None,
            "interval": self.interval,
            "cities_count": cities_count,
        }
