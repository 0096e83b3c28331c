"""APScheduler adapter: single-shot and recurring jobs addressed by id."""

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.jobstores.base import ConflictingIdError, JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

log = logging.getLogger(__name__)

_MISFIRE_GRACE = 60  # seconds a late single-shot job may still run


class JobScheduler:
    def __init__(self, scheduler=None):
        self._scheduler = scheduler or BackgroundScheduler()

    @property
    def running(self):
        return self._scheduler.running

    def start(self, paused=False):
        if not self._scheduler.running:
            self._scheduler.start(paused=paused)

    def shutdown(self, wait=False):
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)

    def schedule_once(self, delay_seconds, job_id, func, args=()):
        """Run ``func(*args)`` once after ``delay_seconds``.

        Returns False without scheduling if ``job_id`` is already pending.
        """
        if self.is_scheduled(job_id):
            return False
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        try:
            self._scheduler.add_job(
                func, "date", run_date=run_date, id=job_id, args=list(args),
                misfire_grace_time=_MISFIRE_GRACE, replace_existing=False,
            )
        except ConflictingIdError:
            # Another trigger scheduled the same job between check and add
            return False
        return True

    def schedule_recurring(self, interval_seconds, job_id, func, args=()):
        """Run ``func(*args)`` every ``interval_seconds``, first run now."""
        if self.is_scheduled(job_id):
            return False
        self._scheduler.add_job(
            func, "interval", seconds=interval_seconds, id=job_id, args=list(args),
            next_run_time=datetime.now(timezone.utc),
            coalesce=True, max_instances=1, replace_existing=True,
        )
        return True

    def is_scheduled(self, job_id):
        return self._scheduler.get_job(job_id) is not None

    def unschedule(self, job_id):
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            return False
        return True

    def next_run_time(self, job_id):
        job = self._scheduler.get_job(job_id)
        if job is None:
            return None
        return getattr(job, "next_run_time", None)

    def wakeup(self):
        """Ask the scheduler to process due jobs now. Best effort."""
        if self._scheduler.running:
            self._scheduler.wakeup()
