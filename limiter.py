"""Shared request budget and per-city failure counter.

Both live in the JSON store so every trigger (sweep, page views, admin,
status polls) draws from the same numbers. Each check is a single
``store.update()`` call, so the read/reset/compare/increment cycle runs
inside one critical section.
"""

import logging
import time

from config import (
    ABORT_KEY_PREFIX, ABORT_THRESHOLD, ABORT_TTL,
    BUDGET, BUDGET_KEY, WINDOW_SECONDS,
)

log = logging.getLogger(__name__)


class BudgetLimiter:
    """Fixed-window counter: at most ``budget`` permits per ``window_seconds``."""

    def __init__(self, store, budget=BUDGET, window_seconds=WINDOW_SECONDS, key=BUDGET_KEY):
        self._store = store
        self.budget = budget
        self.window_seconds = window_seconds
        self.key = key

    def _current(self, window, now):
        if (not isinstance(window, dict)
                or now - window.get("start", 0) >= self.window_seconds):
            return {"start": now, "count": 0}
        return {"start": window["start"], "count": int(window.get("count", 0))}

    def try_consume(self, now=None):
        """Take one permit. Returns False when the window is exhausted."""
        now = int(time.time()) if now is None else now

        def _consume(window):
            window = self._current(window, now)
            if window["count"] >= self.budget:
                return window, False
            window["count"] += 1
            return window, True

        allowed = self._store.update(self.key, _consume, ttl=self.window_seconds,
                                     now=now, touch=True)
        if not allowed:
            log.debug("Budget %s exhausted (%d per %ds)", self.key, self.budget, self.window_seconds)
        return allowed

    def snapshot(self, now=None):
        """Current window as {start, count, remaining, reset_in}."""
        now = int(time.time()) if now is None else now
        window = self._current(self._store.get(self.key, now=now), now)
        return {
            "start": window["start"],
            "count": window["count"],
            "remaining": max(0, self.budget - window["count"]),
            "reset_in": max(0, window["start"] + self.window_seconds - now),
        }

    def remaining(self, now=None):
        return self.snapshot(now)["remaining"]

    def reset_time(self, now=None):
        """Seconds until the current window rolls over."""
        return self.snapshot(now)["reset_in"]

    def reset(self):
        return self._store.delete(self.key)


class AbortCounter:
    """Counts failed updates per city; at ``threshold`` the city is aborted.

    Entries expire ``ttl`` seconds after the latest failure.
    """

    def __init__(self, store, threshold=ABORT_THRESHOLD, ttl=ABORT_TTL):
        self._store = store
        self.threshold = threshold
        self.ttl = ttl

    @staticmethod
    def _key(city_id):
        return f"{ABORT_KEY_PREFIX}{int(city_id)}"

    def increment(self, city_id, now=None):
        def _bump(value):
            count = int(value or 0) + 1
            return count, count

        count = self._store.update(self._key(city_id), _bump, ttl=self.ttl, now=now, touch=True)
        if count == self.threshold:
            log.warning("City %s reached %d failed updates; automatic updates stopped",
                        city_id, count)
        return count

    def count(self, city_id, now=None):
        return int(self._store.get(self._key(city_id), 0, now=now) or 0)

    def is_aborted(self, city_id, now=None):
        return self.count(city_id, now) >= self.threshold

    def reset(self, city_id):
        return self._store.delete(self._key(city_id))

    def reset_all(self):
        return self._store.delete_prefix(ABORT_KEY_PREFIX)
