"""Shared test fixtures and dummy classes."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from cache import WeatherCache
from cities import CityDirectory
from limiter import AbortCounter, BudgetLimiter
from models import City
from store import JsonStore
from updater import WeatherUpdater


class DummyScheduler:
    """In-memory stand-in for JobScheduler. Jobs only run via run_pending()."""

    def __init__(self) -> None:
        self.jobs: dict[str, tuple[float, Callable, tuple]] = {}
        self.recurring: set[str] = set()
        self.wakeups = 0
        self.fail_ids: set[str] = set()
        self.running = False
        self.starts = 0

    def start(self, paused=False) -> None:
        self.running = True
        self.starts += 1

    def schedule_once(self, delay_seconds, job_id, func, args=()) -> bool:
        if job_id in self.fail_ids:
            raise RuntimeError("scheduler unavailable")
        if job_id in self.jobs:
            return False
        self.jobs[job_id] = (delay_seconds, func, tuple(args))
        return True

    def schedule_recurring(self, interval_seconds, job_id, func, args=()) -> bool:
        if job_id in self.jobs:
            return False
        self.jobs[job_id] = (interval_seconds, func, tuple(args))
        self.recurring.add(job_id)
        return True

    def is_scheduled(self, job_id) -> bool:
        return job_id in self.jobs

    def unschedule(self, job_id) -> bool:
        self.recurring.discard(job_id)
        return self.jobs.pop(job_id, None) is not None

    def next_run_time(self, job_id):
        if job_id not in self.jobs:
            return None
        return datetime.now(timezone.utc) + timedelta(seconds=self.jobs[job_id][0])

    def wakeup(self) -> None:
        self.wakeups += 1

    def delays(self) -> dict[str, float]:
        return {jid: job[0] for jid, job in self.jobs.items() if jid not in self.recurring}

    def run_pending(self) -> list[Any]:
        """Run single-shot jobs in delay order and drop them, like a date trigger."""
        once = sorted(
            ((jid, job) for jid, job in self.jobs.items() if jid not in self.recurring),
            key=lambda item: item[1][0],
        )
        results = []
        for jid, (_, func, args) in once:
            del self.jobs[jid]
            results.append(func(*args))
        return results


class DummyFetch:
    """Callable replacing fetch_temperature; records coordinates it was asked for."""

    def __init__(self, result: Any = 21.5) -> None:
        self.result = result
        self.calls: list[tuple[float, float]] = []

    def __call__(self, lat: float, lon: float):
        self.calls.append((lat, lon))
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


class DummyResponse:
    """Dummy HTTP response for testing."""

    def __init__(self, data: object, status: int = 200, bad_json: bool = False) -> None:
        self._data = data
        self._bad_json = bad_json
        self.status_code = status

    def json(self) -> object:
        if self._bad_json:
            raise ValueError("No JSON object could be decoded")
        return self._data


@pytest.fixture
def now() -> int:
    return int(time.time())


@pytest.fixture
def store(tmp_path) -> JsonStore:
    return JsonStore(tmp_path / "weather_store.json")


@pytest.fixture
def directory(tmp_path) -> CityDirectory:
    d = CityDirectory(tmp_path / "cities.json")
    d.add(City(1, "Berlin", "Germany", "germany"), lat=52.52, lon=13.405)
    d.add(City(2, "Paris", "France", "france"), lat=48.8566, lon=2.3522)
    d.add(City(3, "Atlantis", "Nowhere", "nowhere"))
    return d


@pytest.fixture
def cache(store) -> WeatherCache:
    return WeatherCache(store)


@pytest.fixture
def budget(store) -> BudgetLimiter:
    return BudgetLimiter(store, budget=45, window_seconds=60)


@pytest.fixture
def aborts(store) -> AbortCounter:
    return AbortCounter(store, threshold=3, ttl=86400)


@pytest.fixture
def fetch() -> DummyFetch:
    return DummyFetch()


@pytest.fixture
def scheduler() -> DummyScheduler:
    return DummyScheduler()


@pytest.fixture
def updater(cache, directory, budget, aborts, fetch) -> WeatherUpdater:
    return WeatherUpdater(cache, directory, budget, aborts, fetch=fetch, ttl=3600)
