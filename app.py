"""City weather cache: Flask backend with APScheduler."""

import logging
import os
import threading

import click
from flask import Blueprint, Flask, current_app, jsonify, request
from flask.cli import AppGroup

from cache import WeatherCache
from cities import CityDirectory
from cities_with_temp import CitiesWithTemperature
from config import (
    AUTOSTART_SCHEDULER, DATA_DIR, STATUS_POLL_LIMIT, STATUS_POLL_WINDOW,
    format_temperature, get_status_icon,
)
from data_sources.openweathermap import fetch_temperature
from limiter import AbortCounter, BudgetLimiter
from models import City
from scheduler import JobScheduler
from store import JsonStore
from sweep import WeatherSweep
from updater import WeatherUpdater

logging.basicConfig(
    level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logging.getLogger("apscheduler").setLevel(logging.WARNING)
log = logging.getLogger(__name__)


# ── Services ──────────────────────────────────────────────────────────

class WeatherServices:
    """Everything the routes and jobs need, wired against one data directory."""

    def __init__(self, data_dir=DATA_DIR, scheduler=None, fetch=fetch_temperature):
        self.store = JsonStore(os.path.join(data_dir, "weather_store.json"))
        self.directory = CityDirectory(os.path.join(data_dir, "cities.json"))
        self.cache = WeatherCache(self.store)
        self.budget = BudgetLimiter(self.store)
        self.aborts = AbortCounter(self.store)
        self.scheduler = scheduler or JobScheduler()
        self.updater = WeatherUpdater(self.cache, self.directory, self.budget, self.aborts, fetch=fetch)
        self.sweep = WeatherSweep(self.directory, self.scheduler, self.updater)
        self.cities = CitiesWithTemperature(
            self.directory, self.cache, self.scheduler, self.updater, self.aborts,
        )
        self._start_lock = threading.Lock()

    def start(self):
        """Start the job scheduler and the sweep, once per process."""
        with self._start_lock:
            if self.scheduler.running:
                return False
            self.scheduler.start()
            self.sweep.start()
        log.info("Weather scheduler started (sweep every %ss)", self.sweep.interval)
        return True

    def status_poll_limiter(self, client):
        return BudgetLimiter(self.store, STATUS_POLL_LIMIT, STATUS_POLL_WINDOW,
                             key=f"status_poll_{client}")


def _services():
    return current_app.extensions["weather"]


def _parse_city_ids(raw):
    """Keep positive integer ids, in order, without duplicates."""
    if not isinstance(raw, list):
        return []
    ids = []
    for value in raw:
        try:
            city_id = int(value)
        except (TypeError, ValueError):
            continue
        if city_id > 0 and city_id not in ids:
            ids.append(city_id)
    return ids


# ── Routes ────────────────────────────────────────────────────────────

bp = Blueprint("weather", __name__)


@bp.route("/api/cities")
def api_cities():
    """All cities with cached temperatures; queues updates for stale ones."""
    return jsonify(_services().cities.all_with_temperature())


@bp.route("/api/cities/search")
def api_search():
    q = request.args.get("q", "").strip()
    return jsonify(_services().cities.search_with_temperature(q))


@bp.route("/api/cities/<int:city_id>")
def api_city(city_id):
    city = _services().cities.by_id(city_id)
    if city is None:
        return jsonify({"error": "City not found"}), 404
    city["temperature_display"] = format_temperature(city["temperature"])
    city["status_label"], city["status_icon"] = get_status_icon(city["cache_status"])
    return jsonify(city)


@bp.route("/api/cities/status", methods=["POST"])
def api_cities_status():
    """Status poll for cities the page shows as updating. Read-only."""
    services = _services()
    limiter = services.status_poll_limiter(request.remote_addr or "unknown")
    if not limiter.try_consume():
        return jsonify({
            "error": "Rate limit exceeded. Please try again later.",
            "reset_time": limiter.reset_time(),
            "remaining_requests": 0,
        }), 429

    data = request.get_json(silent=True) or {}
    city_ids = [cid for cid in _parse_city_ids(data.get("city_ids"))
                if services.directory.get(cid) is not None]
    if not city_ids:
        return jsonify({"error": "No valid city IDs provided."}), 400

    statuses = services.cities.check_status(city_ids)
    return jsonify({
        "city_ids": city_ids,
        "city_status_list": {str(k): v for k, v in statuses.items()},
    })


@bp.route("/api/cities/<int:city_id>/coordinates", methods=["POST"])
def api_save_coordinates(city_id):
    data = request.get_json(silent=True)
    if not data or "lat" not in data or "lon" not in data:
        return jsonify({"error": "lat and lon required"}), 400
    try:
        coords = _services().directory.set_coordinates(city_id, data["lat"], data["lon"])
    except KeyError:
        return jsonify({"error": "City not found"}), 404
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"ok": True, "lat": coords.lat, "lon": coords.lon})


@bp.route("/api/admin/weather-cron")
def api_cron_status():
    services = _services()
    status = services.sweep.status()
    status["budget"] = services.budget.snapshot()
    return jsonify(status)


@bp.route("/api/admin/weather-cron/trigger", methods=["POST"])
def api_cron_trigger():
    queued = _services().sweep.trigger_now()
    return jsonify({"ok": True, "queued": queued})


@bp.route("/api/admin/weather-cron/stop", methods=["POST"])
def api_cron_stop():
    return jsonify({"ok": True, "stopped": _services().sweep.stop()})


@bp.route("/api/admin/weather-cron/reschedule", methods=["POST"])
def api_cron_reschedule():
    _services().sweep.reschedule()
    return jsonify({"ok": True, "scheduled": _services().sweep.is_scheduled()})


@bp.route("/api/admin/aborts/<int:city_id>/reset", methods=["POST"])
def api_reset_abort(city_id):
    return jsonify({"ok": True, "reset": _services().aborts.reset(city_id)})


@bp.route("/api/admin/aborts/reset", methods=["POST"])
def api_reset_all_aborts():
    return jsonify({"ok": True, "reset": _services().aborts.reset_all()})


@bp.route("/api/admin/cache/flush", methods=["POST"])
def api_flush_cache():
    return jsonify({"ok": True, "deleted": _services().cache.clear()})


# ── CLI ───────────────────────────────────────────────────────────────

weather_cli = AppGroup("weather-cron", help="Inspect and run weather updates.")


@weather_cli.command("status")
def cli_status():
    services = current_app.extensions["weather"]
    city_ids = services.directory.list_all()
    budget = services.budget.snapshot()
    click.echo("Weather Cron Status:")
    click.echo(f"  Interval: every {services.sweep.interval} seconds")
    click.echo(f"  Cities Count: {len(city_ids)}")
    click.echo(f"  Budget: {budget['count']} used, {budget['remaining']} remaining "
               f"(resets in {budget['reset_in']}s)")
    for cid, status in services.cities.check_status(city_ids).items():
        icon = get_status_icon(status["status"])[1]
        click.echo(f"  {icon} City {cid}: {status['status']} {format_temperature(status['temperature'])}")


@weather_cli.command("test")
def cli_test():
    """Update every city now, in this process."""
    services = current_app.extensions["weather"]
    click.echo("Testing weather update for all cities...")
    results = services.updater.update_cities(services.directory.list_all())
    for cid, status in results.items():
        click.echo(f"  City {cid}: {status.value if status else 'skipped'}")
    click.echo(f"Done: {len(results)} cities processed.")


@weather_cli.command("update")
@click.argument("city_ids", nargs=-1, type=int, required=True)
def cli_update(city_ids):
    services = current_app.extensions["weather"]
    for cid, status in services.updater.update_cities(city_ids).items():
        click.echo(f"City {cid}: {status.value if status else 'skipped'}")


@weather_cli.command("reset-abort")
@click.argument("city_id", type=int, required=False)
@click.option("--all", "reset_all", is_flag=True, help="Clear every city's abort counter.")
def cli_reset_abort(city_id, reset_all):
    services = current_app.extensions["weather"]
    if reset_all:
        click.echo(f"Abort counters cleared: {services.aborts.reset_all()}")
        return
    if city_id is None:
        raise click.UsageError("Give a CITY_ID or --all.")
    if services.aborts.reset(city_id):
        click.echo(f"Abort counter cleared for city {city_id}.")
    else:
        click.echo(f"City {city_id} had no abort counter.")


@weather_cli.command("flush-cache")
def cli_flush_cache():
    deleted = current_app.extensions["weather"].cache.clear()
    click.echo(f"Weather cache flushed: {deleted} entries deleted.")


@weather_cli.command("add-city")
@click.argument("city_id", type=int)
@click.argument("city_name")
@click.option("--country", default="")
@click.option("--lat", type=float)
@click.option("--lon", type=float)
def cli_add_city(city_id, city_name, country, lat, lon):
    directory = current_app.extensions["weather"].directory
    city = City(city_id=city_id, city_name=city_name, country_name=country,
                country_slug=country.lower().replace(" ", "-"))
    directory.add(city, lat=lat, lon=lon)
    click.echo(f"Saved city {city_id} ({city_name}).")


# ── App factory ───────────────────────────────────────────────────────

def create_app(services=None, autostart=AUTOSTART_SCHEDULER):
    """Build the Flask app.

    With ``autostart`` the scheduler and sweep start on the first request,
    so `flask run` and WSGI servers process queued updates too.
    CLI commands never start them.
    """
    services = services or WeatherServices()
    app = Flask(__name__)
    app.extensions["weather"] = services
    app.register_blueprint(bp)
    app.cli.add_command(weather_cli)

    if autostart:
        @app.before_request
        def _start_scheduler():
            if not services.scheduler.running:
                services.start()

    return app


app = create_app()


if __name__ == "__main__":
    app.extensions["weather"].start()

    log.info("Starting city weather service on port 5051")
    app.run(host="0.0.0.0", port=5051, debug=False)
