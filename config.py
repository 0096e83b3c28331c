"""Constants and lookup tables for the city weather cache."""

import os


def _env_int(name, default):
    """Read an integer from the environment, falling back on bad values."""
    raw = (os.environ.get(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


# Weather API
WEATHER_API_KEY = os.environ.get("WEATHER_API_KEY") or None
WEATHER_API_BASE = os.environ.get("WEATHER_API_BASE") or "https://api.openweathermap.org"
FETCH_TIMEOUT = _env_int("WEATHER_FETCH_TIMEOUT", 30)      # seconds

# Cache record validity (seconds)
CACHE_TTL = _env_int("WEATHER_CACHE_TTL", 3600)

# Global upstream budget: BUDGET calls per WINDOW_SECONDS across all triggers
BUDGET = _env_int("WEATHER_BUDGET", 45)
WINDOW_SECONDS = _env_int("WEATHER_WINDOW_SECONDS", 60)
BUDGET_KEY = "weather_api_budget"

# Update queue / sweep
STAGGER_SECONDS = _env_int("WEATHER_STAGGER_SECONDS", 1)
SWEEP_INTERVAL = _env_int("WEATHER_SWEEP_INTERVAL", 300)   # 5 min
SWEEP_JOB_ID = "tw_update_all_cities_weather"
UPDATE_JOB_PREFIX = "weather-update-"

# Circuit breaker
ABORT_THRESHOLD = _env_int("WEATHER_ABORT_THRESHOLD", 3)
ABORT_TTL = _env_int("WEATHER_ABORT_TTL", 86400)            # 24 hr
ABORT_KEY_PREFIX = "weather_abort_"

# Start the scheduler and sweep on the first request the app serves
AUTOSTART_SCHEDULER = _env_int("WEATHER_AUTOSTART", 1) != 0

# Status-poll endpoint: requests per client per window
STATUS_POLL_LIMIT = 50
STATUS_POLL_WINDOW = 300

# Persistence
DATA_DIR = os.environ.get("WEATHER_DATA_DIR") or os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "data"
)

# Search terms shorter than this return every city
MIN_SEARCH_LENGTH = 2

# View status -> (label, icon)
STATUS_ICONS = {
    "valid":          ("Up to date",         "\u2705"),
    "expired":        ("Expired",            "\u23f0"),
    "expected":       ("Update in progress", "\U0001f504"),
    "unavailable":    ("Unavailable",        "\u274c"),
    "no_coordinates": ("No coordinates",     "\U0001f4cd"),
    "abort":          ("Updates stopped",    "\u26d4"),
}


def get_status_icon(status):
    """Return (label, icon) for a view status."""
    key = getattr(status, "value", status)
    return STATUS_ICONS.get(key, ("Unknown", "\u2753"))


def format_temperature(temperature):
    """Format a Celsius temperature for display, tolerating missing values."""
    if temperature is None:
        return "N/A"
    return f"{round(float(temperature))}°C"
