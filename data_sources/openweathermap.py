"""OpenWeatherMap client for current temperature by coordinates."""

import logging

import requests

from config import FETCH_TIMEOUT, WEATHER_API_BASE, WEATHER_API_KEY

log = logging.getLogger(__name__)

# FetchError kinds
UNAUTHORIZED = "unauthorized"
RATE_LIMITED = "rate_limited"
SERVER_ERROR = "server_error"
TRANSPORT = "transport"
PARSE = "parse"


class FetchError(Exception):
    """Upstream failure. ``kind`` is one of the module-level kind constants."""

    def __init__(self, kind, message=""):
        super().__init__(message or kind)
        self.kind = kind


def fetch_current(lat, lon, api_key=None, api_base=None, timeout=FETCH_TIMEOUT):
    """Fetch current conditions in metric units. Returns the decoded JSON body."""
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise ValueError(f"Invalid coordinates: {lat}, {lon}")
    api_key = api_key or WEATHER_API_KEY
    if not api_key:
        raise FetchError(UNAUTHORIZED, "Weather API key not configured")

    base = (api_base or WEATHER_API_BASE).rstrip("/")
    url = f"{base}/data/2.5/weather"
    params = {"lat": lat, "lon": lon, "appid": api_key, "units": "metric"}
    try:
        resp = requests.get(url, params=params, timeout=timeout)
    except requests.RequestException as exc:
        raise FetchError(TRANSPORT, str(exc)) from exc

    code = resp.status_code
    if code == 401:
        raise FetchError(UNAUTHORIZED, "Invalid API key provided")
    if code == 429:
        raise FetchError(RATE_LIMITED, "API rate limit exceeded by OpenWeatherMap")
    if code != 200:
        raise FetchError(SERVER_ERROR, f"Weather API returned error code: {code}")

    try:
        return resp.json()
    except ValueError as exc:
        raise FetchError(PARSE, "Failed to parse API response") from exc


def parse_temperature(raw):
    """Pull ``main.temp`` out of a response, or None if missing/non-numeric."""
    main = raw.get("main") if isinstance(raw, dict) else None
    if not isinstance(main, dict):
        return None
    temp = main.get("temp")
    if isinstance(temp, bool) or not isinstance(temp, (int, float)):
        return None
    return float(temp)


def fetch_temperature(lat, lon, **kwargs):
    """Current temperature in Celsius, or None when the response carries none."""
    raw = fetch_current(lat, lon, **kwargs)
    temp = parse_temperature(raw)
    if temp is None:
        log.warning("No temperature in weather response for %s, %s", lat, lon)
    return temp
