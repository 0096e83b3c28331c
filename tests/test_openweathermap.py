import pytest
import requests

from data_sources import openweathermap
from data_sources.openweathermap import FetchError, fetch_current, fetch_temperature, parse_temperature
from conftest import DummyResponse


@pytest.fixture
def calls(monkeypatch):
    """Patch requests.get; set calls["response"] to control the reply."""
    state = {"requests": [], "response": DummyResponse({"main": {"temp": 12.3}})}

    def fake_get(url, params=None, timeout=None):
        state["requests"].append((url, params, timeout))
        if isinstance(state["response"], BaseException):
            raise state["response"]
        return state["response"]

    monkeypatch.setattr(openweathermap.requests, "get", fake_get)
    return state


def test_fetch_temperature_builds_metric_request(calls) -> None:
    temp = fetch_temperature(52.5, 13.4, api_key="k" * 32, api_base="https://example.test/")
    assert temp == 12.3
    url, params, timeout = calls["requests"][0]
    assert url == "https://example.test/data/2.5/weather"
    assert params == {"lat": 52.5, "lon": 13.4, "appid": "k" * 32, "units": "metric"}
    assert timeout == 30


@pytest.mark.parametrize("status, kind", [
    (401, "unauthorized"),
    (429, "rate_limited"),
    (500, "server_error"),
    (404, "server_error"),
])
def test_status_codes_map_to_kinds(calls, status, kind) -> None:
    calls["response"] = DummyResponse({}, status=status)
    with pytest.raises(FetchError) as exc_info:
        fetch_current(1.0, 2.0, api_key="key")
    assert exc_info.value.kind == kind


def test_transport_errors(calls) -> None:
    calls["response"] = requests.ConnectionError("refused")
    with pytest.raises(FetchError) as exc_info:
        fetch_current(1.0, 2.0, api_key="key")
    assert exc_info.value.kind == "transport"


def test_bad_json_is_a_parse_error(calls) -> None:
    calls["response"] = DummyResponse(None, bad_json=True)
    with pytest.raises(FetchError) as exc_info:
        fetch_current(1.0, 2.0, api_key="key")
    assert exc_info.value.kind == "parse"


def test_missing_api_key(calls, monkeypatch) -> None:
    monkeypatch.setattr(openweathermap, "WEATHER_API_KEY", None)
    with pytest.raises(FetchError) as exc_info:
        fetch_current(1.0, 2.0)
    assert exc_info.value.kind == "unauthorized"
    assert calls["requests"] == []


def test_invalid_coordinates_never_hit_network(calls) -> None:
    with pytest.raises(ValueError):
        fetch_current(95.0, 0.0, api_key="key")
    assert calls["requests"] == []


def test_missing_temperature_returns_none(calls) -> None:
    calls["response"] = DummyResponse({"main": {"humidity": 80}})
    assert fetch_temperature(1.0, 2.0, api_key="key") is None


@pytest.mark.parametrize("raw, expected", [
    ({"main": {"temp": 0}}, 0.0),
    ({"main": {"temp": -4.25}}, -4.25),
    ({"main": {"temp": "hot"}}, None),
    ({"main": {"temp": None}}, None),
    ({"main": []}, None),
    ([], None),
])
def test_parse_temperature(raw, expected) -> None:
    assert parse_temperature(raw) == expected
