import pytest

from models import CacheRecord, City, Coordinates, RecordStatus


def test_record_serializes_with_celsius_key() -> None:
    record = CacheRecord(temperature=21.5, timestamp=100, ttl=3600, status=RecordStatus.VALID)
    assert record.to_dict() == {
        "temperature_celsius": 21.5,
        "timestamp": 100,
        "ttl": 3600,
        "status": "valid",
    }
    assert record.expires_at == 3700


def test_legacy_success_status_reads_as_valid() -> None:
    record = CacheRecord.from_dict(
        {"temperature_celsius": "7", "timestamp": 5, "ttl": 60, "status": "success"}
    )
    assert record.status is RecordStatus.VALID
    assert record.temperature == 7.0


@pytest.mark.parametrize("raw", [
    None,
    "not a dict",
    {"temperature_celsius": 1.0, "timestamp": 1, "ttl": 1, "status": "bogus"},
    {"temperature_celsius": "warm", "timestamp": 1, "ttl": 1, "status": "valid"},
    {"temperature_celsius": 1.0, "timestamp": 1, "ttl": 1},
])
def test_malformed_records_decode_to_none(raw) -> None:
    assert CacheRecord.from_dict(raw) is None


def test_coordinates_parse_validates_ranges() -> None:
    assert Coordinates.parse("52.5", "13.4") == Coordinates(52.5, 13.4)
    with pytest.raises(ValueError, match="Latitude"):
        Coordinates.parse(91, 0)
    with pytest.raises(ValueError, match="Longitude"):
        Coordinates.parse(0, -181)
    with pytest.raises(ValueError):
        Coordinates.parse("north", 0)


def test_city_keeps_extra_fields() -> None:
    city = City.from_dict({"city_id": "4", "city_name": "Oslo", "population": 700000, "lat": 59.9})
    assert city.city_id == 4
    d = city.to_dict()
    assert d["population"] == 700000
    assert "lat" not in d
