import json

import pytest

from cities import CityDirectory
from models import City


def test_cities_sorted_by_country_then_name(directory) -> None:
    assert [c.city_name for c in directory.cities()] == ["Paris", "Berlin", "Atlantis"]
    assert directory.list_all() == [2, 1, 3]


def test_search_matches_city_or_country(directory) -> None:
    assert [c.city_id for c in directory.search("ger")] == [1]
    assert [c.city_id for c in directory.search("PAR")] == [2]
    assert len(directory.search("a")) == 3


def test_string_ids_in_hand_edited_file(tmp_path) -> None:
    path = tmp_path / "cities.json"
    path.write_text(json.dumps({"cities": [
        {"city_id": "1", "city_name": "Berlin", "country_name": "Germany",
         "lat": "52.52", "lon": "13.405"},
    ]}))
    directory = CityDirectory(path)

    assert directory.list_all() == [1]
    assert directory.get_coordinates(1).lat == 52.52
    assert directory.set_coordinates(1, 50.0, 10.0).lon == 10.0

    directory.add(City(1, "Berlin", "Germany", "germany"), lat=52.5, lon=13.4)
    assert len(json.loads(path.read_text())["cities"]) == 1


def test_coordinates_missing_or_invalid(directory) -> None:
    assert directory.get_coordinates(3) is None
    assert directory.get_coordinates(99) is None
    with pytest.raises(ValueError):
        directory.set_coordinates(3, 95, 0)
    with pytest.raises(KeyError):
        directory.set_coordinates(99, 1, 1)
