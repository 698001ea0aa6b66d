"""
Shared test fixtures.

Writes a small countries / states / cities gazetteer to a temp directory in
the same CSV layout as the countries-states-cities-database export.
"""

from __future__ import annotations

import csv
from pathlib import Path

import pytest

from location_finder.aliases import PlaceAliasTable
from location_finder.dataset import load_dataset
from location_finder.index import LocationIndex
from location_finder.matcher import LocationFinder, LocationMatcher, MatchRules

COUNTRY_FIELDS = ["id", "name", "iso3", "iso2", "numeric_code", "capital", "latitude", "longitude", "emojiU"]
STATE_FIELDS = ["id", "name", "country_id", "country_code", "country_name", "state_code", "type",
                "latitude", "longitude"]
CITY_FIELDS = ["id", "name", "state_id", "state_code", "state_name", "country_id", "country_code",
               "country_name", "latitude", "longitude", "wikiDataId"]

COUNTRIES = [
    (1, "France", "FRA", "FR", "250", "Paris", "46.0", "2.0", "U+1F1EB U+1F1F7"),
    (2, "Italy", "ITA", "IT", "380", "Rome", "42.8", "12.8", "U+1F1EE U+1F1F9"),
    (3, "United States", "USA", "US", "840", "Washington", "38.0", "-97.0", "U+1F1FA U+1F1F8"),
    (4, "United Kingdom", "GBR", "GB", "826", "London", "54.0", "-2.0", "U+1F1EC U+1F1E7"),
    (5, "Germany", "DEU", "DE", "276", "Berlin", "51.0", "9.0", "U+1F1E9 U+1F1EA"),
    (6, "Brazil", "BRA", "BR", "", "Brasilia", "-10.0", "-55.0", "U+1F1E7 U+1F1F7"),
]

STATES = [
    (10, "Île-de-France", 1, "FR", "France", "IDF", "region"),
    (20, "Lombardy", 2, "IT", "Italy", "25", "region"),
    (21, "Tuscany", 2, "IT", "Italy", "52", "region"),
    (30, "New York", 3, "US", "United States", "NY", "state"),
    (31, "Oregon", 3, "US", "United States", "OR", "state"),
    (32, "Maine", 3, "US", "United States", "ME", "state"),
    (40, "England", 4, "GB", "United Kingdom", "ENG", "country"),
    (50, "Bavaria", 5, "DE", "Germany", "BY", "state"),
    (51, "Saxony", 5, "DE", "Germany", "SN", "state"),
    (60, "São Paulo", 6, "BR", "Brazil", "SP", "state"),
]

CITIES = [
    (100, "Paris", 10, "IDF", "Île-de-France", 1, "FR", "France"),
    (200, "Milan", 20, "25", "Lombardy", 2, "IT", "Italy"),
    (201, "Florence", 21, "52", "Tuscany", 2, "IT", "Italy"),
    (202, "Castello", 20, "25", "Lombardy", 2, "IT", "Italy"),
    (203, "Castello", 21, "52", "Tuscany", 2, "IT", "Italy"),
    (300, "Portland", 31, "OR", "Oregon", 3, "US", "United States"),
    (301, "Portland", 32, "ME", "Maine", 3, "US", "United States"),
    (302, "Albany", 30, "NY", "New York", 3, "US", "United States"),
    (400, "London", 40, "ENG", "England", 4, "GB", "United Kingdom"),
    (500, "Munich", 50, "BY", "Bavaria", 5, "DE", "Germany"),
    (501, "Leipzig", 51, "SN", "Saxony", 5, "DE", "Germany"),
    (600, "São Paulo", 60, "SP", "São Paulo", 6, "BR", "Brazil"),
]

ALIAS_LINES = [
    "Milan, Lombardy, Italy | Milano, Lombardia",
    "Munich, Bavaria, Germany | München, Bayern",
    "",
    "this line has no separator",
    "Bavaria, Germany | Bayern",
    "Tuscany, Italy | Toscana",
]


def write_csv(path: Path, fields: list[str], rows: list[tuple]) -> None:
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(fields)
        for row in rows:
            writer.writerow(list(row) + [""] * (len(fields) - len(row)))


def write_dataset(base: Path, countries=COUNTRIES, states=STATES, cities=CITIES) -> Path:
    base.mkdir(parents=True, exist_ok=True)
    write_csv(base / "countries.csv", COUNTRY_FIELDS, countries)
    write_csv(base / "states.csv", STATE_FIELDS, states)
    write_csv(base / "cities.csv", CITY_FIELDS, cities)
    return base


@pytest.fixture
def dataset_dir(tmp_path) -> Path:
    return write_dataset(tmp_path / "csv")


@pytest.fixture
def make_dataset_dir(tmp_path):
    """Write the base gazetteer plus extra rows to a fresh directory."""
    counter = iter(range(1000))

    def _make(countries=(), states=(), cities=()) -> Path:
        return write_dataset(
            tmp_path / f"csv-{next(counter)}",
            countries=COUNTRIES + list(countries),
            states=STATES + list(states),
            cities=CITIES + list(cities),
        )

    return _make


@pytest.fixture
def alias_file(tmp_path) -> Path:
    path = tmp_path / "place_alias.txt"
    path.write_text("\n".join(ALIAS_LINES) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def dataset(dataset_dir):
    return load_dataset(dataset_dir)


@pytest.fixture
def index(dataset) -> LocationIndex:
    """Index without aliases, so only the tier-2 rules reconcile states."""
    return LocationIndex.build(dataset)


@pytest.fixture
def aliased_index(dataset, alias_file) -> LocationIndex:
    return LocationIndex.build(dataset, PlaceAliasTable.from_lines(alias_file.read_text("utf-8").splitlines()))


@pytest.fixture
def matcher(index) -> LocationMatcher:
    return LocationMatcher(index, MatchRules())


@pytest.fixture
def finder(dataset_dir, alias_file) -> LocationFinder:
    return LocationFinder(dataset_dir=dataset_dir, alias_file=alias_file, rules=MatchRules())
