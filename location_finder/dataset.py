"""
Canonical gazetteer loading.

Reads the countries / states / cities CSV export, validates each row with
Pydantic and assembles an immutable LocationDataset. Malformed rows are
logged and skipped; a duplicate id aborts the whole load.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, TypeVar

from pydantic import ValidationError

from location_finder.errors import DatasetLoadError, DuplicateRecordError
from location_finder.models import City, Country, LocationRecord, State
from location_finder.normalize import has_undecodable_bytes

logger = logging.getLogger(__name__)

R = TypeVar("R", Country, State, City)

COUNTRIES_FILE = "countries.csv"
STATES_FILE = "states.csv"
CITIES_FILE = "cities.csv"


@dataclass(frozen=True)
class LocationDataset:
    """Three read-only id -> record tables."""
    countries: Mapping[int, Country]
    states: Mapping[int, State]
    cities: Mapping[int, City]

    def get_country(self, country_id: int) -> Optional[Country]:
        return self.countries.get(country_id)

    def get_state(self, state_id: int) -> Optional[State]:
        return self.states.get(state_id)

    def get_city(self, city_id: int) -> Optional[City]:
        return self.cities.get(city_id)

    def stats(self) -> dict:
        return {
            "countries": len(self.countries),
            "states": len(self.states),
            "cities": len(self.cities),
        }

    @classmethod
    def from_records(
        cls,
        countries: list[Country],
        states: list[State],
        cities: list[City],
    ) -> "LocationDataset":
        """
        Assemble a dataset from already-parsed records.
        Raises DuplicateRecordError on a repeated id; drops rows whose
        references do not resolve.
        """
        country_map = _index_by_id(countries, COUNTRIES_FILE)
        state_map = _index_by_id(states, STATES_FILE)
        city_map = _index_by_id(cities, CITIES_FILE)

        for state_id, state in list(state_map.items()):
            if state.country_id not in country_map:
                logger.error("Dropping state %d (%s): unknown country %d",
                             state_id, state.name, state.country_id)
                del state_map[state_id]

        for city_id, city in list(city_map.items()):
            state = state_map.get(city.state_id)
            if state is None or city.country_id not in country_map:
                logger.error("Dropping city %d (%s): unknown state %d or country %d",
                             city_id, city.name, city.state_id, city.country_id)
                del city_map[city_id]
            elif state.country_id != city.country_id:
                # Lookups trust the city's own country_id
                logger.warning("City %d (%s): country %d disagrees with state %d country %d",
                               city_id, city.name, city.country_id, state.id, state.country_id)

        return cls(
            countries=MappingProxyType(country_map),
            states=MappingProxyType(state_map),
            cities=MappingProxyType(city_map),
        )


def _index_by_id(records: list[R], table: str) -> dict[int, R]:
    by_id: dict[int, R] = {}
    for record in records:
        if record.id in by_id:
            logger.error("Duplicate location record in %s: %r", table, record)
            raise DuplicateRecordError(table, record.id)
        by_id[record.id] = record
    return by_id


def read_records(path: Path, model: type[R]) -> list[R]:
    """
    Read one CSV table into validated records.
    Rows that fail validation or hold invalid UTF-8 are logged and skipped.
    """
    records: list[R] = []
    skipped = 0
    try:
        with path.open("r", encoding="utf-8", errors="surrogateescape", newline="") as f:
            reader = csv.DictReader(f)
            if any(has_undecodable_bytes(name) for name in reader.fieldnames or ()):
                raise DatasetLoadError(f"Invalid UTF-8 in header of {path}")
            for row in reader:
                if row_has_undecodable_bytes(row):
                    skipped += 1
                    logger.error("Error decoding location record at %s:%d: invalid UTF-8",
                                 path.name, reader.line_num)
                    continue
                try:
                    records.append(model.model_validate(row))
                except ValidationError as e:
                    skipped += 1
                    logger.error("Error processing location record at %s:%d: %s",
                                 path.name, reader.line_num, e)
    except OSError as e:
        raise DatasetLoadError(f"Cannot read {path}: {e}") from e
    except (csv.Error, UnicodeError) as e:
        raise DatasetLoadError(f"Malformed CSV {path}: {e}") from e

    logger.info("Loaded %d location records from %s (%d skipped)", len(records), path, skipped)
    return records


def row_has_undecodable_bytes(row: Mapping) -> bool:
    """Check every cell of a csv.DictReader row, including overflow cells."""
    for value in row.values():
        cells = value if isinstance(value, list) else [value]
        if any(isinstance(c, str) and has_undecodable_bytes(c) for c in cells):
            return True
    return False


def load_dataset(dataset_dir: str | Path) -> LocationDataset:
    """Load countries.csv, states.csv and cities.csv from a directory."""
    base = Path(dataset_dir)
    logger.info("Loading location data from: %s", base)
    return LocationDataset.from_records(
        countries=read_records(base / COUNTRIES_FILE, Country),
        states=read_records(base / STATES_FILE, State),
        cities=read_records(base / CITIES_FILE, City),
    )


def describe(record: LocationRecord) -> str:
    """Human-readable "City, State, Country" style label."""
    if isinstance(record, City):
        return f"{record.name}, {record.state_name}, {record.country_name}"
    if isinstance(record, State):
        return f"{record.name}, {record.country_name}"
    return record.name
