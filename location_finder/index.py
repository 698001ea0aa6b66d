"""
Normalized key index over the canonical gazetteer.

Every city is reachable under several keys built from its name, its state
(name or code) and its country (name, ISO2 or ISO3), e.g. for Milan:

    milan_lombardy_italy   milan_italy
    milan_mi_italy         milan_mi_it     milan_it
    milan_mi_ita           milan_ita

Alias table entries add the same variants for alternate city and state
spellings ("milano_lombardia_italy", ...). A key may map to several cities;
candidates keep dataset order so "first candidate" is deterministic.

States and countries get a smaller secondary index of their own.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from location_finder.aliases import PlaceAliasTable
from location_finder.dataset import LocationDataset
from location_finder.models import City, Country, State
from location_finder.normalize import location_key, normalize_location_str

logger = logging.getLogger(__name__)

KeyMap = Mapping[str, tuple[int, ...]]


# ── Key variants ──────────────────────────────────────────────────────

def city_location_keys(
    city: City,
    state: State,
    country: Country,
    city_alias: Optional[str] = None,
    state_alias: Optional[str] = None,
) -> list[str]:
    """
    The seven lookup keys for one city, optionally with an alternate city
    and/or state name substituted for the canonical one.
    """
    city_name = normalize_location_str(city_alias if city_alias is not None else city.name)
    state_name = normalize_location_str(state_alias if state_alias is not None else city.state_name)
    country_name = normalize_location_str(city.country_name)
    state_code = normalize_location_str(state.state_code)
    iso2 = normalize_location_str(country.iso2)
    iso3 = normalize_location_str(country.iso3)

    return [
        location_key(city_name, state_name, country_name),
        location_key(city_name, None, country_name),
        location_key(city_name, state_code, country_name),
        location_key(city_name, state_code, iso2),
        location_key(city_name, None, iso2),
        location_key(city_name, state_code, iso3),
        location_key(city_name, None, iso3),
    ]


def city_key_set(
    city: City,
    state: State,
    country: Country,
    aliases: PlaceAliasTable,
) -> list[str]:
    """All distinct keys for a city, canonical spelling first, then aliases."""
    keys: dict[str, None] = dict.fromkeys(city_location_keys(city, state, country))

    def add(city_alias: Optional[str], state_alias: Optional[str]) -> None:
        keys.update(dict.fromkeys(city_location_keys(city, state, country, city_alias, state_alias)))

    for alt_city, alt_state in aliases.city_aliases(city.name, city.state_name, city.country_name):
        city_differs = alt_city != city.name
        state_differs = alt_state is not None and alt_state != city.state_name
        if city_differs and state_differs:
            add(alt_city, alt_state)
        if state_differs:
            add(None, alt_state)
        if city_differs:
            add(alt_city, None)

    for alt_state in aliases.state_aliases(state.name, state.country_name):
        if alt_state != state.name:
            add(None, alt_state)

    return list(keys)


def state_location_keys(state: State, country: Country) -> list[str]:
    state_name = normalize_location_str(state.name)
    return [
        location_key(None, state_name, normalize_location_str(state.country_name)),
        location_key(None, state_name, normalize_location_str(country.iso2)),
        location_key(None, state_name, normalize_location_str(country.iso3)),
    ]


def country_location_keys(country: Country) -> list[str]:
    return [
        normalize_location_str(country.name),
        normalize_location_str(country.iso2),
        normalize_location_str(country.iso3),
    ]


def _freeze(multimap: dict[str, list[int]]) -> KeyMap:
    return MappingProxyType({k: tuple(v) for k, v in multimap.items()})


def _insert(multimap: dict[str, list[int]], keys: Iterable[str], record_id: int) -> None:
    for key in dict.fromkeys(keys):
        if key:
            multimap.setdefault(key, []).append(record_id)


# ── Index ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LocationIndex:
    """
    Immutable snapshot of the dataset plus its key multimaps.
    Build once with LocationIndex.build and share freely between threads.
    """
    dataset: LocationDataset
    city_keys: KeyMap
    state_keys: KeyMap
    country_keys: KeyMap

    @classmethod
    def build(cls, dataset: LocationDataset, aliases: Optional[PlaceAliasTable] = None) -> "LocationIndex":
        aliases = aliases or PlaceAliasTable()
        start = time.monotonic()

        city_map: dict[str, list[int]] = {}
        for city in dataset.cities.values():
            state = dataset.states[city.state_id]
            country = dataset.countries[city.country_id]
            _insert(city_map, city_key_set(city, state, country, aliases), city.id)

        state_map: dict[str, list[int]] = {}
        for state in dataset.states.values():
            _insert(state_map, state_location_keys(state, dataset.countries[state.country_id]), state.id)

        country_map: dict[str, list[int]] = {}
        for country in dataset.countries.values():
            _insert(country_map, country_location_keys(country), country.id)

        logger.info(
            "Built location index: %d city keys, %d state keys, %d country keys in %.2fs",
            len(city_map), len(state_map), len(country_map), time.monotonic() - start,
        )
        return cls(
            dataset=dataset,
            city_keys=_freeze(city_map),
            state_keys=_freeze(state_map),
            country_keys=_freeze(country_map),
        )

    def cities_for_key(self, key: str) -> tuple[int, ...]:
        return self.city_keys.get(key, ())

    def states_for_key(self, key: str) -> tuple[int, ...]:
        return self.state_keys.get(key, ())

    def countries_for_key(self, key: str) -> tuple[int, ...]:
        return self.country_keys.get(key, ())

    def stats(self) -> dict:
        return {
            **self.dataset.stats(),
            "city_keys": len(self.city_keys),
            "state_keys": len(self.state_keys),
            "country_keys": len(self.country_keys),
        }
