"""
Tiered resolution of free-text (city, state, country) triples.

Tier 1 - exact hierarchical key: city + state + country (names or codes).
Tier 2 - city + country key, then reconcile the state text per candidate:
           skip-listed country   -> candidate discarded
           override-listed       -> full match, state text ignored
           substring either way  -> full match ("NY" style abbreviations)
           equivalence table     -> full match ("Bayern" / "Bavaria")
           otherwise             -> partial candidate
Nothing found -> NoMatch. NoMatch is a normal outcome, never an error.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from location_finder.aliases import load_alias_table
from location_finder.config import MatchingConfig, get_settings
from location_finder.dataset import load_dataset
from location_finder.errors import DatasetNotLoadedError, LocationFinderError
from location_finder.index import LocationIndex
from location_finder.models import (
    City,
    Country,
    FullMatch,
    LocationMatch,
    NoMatch,
    PartialMatch,
    PartialMatchPolicy,
    State,
)
from location_finder.normalize import location_key, normalize_location_str

logger = logging.getLogger(__name__)


# ── State name equivalences ───────────────────────────────────────────
# Normalized (input, canonical) pairs that substring containment cannot
# reconcile: local vs English names, and merged or renamed subdivisions.
# Looked up in both directions.

_STATE_NAME_PAIRS: list[tuple[str, str]] = [
    ("lombardia", "lombardy"),
    ("toscana", "tuscany"),
    ("piemonte", "piedmont"),
    ("sardegna", "sardinia"),
    ("sicilia", "sicily"),
    ("puglia", "apulia"),
    ("trentinoalto_adige", "trentinosouth_tyrol"),
    ("bayern", "bavaria"),
    ("sachsen", "saxony"),
    ("niedersachsen", "lower_saxony"),
    ("rheinlandpfalz", "rhinelandpalatinate"),
    ("nordrheinwestfalen", "north_rhinewestphalia"),
    ("catalonia", "barcelona"),
    ("pais_vasco", "gipuzkoa"),
    ("pais_vasco", "bizkaia"),
    ("galicia", "pontevedra"),
    ("galicia", "a_coruna"),
    ("andalucia", "sevilla"),
    ("stockholms_lan", "stockholm_county"),
    ("skane_lan", "skane_county"),
    ("kalmar_lan", "kalmar_county"),
    ("vasternorrlands_lan", "vasternorrland_county"),
    ("vasterbottens_lan", "vasterbotten_county"),
    ("uppsala_lan", "uppsala_county"),
    ("norrbottens_lan", "norrbotten_county"),
    ("hallands_lan", "halland_county"),
    ("ostergotlands_lan", "ostergotland_county"),
    ("dalarnas_lan", "dalarna_county"),
    ("vastmanlands_lan", "vastmanland_county"),
    ("varmlands_lan", "varmland_county"),
    ("sodermanlands_lan", "sodermanland_county"),
    ("kronobergs_lan", "skane_county"),
    ("gotlands_lan", "gotland_county"),
    ("wien", "vienna"),
    ("geneve", "geneva"),
    ("nordpasdecalais", "hautsdefrance"),
    ("midipyrenees", "occitanie"),
    ("languedocroussillon", "occitanie"),
    ("provencealpescote_dazur", "provencealpescotedazur"),
    ("pays_de_la_loire", "paysdelaloire"),
    ("andhra_pradesh", "telangana"),
    ("hamerkaz", "central_district"),
    ("al_qahirah", "cairo"),
    ("adis_abeba", "addis_ababa"),
    ("na_south_africa", "gauteng"),
]


def symmetric_pairs(pairs: Iterable[tuple[str, str]]) -> frozenset[tuple[str, str]]:
    out: set[tuple[str, str]] = set()
    for a, b in pairs:
        out.add((a, b))
        out.add((b, a))
    return frozenset(out)


STATE_NAME_EQUIVALENTS = symmetric_pairs(_STATE_NAME_PAIRS)


# ── Rules ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MatchRules:
    """Tier-2 heuristics. Country names are compared in normalized form."""
    skip_countries: frozenset[str] = frozenset({"united_states"})
    override_countries: frozenset[str] = frozenset({"united_kingdom"})
    state_equivalents: frozenset[tuple[str, str]] = field(default=STATE_NAME_EQUIVALENTS)
    partial_policy: PartialMatchPolicy = PartialMatchPolicy.UNIQUE

    @classmethod
    def from_config(cls, config: MatchingConfig) -> "MatchRules":
        return cls(
            skip_countries=frozenset(normalize_location_str(c) for c in config.skip_countries),
            override_countries=frozenset(normalize_location_str(c) for c in config.override_countries),
            partial_policy=PartialMatchPolicy(config.partial_match_policy.lower()),
        )

    def states_equivalent(self, input_state: str, canonical_state: str) -> bool:
        if input_state in canonical_state or canonical_state in input_state:
            return True
        return (input_state, canonical_state) in self.state_equivalents


# ── Matcher ───────────────────────────────────────────────────────────

class LocationMatcher:
    """Runs the tiered resolution against one immutable LocationIndex."""

    def __init__(self, index: LocationIndex, rules: Optional[MatchRules] = None):
        self.index = index
        self.rules = rules or MatchRules()

    def find(self, city_in: str, state_in: str, country_in: str) -> LocationMatch:
        city = normalize_location_str(city_in)
        state = normalize_location_str(state_in)
        country = normalize_location_str(country_in)
        dataset = self.index.dataset

        # Tier 1: the key was built from exactly these fields, so the
        # candidate's own state and country are the requested ones.
        exact = self.index.cities_for_key(location_key(city, state, country))
        if exact:
            record = dataset.cities[exact[0]]
            return FullMatch(city_id=record.id, state_id=record.state_id, country_id=record.country_id)

        # Tier 2
        partials: list[PartialMatch] = []
        for city_id in self.index.cities_for_key(location_key(city, None, country)):
            record = dataset.cities[city_id]
            country_record = dataset.countries[record.country_id]
            state_record = dataset.states[record.state_id]

            verdict = self._reconcile_state(state, state_in, record, state_record, country_record)
            if verdict is None:
                continue
            if isinstance(verdict, FullMatch):
                return verdict
            if self.rules.partial_policy is PartialMatchPolicy.FIRST:
                return verdict
            partials.append(verdict)

        # UNIQUE policy: several unreconciled candidates are ambiguous. The
        # FIRST policy (return the first one found) is kept as an option.
        if len(partials) == 1:
            return partials[0]
        if partials:
            logger.debug("Ambiguous city/country match for %r, %r, %r: %d candidates",
                         city_in, state_in, country_in, len(partials))
        return NoMatch()

    def _reconcile_state(
        self,
        state: str,
        state_in: str,
        record: City,
        state_record: State,
        country_record: Country,
    ) -> Optional[LocationMatch]:
        """Apply the tier-2 rules to one candidate; None discards it."""
        country_name = normalize_location_str(country_record.name)
        if country_name in self.rules.skip_countries:
            return None

        full = FullMatch(city_id=record.id, state_id=record.state_id, country_id=record.country_id)
        if country_name in self.rules.override_countries:
            return full

        if self.rules.states_equivalent(state, normalize_location_str(state_record.name)):
            logger.debug("Partial name match: %s vs %s", state_in, state_record.name)
            return full

        return PartialMatch(
            city_id=record.id,
            country_id=record.country_id,
            unmatched_state_id=record.state_id,
        )

    def find_state(self, state_in: str, country_in: str) -> Optional[State]:
        key = location_key(None, normalize_location_str(state_in), normalize_location_str(country_in))
        state_ids = self.index.states_for_key(key)
        return self.index.dataset.states[state_ids[0]] if state_ids else None

    def find_country(self, country_in: str) -> Optional[Country]:
        country_ids = self.index.countries_for_key(normalize_location_str(country_in))
        return self.index.dataset.countries[country_ids[0]] if country_ids else None


# ── Write-once finder ─────────────────────────────────────────────────

class LocationFinder:
    """
    Owns the one-time construction of dataset, alias table and index.

    The first caller that needs data builds and publishes the snapshot under
    a lock; later callers only read it. A failed load is remembered and
    every later lookup raises DatasetNotLoadedError instead of retrying
    against a half-read dataset.
    """

    def __init__(
        self,
        dataset_dir: Optional[str | Path] = None,
        alias_file: Optional[str | Path] = None,
        rules: Optional[MatchRules] = None,
    ):
        settings = get_settings()
        self.dataset_dir = Path(dataset_dir or settings.dataset.dataset_dir)
        self.alias_file = Path(alias_file or settings.dataset.alias_file)
        self.rules = rules or MatchRules.from_config(settings.matching)
        self._lock = threading.Lock()
        self._matcher: Optional[LocationMatcher] = None
        self._load_error: Optional[LocationFinderError] = None

    @classmethod
    def from_index(cls, index: LocationIndex, rules: Optional[MatchRules] = None) -> "LocationFinder":
        """Wrap an already built index; nothing is read from disk."""
        finder = cls(rules=rules or MatchRules())
        finder._matcher = LocationMatcher(index, finder.rules)
        return finder

    @property
    def loaded(self) -> bool:
        return self._matcher is not None

    def load(self) -> LocationIndex:
        """Build and publish the index if no one has yet. Idempotent."""
        if self._matcher is None:
            with self._lock:
                if self._matcher is None:
                    if self._load_error is not None:
                        raise DatasetNotLoadedError(
                            f"Location dataset failed to load from {self.dataset_dir}"
                        ) from self._load_error
                    try:
                        dataset = load_dataset(self.dataset_dir)
                        aliases = load_alias_table(self.alias_file)
                        index = LocationIndex.build(dataset, aliases)
                    except LocationFinderError as e:
                        logger.error("Error loading location records: %s", e)
                        self._load_error = e
                        raise
                    self._matcher = LocationMatcher(index, self.rules)
        return self._matcher.index

    @property
    def matcher(self) -> LocationMatcher:
        if self._matcher is None:
            raise DatasetNotLoadedError("Location dataset has not been loaded")
        return self._matcher

    @property
    def index(self) -> LocationIndex:
        return self.matcher.index

    def find_location(self, city: str, state: str, country: str) -> LocationMatch:
        self.load()
        return self.matcher.find(city, state, country)

    def find_state(self, state: str, country: str) -> Optional[State]:
        self.load()
        return self.matcher.find_state(state, country)

    def find_country(self, country: str) -> Optional[Country]:
        self.load()
        return self.matcher.find_country(country)

    def get_city(self, city_id: int) -> Optional[City]:
        return self.index.dataset.get_city(city_id)

    def get_state(self, state_id: int) -> Optional[State]:
        return self.index.dataset.get_state(state_id)

    def get_country(self, country_id: int) -> Optional[Country]:
        return self.index.dataset.get_country(country_id)


# ── Process-wide finder ───────────────────────────────────────────────

_finder: Optional[LocationFinder] = None
_finder_lock = threading.Lock()
_configured: dict[str, Optional[str]] = {"dataset_dir": None, "alias_file": None}


def configure(dataset_dir: Optional[str] = None, alias_file: Optional[str] = None) -> None:
    """Set dataset locations for get_finder(). Only allowed before first use."""
    with _finder_lock:
        if _finder is not None:
            raise LocationFinderError("Location finder already initialised; configure() must run first")
        if dataset_dir:
            _configured["dataset_dir"] = dataset_dir
            logger.info("Loading location data from: %s", dataset_dir)
        if alias_file:
            _configured["alias_file"] = alias_file


def get_finder() -> LocationFinder:
    global _finder
    if _finder is None:
        with _finder_lock:
            if _finder is None:
                _finder = LocationFinder(
                    dataset_dir=_configured["dataset_dir"],
                    alias_file=_configured["alias_file"],
                )
    return _finder


def find_location(city: str, state: str, country: str) -> LocationMatch:
    """Resolve a triple with the process-wide finder, loading it on first use."""
    return get_finder().find_location(city, state, country)
