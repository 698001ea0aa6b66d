"""
Tests for tiered location matching.
Pure unit tests against a small in-memory gazetteer; no network required.
"""

from __future__ import annotations

import threading

import pytest

from location_finder import matcher as matcher_module
from location_finder.config import MatchingConfig
from location_finder.dataset import LocationDataset
from location_finder.errors import DatasetNotLoadedError, LocationFinderError
from location_finder.index import LocationIndex
from location_finder.matcher import (
    STATE_NAME_EQUIVALENTS,
    LocationFinder,
    LocationMatcher,
    MatchRules,
    configure,
)
from location_finder.models import (
    City,
    Country,
    FullMatch,
    MatchKind,
    NoMatch,
    PartialMatch,
    PartialMatchPolicy,
    State,
)


# ── Tier 1 ────────────────────────────────────────────────────────────

class TestExactMatch:
    def test_full_names(self, matcher):
        result = matcher.find("Paris", "Ile-de-France", "France")
        assert result == FullMatch(city_id=100, state_id=10, country_id=1)

    def test_diacritics_and_case(self, matcher):
        assert matcher.find("PARIS", "Île-de-France", "france") == FullMatch(city_id=100, state_id=10, country_id=1)
        assert matcher.find("Sao Paulo", "Sao Paulo", "Brazil") == FullMatch(city_id=600, state_id=60, country_id=6)

    def test_state_code_and_iso_codes(self, matcher):
        assert matcher.find("Paris", "IDF", "FR").kind is MatchKind.FULL
        assert matcher.find("Paris", "IDF", "FRA").kind is MatchKind.FULL
        assert matcher.find("Portland", "ME", "USA") == FullMatch(city_id=301, state_id=32, country_id=3)
        assert matcher.find("Portland", "OR", "US") == FullMatch(city_id=300, state_id=31, country_id=3)

    def test_exact_match_in_skip_listed_country(self, matcher):
        # The skip-list only applies to the state-free tier
        assert matcher.find("Albany", "New York", "United States") == FullMatch(
            city_id=302, state_id=30, country_id=3
        )

    def test_alias_spellings(self, aliased_index):
        m = LocationMatcher(aliased_index, MatchRules())
        assert m.find("Milano", "Lombardia", "Italy") == FullMatch(city_id=200, state_id=20, country_id=2)
        assert m.find("München", "Bayern", "Germany") == FullMatch(city_id=500, state_id=50, country_id=5)
        assert m.find("Florence", "Toscana", "IT") == FullMatch(city_id=201, state_id=21, country_id=2)


# ── Tier 2 ────────────────────────────────────────────────────────────

class TestSkipList:
    def test_wrong_state_in_skip_listed_country(self, matcher):
        assert matcher.find("Albany", "Texas", "United States") == NoMatch()

    def test_skip_list_ignores_state_text(self, matcher):
        # "york" would otherwise reconcile as a substring of "new_york"
        assert matcher.find("Albany", "York", "United States") == NoMatch()

    def test_never_partial(self, matcher):
        result = matcher.find("Portland", "Texas", "US")
        assert not isinstance(result, PartialMatch)
        assert result == NoMatch()


class TestOverrideList:
    def test_any_state_accepted(self, matcher):
        assert matcher.find("London", "Greater London", "United Kingdom") == FullMatch(
            city_id=400, state_id=40, country_id=4
        )

    def test_nonsense_state_accepted(self, matcher):
        assert matcher.find("London", "Ontario", "GB") == FullMatch(city_id=400, state_id=40, country_id=4)


class TestStateReconciliation:
    def test_input_state_inside_canonical(self, matcher):
        assert matcher.find("Milan", "Lombard", "Italy") == FullMatch(city_id=200, state_id=20, country_id=2)

    def test_canonical_state_inside_input(self, matcher):
        assert matcher.find("Munich", "Free State of Bavaria", "Germany") == FullMatch(
            city_id=500, state_id=50, country_id=5
        )

    def test_equivalence_table(self, matcher):
        assert matcher.find("Leipzig", "Sachsen", "Germany") == FullMatch(city_id=501, state_id=51, country_id=5)
        assert matcher.find("Milan", "Lombardia", "Italy") == FullMatch(city_id=200, state_id=20, country_id=2)

    def test_equivalence_is_bidirectional(self):
        assert ("lombardia", "lombardy") in STATE_NAME_EQUIVALENTS
        assert ("lombardy", "lombardia") in STATE_NAME_EQUIVALENTS
        rules = MatchRules()
        assert rules.states_equivalent("bayern", "bavaria")
        assert rules.states_equivalent("bavaria", "bayern")

    def test_either_canonical_spelling(self):
        """Milan resolves the same way whichever spelling the gazetteer uses."""
        for canonical in ("Lombardy", "Lombardia"):
            dataset = LocationDataset.from_records(
                countries=[Country(id=2, name="Italy", iso2="IT", iso3="ITA")],
                states=[State(id=20, name=canonical, country_id=2, country_name="Italy", state_code="25")],
                cities=[City(id=200, name="Milan", state_id=20, state_name=canonical,
                             country_id=2, country_name="Italy")],
            )
            m = LocationMatcher(LocationIndex.build(dataset))
            expected = FullMatch(city_id=200, state_id=20, country_id=2)
            assert m.find("Milan", "Lombardia", "Italy") == expected
            assert m.find("Milan", "Lombardy", "Italy") == expected

    def test_empty_state_reconciles(self, matcher):
        assert matcher.find("Florence", "", "Italy") == FullMatch(city_id=201, state_id=21, country_id=2)


class TestPartialMatch:
    def test_single_unreconciled_candidate(self, matcher):
        assert matcher.find("Florence", "Umbria", "Italy") == PartialMatch(
            city_id=201, country_id=2, unmatched_state_id=21
        )

    def test_ambiguous_candidates_unique_policy(self, matcher):
        assert matcher.find("Castello", "Umbria", "Italy") == NoMatch()

    def test_ambiguous_candidates_first_policy(self, index):
        m = LocationMatcher(index, MatchRules(partial_policy=PartialMatchPolicy.FIRST))
        assert m.find("Castello", "Umbria", "Italy") == PartialMatch(
            city_id=202, country_id=2, unmatched_state_id=20
        )

    def test_reconciled_candidate_beats_ambiguity(self, matcher):
        assert matcher.find("Castello", "Toscana", "Italy") == FullMatch(city_id=203, state_id=21, country_id=2)


class TestNoMatch:
    def test_unknown_city(self, matcher):
        assert matcher.find("Atlantis", "", "Greece") == NoMatch()

    def test_wrong_country(self, matcher):
        assert matcher.find("Paris", "Texas", "Germany") == NoMatch()

    def test_empty_input(self, matcher):
        assert matcher.find("", "", "") == NoMatch()


# ── Rules from configuration ──────────────────────────────────────────

class TestMatchRulesConfig:
    def test_defaults(self):
        rules = MatchRules.from_config(MatchingConfig(
            partial_match_policy="unique",
            skip_countries=("United States",),
            override_countries=("United Kingdom",),
        ))
        assert rules == MatchRules()

    def test_custom_lists(self, index):
        rules = MatchRules.from_config(MatchingConfig(
            partial_match_policy="FIRST",
            skip_countries=("Italy",),
            override_countries=("Germany",),
        ))
        assert rules.partial_policy is PartialMatchPolicy.FIRST
        m = LocationMatcher(index, rules)
        assert m.find("Florence", "Umbria", "Italy") == NoMatch()
        assert m.find("Leipzig", "Hesse", "Germany") == FullMatch(city_id=501, state_id=51, country_id=5)
        assert m.find("Portland", "Texas", "US") == PartialMatch(city_id=300, country_id=3, unmatched_state_id=31)


# ── State / country lookups ───────────────────────────────────────────

class TestSecondaryLookups:
    def test_find_state(self, matcher):
        assert matcher.find_state("Lombardy", "IT").id == 20
        assert matcher.find_state("Île-de-France", "France").id == 10
        assert matcher.find_state("Lombardy", "France") is None

    def test_find_country(self, matcher):
        assert matcher.find_country("FRA").id == 1
        assert matcher.find_country("united kingdom").id == 4
        assert matcher.find_country("Narnia") is None


# ── Write-once finder ─────────────────────────────────────────────────

class TestLocationFinder:
    def test_lazy_load_on_first_lookup(self, finder):
        assert finder.loaded is False
        assert finder.find_location("Milano", "Lombardia", "Italy") == FullMatch(
            city_id=200, state_id=20, country_id=2
        )
        assert finder.loaded is True

    def test_load_once(self, finder):
        first = finder.load()
        second = finder.load()
        assert first is second

    def test_index_before_load_raises(self, finder):
        with pytest.raises(DatasetNotLoadedError):
            _ = finder.index

    def test_concurrent_first_use_publishes_one_snapshot(self, finder):
        seen = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            seen.append(finder.load())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(seen) == 8
        assert all(s is seen[0] for s in seen)

    def test_entity_lookups(self, finder):
        finder.load()
        assert finder.get_city(100).name == "Paris"
        assert finder.get_state(21).name == "Tuscany"
        assert finder.get_country(5).name == "Germany"
        assert finder.get_city(12345) is None

    def test_find_state_and_country(self, finder):
        assert finder.find_state("Bavaria", "DE").id == 50
        assert finder.find_country("BR").id == 6

    def test_from_index(self, index):
        finder = LocationFinder.from_index(index)
        assert finder.loaded
        assert finder.find_location("Paris", "IDF", "FR").kind is MatchKind.FULL


class TestProcessFinder:
    def test_configure_then_find(self, monkeypatch, dataset_dir, alias_file):
        monkeypatch.setattr(matcher_module, "_finder", None)
        monkeypatch.setattr(matcher_module, "_configured", {"dataset_dir": None, "alias_file": None})
        configure(str(dataset_dir), str(alias_file))
        assert matcher_module.find_location("Paris", "Ile-de-France", "France") == FullMatch(
            city_id=100, state_id=10, country_id=1
        )
        assert matcher_module.get_finder() is matcher_module.get_finder()

    def test_configure_after_first_use_rejected(self, monkeypatch, finder):
        monkeypatch.setattr(matcher_module, "_finder", finder)
        with pytest.raises(LocationFinderError):
            configure("/somewhere/else")
