"""
Pydantic models used across the package for validation and serialization.
These are pure data objects with no I/O coupling.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


def _blank_to_none(v):
    """CSV exports leave unknown numeric cells empty."""
    if isinstance(v, str) and not v.strip():
        return None
    return v


# ── Enums ──────────────────────────────────────────────────────────────

class MatchKind(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


class PartialMatchPolicy(str, Enum):
    # Exactly one unreconciled candidate across the whole scan
    UNIQUE = "unique"
    # First unreconciled candidate wins, remaining candidates are not scanned
    FIRST = "first"


# ── Canonical gazetteer records ───────────────────────────────────────

_RECORD_CONFIG = {"populate_by_name": True, "extra": "ignore", "frozen": True}


class Country(BaseModel):
    """A row of countries.csv."""
    id: int
    name: str
    iso3: str = ""
    iso2: str = ""
    numeric_code: Optional[int] = None
    phone_code: Optional[str] = None
    capital: Optional[str] = None
    currency: Optional[str] = None
    currency_name: Optional[str] = None
    currency_symbol: Optional[str] = None
    tld: Optional[str] = None
    native: Optional[str] = None
    region: Optional[str] = None
    subregion: Optional[str] = None
    timezones: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    emoji: Optional[str] = None
    emoji_u: Optional[str] = Field(None, alias="emojiU")

    model_config = _RECORD_CONFIG

    @field_validator("numeric_code", "latitude", "longitude", mode="before")
    @classmethod
    def blank_numbers(cls, v):
        return _blank_to_none(v)


class State(BaseModel):
    """A row of states.csv."""
    id: int
    name: str
    country_id: int
    country_code: str = ""
    country_name: str = ""
    state_code: str = ""
    state_type: Optional[str] = Field(None, alias="type")
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    model_config = _RECORD_CONFIG

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def blank_numbers(cls, v):
        return _blank_to_none(v)


class City(BaseModel):
    """
    A row of cities.csv. State and country fields are denormalized copies
    and are expected, but not guaranteed, to agree with the referenced records.
    """
    id: int
    name: str
    state_id: int
    state_code: str = ""
    state_name: str = ""
    country_id: int
    country_code: str = ""
    country_name: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    wiki_data_id: Optional[str] = Field(None, alias="wikiDataId")

    model_config = _RECORD_CONFIG

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def blank_numbers(cls, v):
        return _blank_to_none(v)


LocationRecord = Union[Country, State, City]


# ── Match results ─────────────────────────────────────────────────────

class FullMatch(BaseModel):
    """High-confidence resolution of all three levels."""
    kind: Literal[MatchKind.FULL] = MatchKind.FULL
    city_id: int
    state_id: int
    country_id: int

    model_config = {"frozen": True}


class PartialMatch(BaseModel):
    """City and country resolved; the input state could not be reconciled."""
    kind: Literal[MatchKind.PARTIAL] = MatchKind.PARTIAL
    city_id: int
    country_id: int
    unmatched_state_id: int

    model_config = {"frozen": True}


class NoMatch(BaseModel):
    kind: Literal[MatchKind.NONE] = MatchKind.NONE

    model_config = {"frozen": True}


LocationMatch = Union[FullMatch, PartialMatch, NoMatch]


# ── Batch mapping inputs and report ───────────────────────────────────

class LocationInput(BaseModel):
    """A row of the exported locations CSV fed to the mapper."""
    id: int
    city: str = ""
    state: str = ""
    country: str = ""

    model_config = {"extra": "ignore"}


class OrgRecord(BaseModel):
    """A row of the exported organisations CSV."""
    id: int
    org_handle: str = Field(..., alias="orgHandle")
    name: str = ""
    website: str = ""
    location_id: int = Field(..., alias="locationId")
    favicon: Optional[str] = None
    city: str = ""
    state: str = ""
    country: str = ""

    model_config = {"populate_by_name": True, "extra": "ignore"}


class PartialMatchCount(BaseModel):
    input_location: str
    matched_location: str
    count: int


class UnmatchedOrgLocation(BaseModel):
    location: str
    count: int


class MappingReport(BaseModel):
    total: int = 0
    full_matches: int = 0
    partial_matches: int = 0
    partial_match_locations: list[PartialMatchCount] = Field(default_factory=list)
    org_total: int = 0
    org_matched: int = 0
    org_locations_not_found: list[UnmatchedOrgLocation] = Field(default_factory=list)

    @property
    def matched(self) -> int:
        return self.full_matches + self.partial_matches

    @property
    def unmatched(self) -> int:
        return self.total - self.matched

    @property
    def org_unmatched(self) -> int:
        return self.org_total - self.org_matched


# ── API response models ───────────────────────────────────────────────

class MatchResponse(BaseModel):
    kind: MatchKind
    city_id: Optional[int] = None
    state_id: Optional[int] = None
    country_id: Optional[int] = None
    city_name: Optional[str] = None
    state_name: Optional[str] = None
    country_name: Optional[str] = None
    # True when state_id is the candidate's own state, not the requested one
    state_unmatched: bool = False


class HealthResponse(BaseModel):
    status: str = "ok"
    countries: int = 0
    states: int = 0
    cities: int = 0
    city_keys: int = 0
