"""
FastAPI service exposing the location matcher.

Endpoints:
  GET /match                - Resolve a (city, state, country) triple
  GET /cities/{city_id}     - Canonical city record
  GET /states/{state_id}    - Canonical state record
  GET /countries/{id}       - Canonical country record
  GET /health               - Dataset and index sizes
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request

from location_finder.errors import DatasetNotLoadedError, LocationFinderError
from location_finder.matcher import LocationFinder, get_finder
from location_finder.models import (
    City,
    Country,
    FullMatch,
    HealthResponse,
    MatchKind,
    MatchResponse,
    PartialMatch,
    State,
)

logger = logging.getLogger(__name__)


# ── Lifespan ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: build the index once so the first request does not pay for it."""
    logger.info("Starting up API server...")
    finder = get_finder()
    app.state.finder = finder
    try:
        finder.load()
    except LocationFinderError as e:
        # /health reports status=error from here on
        logger.error("Location dataset failed to load: %s", e)
    yield
    logger.info("API server shut down.")


# ── App ───────────────────────────────────────────────────────────────

app = FastAPI(
    title="Location Finder API",
    description="Resolve free-text places against the countries/states/cities gazetteer",
    version="1.0.0",
    lifespan=lifespan,
)


# ── Helpers ───────────────────────────────────────────────────────────

def _finder(request: Request) -> LocationFinder:
    finder: Optional[LocationFinder] = getattr(request.app.state, "finder", None)
    if finder is None or not finder.loaded:
        raise HTTPException(503, "Location dataset not loaded")
    return finder


def _format_match(finder: LocationFinder, result) -> MatchResponse:
    if isinstance(result, FullMatch):
        state_id = result.state_id
        unmatched = False
    elif isinstance(result, PartialMatch):
        state_id = result.unmatched_state_id
        unmatched = True
    else:
        return MatchResponse(kind=MatchKind.NONE)

    city = finder.get_city(result.city_id)
    state = finder.get_state(state_id)
    country = finder.get_country(result.country_id)
    return MatchResponse(
        kind=result.kind,
        city_id=result.city_id,
        state_id=state_id,
        country_id=result.country_id,
        city_name=city.name,
        state_name=state.name,
        country_name=country.name,
        state_unmatched=unmatched,
    )


# ══════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ══════════════════════════════════════════════════════════════════════

@app.get("/match", response_model=MatchResponse)
def match_location(
    request: Request,
    city: str = Query(..., min_length=1, max_length=200, description="City name"),
    state: str = Query("", max_length=200, description="State, province or state code"),
    country: str = Query(..., min_length=1, max_length=200, description="Country name or ISO code"),
):
    """
    Resolve a place triple.

    kind=full     city, state and country all resolved
    kind=partial  city and country resolved; state_id is the city's own state
    kind=none     no confident match
    """
    finder = _finder(request)
    try:
        result = finder.find_location(city, state, country)
    except DatasetNotLoadedError as e:
        raise HTTPException(503, str(e))
    return _format_match(finder, result)


@app.get("/cities/{city_id}", response_model=City, response_model_by_alias=False)
def get_city(request: Request, city_id: int):
    record = _finder(request).get_city(city_id)
    if record is None:
        raise HTTPException(404, "City not found")
    return record


@app.get("/states/{state_id}", response_model=State, response_model_by_alias=False)
def get_state(request: Request, state_id: int):
    record = _finder(request).get_state(state_id)
    if record is None:
        raise HTTPException(404, "State not found")
    return record


@app.get("/countries/{country_id}", response_model=Country, response_model_by_alias=False)
def get_country(request: Request, country_id: int):
    record = _finder(request).get_country(country_id)
    if record is None:
        raise HTTPException(404, "Country not found")
    return record


@app.get("/health", response_model=HealthResponse)
def health_check(request: Request):
    """Dataset and index sizes; status=error when the load failed."""
    finder: Optional[LocationFinder] = getattr(request.app.state, "finder", None)
    if finder is None or not finder.loaded:
        return HealthResponse(status="error")
    stats = finder.index.stats()
    return HealthResponse(
        status="ok",
        countries=stats["countries"],
        states=stats["states"],
        cities=stats["cities"],
        city_keys=stats["city_keys"],
    )
