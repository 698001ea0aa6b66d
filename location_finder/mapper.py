"""
Batch mapping of exported location rows onto the canonical gazetteer.

Runs the matcher over every row of a locations CSV, then checks how many
organisations point at a fully matched location. Only aggregate counters
are produced; nothing is written back.
"""

from __future__ import annotations

import csv
import logging
from collections import Counter
from pathlib import Path
from typing import Iterator, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from location_finder.config import get_settings
from location_finder.dataset import describe, row_has_undecodable_bytes
from location_finder.matcher import LocationFinder
from location_finder.models import (
    FullMatch,
    LocationInput,
    MappingReport,
    OrgRecord,
    PartialMatch,
    PartialMatchCount,
    UnmatchedOrgLocation,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _iter_rows(path: Path, model: type[M]) -> Iterator[M]:
    """Yield validated rows, skipping the ones that do not parse."""
    with path.open("r", encoding="utf-8", errors="surrogateescape", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            if row_has_undecodable_bytes(row):
                logger.warning("Skipping row %d of %s: invalid UTF-8", reader.line_num, path.name)
                continue
            try:
                yield model.model_validate(row)
            except ValidationError as e:
                logger.warning("Skipping row %d of %s: %s", reader.line_num, path.name, e)


def _triple(city: str, state: str, country: str) -> str:
    return f"{city}, {state}, {country}"


def map_locations(
    finder: LocationFinder,
    locations_csv: str | Path,
    org_locations_csv: Optional[str | Path] = None,
    min_report_count: Optional[int] = None,
) -> MappingReport:
    """
    Match every location row and, optionally, every organisation row.
    Returns a MappingReport with totals and the most frequent misses.
    """
    if min_report_count is None:
        min_report_count = get_settings().mapper.min_report_count

    report = MappingReport()
    matched_location_ids: set[int] = set()
    partial_counts: Counter[tuple[str, str]] = Counter()

    for row in _iter_rows(Path(locations_csv), LocationInput):
        logger.debug("location_record: %s", row)
        report.total += 1
        result = finder.find_location(row.city, row.state, row.country)

        if isinstance(result, FullMatch):
            logger.debug("Full match: city: %d, state: %d, country: %d",
                         result.city_id, result.state_id, result.country_id)
            report.full_matches += 1
            matched_location_ids.add(row.id)
        elif isinstance(result, PartialMatch):
            logger.debug("City/country match: city: %d, country: %d", result.city_id, result.country_id)
            report.partial_matches += 1
            partial_counts[(
                _triple(row.city, row.state, row.country),
                describe(finder.get_city(result.city_id)),
            )] += 1
        else:
            logger.debug("No match")

    report.partial_match_locations = [
        PartialMatchCount(input_location=k[0], matched_location=k[1], count=c)
        for k, c in partial_counts.most_common()
    ]

    logger.info(
        "Total records: %d, matched records: %d, full matched records: %d, "
        "partial matches: %d, unmatched records: %d",
        report.total, report.matched, report.full_matches,
        report.partial_matches, report.unmatched,
    )
    logger.info("Partial match locations:")
    for item in report.partial_match_locations:
        logger.info("(%r, %r)  => %d", item.input_location, item.matched_location, item.count)

    if org_locations_csv is not None:
        _map_orgs(Path(org_locations_csv), matched_location_ids, report, min_report_count)

    return report


def _map_orgs(
    path: Path,
    matched_location_ids: set[int],
    report: MappingReport,
    min_report_count: int,
) -> None:
    not_found: Counter[str] = Counter()
    for org in _iter_rows(path, OrgRecord):
        logger.debug("org_record: %s", org)
        report.org_total += 1
        if org.location_id in matched_location_ids:
            report.org_matched += 1
        else:
            not_found[_triple(org.city, org.state, org.country)] += 1

    report.org_locations_not_found = [
        UnmatchedOrgLocation(location=loc, count=c)
        for loc, c in not_found.most_common()
        if c >= min_report_count
    ]

    logger.info(
        "Total org records: %d, matched records: %d, unmatched records: %d",
        report.org_total, report.org_matched, report.org_unmatched,
    )
    logger.info("Org locations not found:")
    for item in report.org_locations_not_found:
        logger.info("%r  => %d", item.location, item.count)
