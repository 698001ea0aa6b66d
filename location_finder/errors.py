"""Exception hierarchy for dataset loading and lookups."""

from __future__ import annotations


class LocationFinderError(Exception):
    """Base class for every error raised by location_finder."""


class DatasetLoadError(LocationFinderError):
    """A canonical table could not be read."""


class DuplicateRecordError(DatasetLoadError):
    """Two records in the same table share an id."""

    def __init__(self, table: str, record_id: int):
        super().__init__(f"Duplicate id {record_id} in {table}")
        self.table = table
        self.record_id = record_id


class DatasetNotLoadedError(LocationFinderError):
    """A lookup was attempted before the dataset and index were published."""
