"""
Place alias table.

The alias file holds one synonym per line:

    Milan, Lombardy, Italy | Milano, Lombardia
    Bavaria, Germany | Bayern

The left side is a canonical display string ("City, State, Country" or
"State, Country"); the right side an alternate "City, State" pair or an
alternate state name. Blank and malformed lines are ignored.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from location_finder.normalize import has_undecodable_bytes

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"


def parse_alias_line(line: str) -> Optional[tuple[str, str]]:
    """Split "key | alternate" into a trimmed pair, or None when malformed."""
    fields = [f.strip() for f in line.split(FIELD_SEPARATOR)]
    if len(fields) != 2:
        return None
    return fields[0], fields[1]


def split_place_name(name: str) -> list[str]:
    return [part.strip() for part in name.split(",")]


class PlaceAliasTable:
    """Read-only multimap of canonical display string -> alternate names."""

    def __init__(self, entries: Optional[Mapping[str, Iterable[str]]] = None):
        self._entries: Mapping[str, tuple[str, ...]] = MappingProxyType(
            {k: tuple(v) for k, v in (entries or {}).items()}
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> tuple[str, ...]:
        return self._entries.get(key, ())

    def city_aliases(self, city_name: str, state_name: str, country_name: str) -> list[tuple[str, Optional[str]]]:
        """
        Alternates for "City, State, Country" as (alt_city, alt_state) pairs.
        An alternate without a state part only renames the city.
        """
        out: list[tuple[str, Optional[str]]] = []
        for alias in self.get(f"{city_name}, {state_name}, {country_name}"):
            parts = split_place_name(alias)
            out.append((parts[0], parts[1] if len(parts) > 1 else None))
        return out

    def state_aliases(self, state_name: str, country_name: str) -> list[str]:
        """Alternate names for "State, Country"."""
        return [split_place_name(alias)[0] for alias in self.get(f"{state_name}, {country_name}")]

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "PlaceAliasTable":
        entries: dict[str, list[str]] = {}
        for line in lines:
            if not line.strip():
                continue
            if has_undecodable_bytes(line):
                logger.warning("Skipping alias line with invalid UTF-8: %r", line.rstrip("\n"))
                continue
            pair = parse_alias_line(line)
            if pair is None:
                logger.debug("Skipping malformed alias line: %r", line.rstrip("\n"))
                continue
            key, alias = pair
            entries.setdefault(key, []).append(alias)
        return cls(entries)


def load_alias_table(alias_file: str | Path) -> PlaceAliasTable:
    """Load the alias file; a missing file yields an empty table."""
    path = Path(alias_file)
    if not path.exists():
        logger.warning("Place alias file %s not found, continuing without aliases", path)
        return PlaceAliasTable()
    with path.open("r", encoding="utf-8", errors="surrogateescape") as f:
        table = PlaceAliasTable.from_lines(f)
    logger.info("Loaded %d place alias keys from %s", len(table), path)
    return table


# ── Alias file sorting ────────────────────────────────────────────────

def sort_alias_lines(lines: Iterable[str]) -> list[str]:
    """
    Order alias lines for reading by country, then state, then city.
    The sort key is the canonical side with its comma parts reversed
    ("Italy, Lombardy, Milan"). A later line with the same canonical side
    replaces an earlier one.
    """
    by_key: dict[str, str] = {}
    for line in lines:
        line = line.rstrip("\r\n")
        pair = parse_alias_line(line)
        if pair is None or has_undecodable_bytes(line):
            continue
        sort_key = ", ".join(reversed(split_place_name(pair[0])))
        by_key[sort_key] = line
    return [by_key[k] for k in sorted(by_key)]


def sort_alias_file(input_file: str | Path, output_file: str | Path) -> int:
    """Write a sorted copy of the alias file. Returns the number of lines written."""
    with Path(input_file).open("r", encoding="utf-8", errors="surrogateescape") as f:
        sorted_lines = sort_alias_lines(f)
    out = Path(output_file)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        for line in sorted_lines:
            f.write(line + "\n")
    logger.info("Wrote %d sorted alias lines to %s", len(sorted_lines), out)
    return len(sorted_lines)
