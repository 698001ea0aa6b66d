"""
Location text normalization.

Every lookup key in the index is built from fragments produced here, so the
same rules must apply to canonical names and to untrusted input.
"""

from __future__ import annotations

import unicodedata
from typing import Optional


def normalize_location_str(location_str: str) -> str:
    """
    Normalize a place name into a key fragment.
    Rules:
      1. Compatibility-decompose (NFKD) so accents split off their base letter
      2. Keep ASCII letters, digits and spaces; drop accents, punctuation, control chars
      3. Collapse whitespace runs and join words with underscores
      4. Lowercase

    "São Paulo" -> "sao_paulo", "Île-de-France" -> "iledefrance".
    Underscores count as word separators, so the result is a fixed point.
    """
    decomposed = unicodedata.normalize("NFKD", location_str).replace("_", " ")
    kept = "".join(c for c in decomposed if c.isascii() and (c.isalnum() or c == " "))
    return "_".join(kept.split()).lower()


def location_key(
    normalized_city: Optional[str] = None,
    normalized_state: Optional[str] = None,
    normalized_country: Optional[str] = None,
) -> str:
    """Join the present fragments in city, state, country order."""
    parts = [p for p in (normalized_city, normalized_state, normalized_country) if p is not None]
    return "_".join(parts)


def has_undecodable_bytes(text: str) -> bool:
    """
    True when text read with errors="surrogateescape" carried bytes that are
    not valid UTF-8. Such rows and lines are skipped rather than guessed at.
    """
    return any("\udc80" <= c <= "\udcff" for c in text)
