"""
Central configuration loaded from environment variables with sensible defaults.
Paths are resolved relative to the working directory the tools are run from.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class DatasetConfig:
    # countries.csv / states.csv / cities.csv live here
    dataset_dir: str = os.getenv(
        "LOCATION_DATASET_DIR", "./submodules/countries-states-cities-database/csv"
    )
    alias_file: str = os.getenv("PLACE_ALIAS_FILE", "./data/place_alias.txt")
    alias_sorted_file: str = os.getenv("PLACE_ALIAS_SORTED_FILE", "./data/place_alias_sorted.txt")


@dataclass(frozen=True)
class MatchingConfig:
    # unique | first
    partial_match_policy: str = os.getenv("PARTIAL_MATCH_POLICY", "unique")
    # Countries too large to resolve without a state
    skip_countries: tuple[str, ...] = field(
        default_factory=lambda: _env_list("PARTIAL_MATCH_SKIP_COUNTRIES", "United States")
    )
    # Countries whose subdivision naming is too inconsistent to reconcile
    override_countries: tuple[str, ...] = field(
        default_factory=lambda: _env_list("PARTIAL_MATCH_OVERRIDE_COUNTRIES", "United Kingdom")
    )


@dataclass(frozen=True)
class MapperConfig:
    # Unmatched org locations seen fewer times than this are not reported
    min_report_count: int = int(os.getenv("MAPPER_MIN_REPORT_COUNT", "10"))


@dataclass(frozen=True)
class APIConfig:
    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("API_PORT", "8000"))


@dataclass(frozen=True)
class Settings:
    dataset: DatasetConfig = field(default_factory=DatasetConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    mapper: MapperConfig = field(default_factory=MapperConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    env: str = os.getenv("APP_ENV", "development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
