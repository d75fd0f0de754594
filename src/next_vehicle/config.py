"""Engine configuration via environment variables."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CACHE_DIR_NAME = "tbm_nvt"
STATIC_CACHE_FILENAME = "gtfs_cache.json"


def _default_cache_dir() -> Path:
    """Return the per-user cache directory ($XDG_CACHE_HOME or ~/.cache)."""
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / CACHE_DIR_NAME


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "TBM Next Vehicle"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # TBM open data access
    api_key: str = Field(
        default="opendata-bordeaux-metropole-flux-gtfs-rt",
        validation_alias=AliasChoices("TBM_API_KEY", "API_KEY"),
    )
    base_url: str = Field(
        default="https://bdx.mecatran.com/utw/ws",
        validation_alias=AliasChoices("TBM_BASE_URL", "BASE_URL"),
    )

    # SIRI-Lite discovery resources (relative to base_url)
    discovery_stops_path: str = "siri/2.0/bordeaux/stoppoints-discovery.json"
    discovery_lines_path: str = "siri/2.0/bordeaux/lines-discovery.json"

    # GTFS-RT feeds (relative to base_url)
    gtfs_vehicles_path: str = "gtfsfeed/vehicles/bordeaux"
    gtfs_trip_updates_path: str = "gtfsfeed/realtime/bordeaux"
    gtfs_alerts_path: str = "gtfsfeed/alerts/bordeaux"

    # Static GTFS archive
    gtfs_static_url: str = Field(
        default="https://transport.data.gouv.fr/resources/83024/download",
        validation_alias=AliasChoices("STATIC_GTFS_URL", "GTFS_STATIC_URL"),
    )

    # Cache tiers
    static_max_age_sec: int = Field(
        default=15 * 24 * 3600,
        gt=0,
        validation_alias=AliasChoices("STATIC_MAX_AGE", "STATIC_MAX_AGE_SEC"),
    )
    metadata_max_age_sec: int = Field(
        default=3600,
        gt=0,
        validation_alias=AliasChoices("METADATA_MAX_AGE", "METADATA_MAX_AGE_SEC"),
    )
    realtime_max_age_sec: int = Field(
        default=30,
        gt=0,
        validation_alias=AliasChoices("REALTIME_MAX_AGE", "REALTIME_MAX_AGE_SEC"),
    )
    cache_dir: Path = Field(default_factory=_default_cache_dir)

    # HTTP
    request_timeout_sec: float = Field(
        default=15.0,
        gt=0,
        validation_alias=AliasChoices("REQUEST_TIMEOUT", "REQUEST_TIMEOUT_SEC"),
    )
    static_request_timeout_sec: float = Field(default=60.0, gt=0)

    # Arrivals
    agency_timezone: str = "Europe/Paris"
    early_threshold_sec: int = -60
    delayed_threshold_sec: int = 120
    arrival_grace_sec: int = Field(default=120, ge=0)
    max_arrivals_per_stop: int = Field(default=10, ge=1)

    @property
    def static_cache_path(self) -> Path:
        """Location of the static-tier disk mirror."""
        return self.cache_dir / STATIC_CACHE_FILENAME

    @property
    def discovery_stops_url(self) -> str:
        """Get full stop discovery URL with account key."""
        return _with_api_key(self._join(self.discovery_stops_path), self.api_key, "AccountKey")

    @property
    def discovery_lines_url(self) -> str:
        """Get full line discovery URL with account key."""
        return _with_api_key(self._join(self.discovery_lines_path), self.api_key, "AccountKey")

    @property
    def gtfs_vehicles_url(self) -> str:
        """Get full vehicle positions URL with API key."""
        return _with_api_key(self._join(self.gtfs_vehicles_path), self.api_key, "apiKey")

    @property
    def gtfs_trip_updates_url(self) -> str:
        """Get full trip updates URL with API key."""
        return _with_api_key(self._join(self.gtfs_trip_updates_path), self.api_key, "apiKey")

    @property
    def gtfs_alerts_url(self) -> str:
        """Get full service alerts URL with API key."""
        return _with_api_key(self._join(self.gtfs_alerts_path), self.api_key, "apiKey")

    def _join(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


def _with_api_key(url: str, api_key: str, param: str) -> str:
    """Return URL with api key injected unless already present."""
    if not api_key:
        return url

    parsed = urlparse(url)
    query_pairs = parse_qsl(parsed.query, keep_blank_values=True)
    if any(key.lower() == param.lower() for key, _ in query_pairs):
        return url

    query_pairs.append((param, api_key))
    new_query = urlencode(query_pairs)
    return urlunparse(parsed._replace(query=new_query))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
