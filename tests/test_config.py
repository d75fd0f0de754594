"""Tests for environment-driven settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from next_vehicle.config import Settings

if TYPE_CHECKING:
    from pathlib import Path

    import pytest


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
        settings = Settings(_env_file=None)

        assert settings.static_max_age_sec == 15 * 24 * 3600
        assert settings.metadata_max_age_sec == 3600
        assert settings.realtime_max_age_sec == 30
        assert settings.request_timeout_sec == 15.0
        assert settings.static_cache_path == tmp_path / "tbm_nvt" / "gtfs_cache.json"

    def test_env_aliases(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STATIC_MAX_AGE", "60")
        monkeypatch.setenv("REALTIME_MAX_AGE", "10")
        monkeypatch.setenv("REQUEST_TIMEOUT", "2.5")
        monkeypatch.setenv("TBM_API_KEY", "secret")
        settings = Settings(_env_file=None)

        assert settings.static_max_age_sec == 60
        assert settings.realtime_max_age_sec == 10
        assert settings.request_timeout_sec == 2.5
        assert settings.api_key == "secret"

    def test_feed_urls_carry_api_key(self, settings: Settings) -> None:
        assert settings.gtfs_vehicles_url == (
            "https://tbm.test/utw/ws/gtfsfeed/vehicles/bordeaux?apiKey=test-key"
        )
        trip_updates = settings.gtfs_trip_updates_url
        assert trip_updates.endswith("/gtfsfeed/realtime/bordeaux?apiKey=test-key")
        assert settings.gtfs_alerts_url.endswith("/gtfsfeed/alerts/bordeaux?apiKey=test-key")

    def test_discovery_urls_carry_account_key(self, settings: Settings) -> None:
        assert settings.discovery_stops_url == (
            "https://tbm.test/utw/ws/siri/2.0/bordeaux/stoppoints-discovery.json"
            "?AccountKey=test-key"
        )
        assert "lines-discovery.json?AccountKey=test-key" in settings.discovery_lines_url

    def test_existing_key_not_duplicated(self) -> None:
        settings = Settings(
            _env_file=None,
            api_key="test-key",
            gtfs_vehicles_path="gtfsfeed/vehicles/bordeaux?apiKey=other",
        )
        assert settings.gtfs_vehicles_url.count("apiKey") == 1
