"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from next_vehicle.config import Settings

# 2023-11-14 22:13:20 UTC, a Tuesday
FIXED_NOW = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock injected wherever ``time.time`` is used."""

    def __init__(self, now: float = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment and the user's cache directory."""
    return Settings(
        api_key="test-key",
        base_url="https://tbm.test/utw/ws",
        gtfs_static_url="https://static.test/gtfs.zip",
        cache_dir=tmp_path / "cache",
        environment="development",
    )
