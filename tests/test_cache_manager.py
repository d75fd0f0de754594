"""Tests for the three-tier cache manager and disk seeding."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import pytest

from next_vehicle.errors import NetworkError
from next_vehicle.models.gtfs import StaticArchive
from next_vehicle.models.network import DiscoveryCatalog
from next_vehicle.models.realtime import RealtimeSnapshot
from next_vehicle.services.cache.manager import CacheCategory, CacheManager
from next_vehicle.services.cache.store import StaticCacheFile
from next_vehicle.services.cache.tier import CacheState
from next_vehicle.services.gtfs_static.decoder import ArchiveDecoder

from .fixtures.gtfs_fixture import build_gtfs_zip

if TYPE_CHECKING:
    from pathlib import Path

    from next_vehicle.config import Settings

    from .conftest import FakeClock

DAY = 24 * 3600


class Sources:
    """Counting fetch callables for the three tiers."""

    def __init__(self, archive: StaticArchive) -> None:
        self.archive = archive
        self.calls = {"static": 0, "metadata": 0, "realtime": 0}
        self.fail_static = False

    async def static(self) -> StaticArchive:
        self.calls["static"] += 1
        if self.fail_static:
            raise NetworkError("archive host down")
        return self.archive

    async def metadata(self) -> DiscoveryCatalog:
        self.calls["metadata"] += 1
        return DiscoveryCatalog()

    async def realtime(self) -> RealtimeSnapshot:
        self.calls["realtime"] += 1
        return RealtimeSnapshot()


@pytest.fixture
def archive() -> StaticArchive:
    return ArchiveDecoder.decode(build_gtfs_zip())


@pytest.fixture
def sources(archive: StaticArchive) -> Sources:
    return Sources(archive)


def _manager(
    settings: Settings,
    sources: Sources,
    clock: FakeClock,
    static_file: StaticCacheFile | None = None,
) -> CacheManager:
    return CacheManager(
        settings,
        static_fetch=sources.static,
        metadata_fetch=sources.metadata,
        realtime_fetch=sources.realtime,
        static_file=static_file,
        clock=clock,
    )


def _write_mirror(path: Path, archive: StaticArchive, fetched_at: float) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {"payload": archive.model_dump(mode="json"), "fetchedAtEpochSeconds": fetched_at}
    path.write_text(json.dumps(document), encoding="utf-8")


class TestTierPolicies:
    async def test_tier_max_ages_come_from_settings(
        self, settings: Settings, sources: Sources, clock: FakeClock
    ) -> None:
        manager = _manager(settings, sources, clock)

        assert manager.static.max_age == 15 * DAY
        assert manager.metadata.max_age == 3600
        assert manager.realtime.max_age == 30

    async def test_realtime_refetched_after_thirty_seconds(
        self, settings: Settings, sources: Sources, clock: FakeClock
    ) -> None:
        manager = _manager(settings, sources, clock)

        await manager.get(CacheCategory.REALTIME)
        clock.advance(29)
        await manager.get(CacheCategory.REALTIME)
        clock.advance(1)
        await manager.get("realtime")

        assert sources.calls["realtime"] == 2

    async def test_status_reports_every_category(
        self, settings: Settings, sources: Sources, clock: FakeClock
    ) -> None:
        manager = _manager(settings, sources, clock)
        await manager.get(CacheCategory.METADATA)

        status = manager.status()

        assert set(status) == {"static", "metadata", "realtime"}
        assert status["metadata"].state is CacheState.FRESH
        assert status["static"].state is CacheState.EMPTY

    async def test_hung_static_download_hits_tier_deadline(
        self, settings: Settings, sources: Sources, clock: FakeClock
    ) -> None:
        async def hang() -> StaticArchive:
            await asyncio.sleep(10)
            return sources.archive

        tight = settings.model_copy(update={"static_request_timeout_sec": 0.005})
        manager = CacheManager(
            tight,
            static_fetch=hang,
            metadata_fetch=sources.metadata,
            realtime_fetch=sources.realtime,
            clock=clock,
        )

        with pytest.raises(NetworkError, match="static refresh exceeded"):
            await manager.get(CacheCategory.STATIC)
        assert manager.static.state is CacheState.EMPTY


class TestStaticMirror:

    async def test_sixteen_day_old_mirror_is_stale_and_fetched_once(
        self,
        settings: Settings,
        sources: Sources,
        clock: FakeClock,
        archive: StaticArchive,
    ) -> None:
        _write_mirror(settings.static_cache_path, archive, clock.now - 16 * DAY)
        manager = _manager(settings, sources, clock, StaticCacheFile(settings.static_cache_path))

        assert manager.static.state is CacheState.STALE

        await manager.get(CacheCategory.STATIC)
        await manager.get(CacheCategory.STATIC)

        assert sources.calls["static"] == 1
        assert manager.static.state is CacheState.FRESH

    async def test_recent_mirror_served_without_fetch(
        self,
        settings: Settings,
        sources: Sources,
        clock: FakeClock,
        archive: StaticArchive,
    ) -> None:
        _write_mirror(settings.static_cache_path, archive, clock.now - 2 * DAY)
        manager = _manager(settings, sources, clock, StaticCacheFile(settings.static_cache_path))

        entry = await manager.get(CacheCategory.STATIC)

        assert sources.calls["static"] == 0
        assert entry.payload == archive

    async def test_corrupt_mirror_starts_empty(
        self, settings: Settings, sources: Sources, clock: FakeClock
    ) -> None:
        settings.static_cache_path.parent.mkdir(parents=True)
        settings.static_cache_path.write_text('{"payload": {"stops": 7}}', encoding="utf-8")

        manager = _manager(settings, sources, clock, StaticCacheFile(settings.static_cache_path))

        assert manager.static.state is CacheState.EMPTY

    async def test_invalid_payload_starts_empty(
        self, settings: Settings, sources: Sources, clock: FakeClock
    ) -> None:
        settings.static_cache_path.parent.mkdir(parents=True)
        document = {"payload": {"stops": [{"stop_id": 1}]}, "fetchedAtEpochSeconds": clock.now}
        settings.static_cache_path.write_text(json.dumps(document), encoding="utf-8")

        manager = _manager(settings, sources, clock, StaticCacheFile(settings.static_cache_path))

        assert manager.static.state is CacheState.EMPTY

    async def test_successful_fetch_writes_mirror(
        self,
        settings: Settings,
        sources: Sources,
        clock: FakeClock,
        archive: StaticArchive,
    ) -> None:
        store = StaticCacheFile(settings.static_cache_path)
        manager = _manager(settings, sources, clock, store)

        await manager.get(CacheCategory.STATIC)

        loaded = store.load()
        assert loaded is not None
        payload, fetched_at = loaded
        assert fetched_at == clock.now
        assert StaticArchive.model_validate(payload) == archive

    async def test_failed_fetch_keeps_stale_mirror(
        self,
        settings: Settings,
        sources: Sources,
        clock: FakeClock,
        archive: StaticArchive,
    ) -> None:
        _write_mirror(settings.static_cache_path, archive, clock.now - 16 * DAY)
        manager = _manager(settings, sources, clock, StaticCacheFile(settings.static_cache_path))
        sources.fail_static = True

        entry = await manager.get(CacheCategory.STATIC)

        assert entry.payload == archive
        assert manager.static.state is CacheState.STALE

    async def test_write_failure_does_not_break_refresh(
        self,
        settings: Settings,
        sources: Sources,
        clock: FakeClock,
        tmp_path: Path,
        archive: StaticArchive,
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        manager = _manager(settings, sources, clock, StaticCacheFile(blocker / "gtfs_cache.json"))

        entry = await manager.get(CacheCategory.STATIC)

        assert entry.payload == archive
        assert manager.static.state is CacheState.FRESH

    async def test_only_static_tier_persists(
        self, settings: Settings, sources: Sources, clock: FakeClock
    ) -> None:
        manager = _manager(settings, sources, clock, StaticCacheFile(settings.static_cache_path))

        await manager.get(CacheCategory.METADATA)
        await manager.get(CacheCategory.REALTIME)

        assert not settings.static_cache_path.exists()
