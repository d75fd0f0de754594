"""Cache manager: the static, metadata and realtime tiers behind one owner."""

from __future__ import annotations

import time
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from next_vehicle.errors import CacheIOError
from next_vehicle.logging import get_logger
from next_vehicle.models.gtfs import StaticArchive
from next_vehicle.models.network import DiscoveryCatalog
from next_vehicle.models.realtime import RealtimeSnapshot
from next_vehicle.services.cache.store import StaticCacheFile
from next_vehicle.services.cache.tier import CacheEntry, CacheTier, TierStatus

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from next_vehicle.config import Settings

logger = get_logger(__name__)


class CacheCategory(StrEnum):
    STATIC = "static"
    METADATA = "metadata"
    REALTIME = "realtime"


class CacheManager:
    """Owns every cache entry and the static tier's disk mirror.

    Only the static tier is persisted; metadata and realtime live in memory.
    On construction the static tier is seeded from disk, so a mirror older
    than ``static_max_age_sec`` starts Stale and triggers one archive fetch
    on first read.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        static_fetch: Callable[[], Awaitable[StaticArchive]],
        metadata_fetch: Callable[[], Awaitable[DiscoveryCatalog]],
        realtime_fetch: Callable[[], Awaitable[RealtimeSnapshot]],
        static_file: StaticCacheFile | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._static_file = static_file
        self.static: CacheTier[StaticArchive] = CacheTier(
            CacheCategory.STATIC,
            static_fetch,
            max_age=settings.static_max_age_sec,
            clock=clock,
            fetch_timeout=settings.static_request_timeout_sec * 2,
            on_store=self._persist_static if static_file is not None else None,
        )
        self.metadata: CacheTier[DiscoveryCatalog] = CacheTier(
            CacheCategory.METADATA,
            metadata_fetch,
            max_age=settings.metadata_max_age_sec,
            clock=clock,
            fetch_timeout=settings.request_timeout_sec * 2,
        )
        self.realtime: CacheTier[RealtimeSnapshot] = CacheTier(
            CacheCategory.REALTIME,
            realtime_fetch,
            max_age=settings.realtime_max_age_sec,
            clock=clock,
            fetch_timeout=settings.request_timeout_sec * 2,
        )

        if static_file is not None:
            self._seed_static(static_file)

    def tier(self, category: CacheCategory | str) -> CacheTier[Any]:
        category = CacheCategory(category)
        if category is CacheCategory.STATIC:
            return self.static
        if category is CacheCategory.METADATA:
            return self.metadata
        return self.realtime

    async def get(self, category: CacheCategory | str) -> CacheEntry[Any]:
        return await self.tier(category).get()

    async def refresh(
        self, category: CacheCategory | str, *, force: bool = False
    ) -> CacheEntry[Any]:
        return await self.tier(category).refresh(force=force)

    def status(self) -> dict[str, TierStatus]:
        return {
            str(category): self.tier(category).status()
            for category in CacheCategory
        }

    def _seed_static(self, static_file: StaticCacheFile) -> None:
        loaded = static_file.load()
        if loaded is None:
            return

        payload, fetched_at = loaded
        try:
            archive = StaticArchive.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "Ignoring static cache file with invalid payload",
                path=str(static_file.path),
                errors=exc.error_count(),
            )
            return

        self.static.seed(archive, fetched_at)

    def _persist_static(self, entry: CacheEntry[StaticArchive]) -> None:
        if self._static_file is None:
            return
        try:
            self._static_file.save(entry.payload.model_dump(mode="json"), entry.fetched_at)
        except CacheIOError as exc:
            logger.warning(
                "Static cache not persisted, continuing in memory",
                path=exc.path,
                error=str(exc),
            )
