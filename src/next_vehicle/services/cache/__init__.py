"""Tiered cache for static, metadata and realtime payloads."""

from next_vehicle.services.cache.manager import CacheCategory, CacheManager
from next_vehicle.services.cache.store import StaticCacheFile
from next_vehicle.services.cache.tier import CacheEntry, CacheState, CacheTier, TierStatus

__all__ = [
    "CacheCategory",
    "CacheEntry",
    "CacheManager",
    "CacheState",
    "CacheTier",
    "StaticCacheFile",
    "TierStatus",
]
