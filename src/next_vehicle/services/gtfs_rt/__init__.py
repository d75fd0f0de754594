"""GTFS-Realtime pipeline for TBM feeds."""

from next_vehicle.services.gtfs_rt.client import RealtimeFeedClient
from next_vehicle.services.gtfs_rt.decoder import GtfsRtDecoder
from next_vehicle.services.gtfs_rt.fetcher import GtfsRtFetcher
from next_vehicle.services.gtfs_rt.normalizer import GtfsRtNormalizer

__all__ = [
    "GtfsRtDecoder",
    "GtfsRtFetcher",
    "GtfsRtNormalizer",
    "RealtimeFeedClient",
]
