"""Static GTFS archive pipeline: fetch, read, parse, normalize, decode."""

from next_vehicle.services.gtfs_static.decoder import ArchiveDecoder
from next_vehicle.services.gtfs_static.fetcher import GtfsStaticFetcher
from next_vehicle.services.gtfs_static.normalizer import GtfsNormalizer
from next_vehicle.services.gtfs_static.parser import GtfsParser
from next_vehicle.services.gtfs_static.reader import GtfsZipReader

__all__ = [
    "ArchiveDecoder",
    "GtfsNormalizer",
    "GtfsParser",
    "GtfsStaticFetcher",
    "GtfsZipReader",
]
