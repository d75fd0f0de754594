"""Realtime feed client: fetch, decode and merge the three GTFS-RT feeds."""

from __future__ import annotations

import asyncio

import httpx

from next_vehicle.config import Settings, get_settings
from next_vehicle.logging import get_logger
from next_vehicle.models.realtime import DecodedFeed, FeedKind, RealtimeSnapshot
from next_vehicle.services.gtfs_rt.decoder import GtfsRtDecoder
from next_vehicle.services.gtfs_rt.fetcher import GtfsRtFetcher
from next_vehicle.services.gtfs_rt.normalizer import GtfsRtNormalizer

logger = get_logger(__name__)


class RealtimeFeedClient:
    """Fetches vehicle positions, trip updates and alerts as one snapshot.

    The three feeds are fetched concurrently. A snapshot is all-or-nothing:
    if any feed fails, the first error propagates and the cache tier keeps
    serving its previous snapshot.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._fetcher = GtfsRtFetcher(
            timeout_sec=settings.request_timeout_sec,
            transport=transport,
        )
        self._feed_urls = {
            FeedKind.VEHICLE_POSITIONS: settings.gtfs_vehicles_url,
            FeedKind.TRIP_UPDATES: settings.gtfs_trip_updates_url,
            FeedKind.ALERTS: settings.gtfs_alerts_url,
        }

    async def fetch_feed(self, feed_kind: FeedKind) -> DecodedFeed:
        """Fetch and decode a single feed.

        Raises:
            NetworkError: If the download fails.
            DecodeError: If the envelope is not a valid FeedMessage.
        """
        data = await self._fetcher.fetch(self._feed_urls[feed_kind], feed_kind)
        feed = GtfsRtDecoder.decode(data, feed_kind)
        return GtfsRtNormalizer.normalize(feed, feed_kind)

    async def fetch_snapshot(self) -> RealtimeSnapshot:
        feeds = await asyncio.gather(*(self.fetch_feed(kind) for kind in self._feed_urls))
        snapshot = RealtimeSnapshot.from_feeds(list(feeds))
        logger.info(
            "Realtime snapshot assembled",
            trip_updates=len(snapshot.trip_updates),
            vehicle_positions=len(snapshot.vehicle_positions),
            alerts=len(snapshot.alerts),
            skipped_entities=snapshot.skipped_entities,
        )
        return snapshot
