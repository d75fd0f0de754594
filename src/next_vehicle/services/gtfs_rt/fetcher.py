"""GTFS-RT feed fetcher."""

from __future__ import annotations

import hashlib

import httpx

from next_vehicle.errors import NetworkError
from next_vehicle.logging import get_logger
from next_vehicle.models.realtime import FeedKind
from next_vehicle.services.http import http_get, redact_url

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 15.0


class GtfsRtFetcher:
    """Fetches GTFS-RT protobuf feeds from remote URLs."""

    def __init__(
        self,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_sec = timeout_sec
        self._transport = transport

    async def fetch(self, url: str, feed_kind: FeedKind) -> bytes:
        """Download one GTFS-RT protobuf payload.

        Args:
            url: Full URL (with API key) to fetch.
            feed_kind: Which feed is being fetched, for logging.

        Raises:
            NetworkError: On timeout, transport failure, non-2xx or empty body.
        """
        response = await http_get(
            url,
            timeout_sec=self.timeout_sec,
            label=f"{feed_kind} feed",
            transport=self._transport,
        )
        data = response.content
        if not data:
            msg = f"Empty response body for {feed_kind} feed"
            raise NetworkError(msg, status_code=response.status_code, url=redact_url(url))

        logger.info(
            "GTFS-RT feed downloaded",
            feed_kind=str(feed_kind),
            size_bytes=len(data),
            feed_hash=hashlib.sha256(data).hexdigest()[:12],
        )
        return data
