"""GTFS-RT protobuf decode layer."""

from __future__ import annotations

from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.transit import gtfs_realtime_pb2

from next_vehicle.errors import DecodeError
from next_vehicle.logging import get_logger
from next_vehicle.models.realtime import FeedKind

logger = get_logger(__name__)


class GtfsRtDecoder:
    """Decodes raw protobuf bytes into GTFS-RT FeedMessage objects."""

    @staticmethod
    def decode(data: bytes, feed_kind: FeedKind) -> gtfs_realtime_pb2.FeedMessage:
        """Decode the feed envelope.

        Raises:
            DecodeError: If protobuf parsing fails.
        """
        try:
            feed = gtfs_realtime_pb2.FeedMessage()
            feed.ParseFromString(data)
        except ProtobufDecodeError as exc:
            msg = f"Failed to decode {feed_kind} protobuf"
            logger.error(msg, feed_kind=str(feed_kind), error=str(exc))
            raise DecodeError(msg, feed=str(feed_kind)) from exc

        logger.info(
            "GTFS-RT feed decoded",
            feed_kind=str(feed_kind),
            entity_count=len(feed.entity),
            feed_timestamp=GtfsRtDecoder.get_feed_timestamp(feed),
            gtfs_rt_version=feed.header.gtfs_realtime_version,
        )
        return feed

    @staticmethod
    def get_feed_timestamp(feed: gtfs_realtime_pb2.FeedMessage) -> int:
        """Extract the header timestamp (seconds), or 0 if not set."""
        return feed.header.timestamp if feed.header.timestamp else 0
