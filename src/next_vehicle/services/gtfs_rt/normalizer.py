"""GTFS-RT normalizer: protobuf entities to typed feed records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from next_vehicle.logging import get_logger
from next_vehicle.models.realtime import (
    Alert,
    DecodedFeed,
    FeedEntity,
    FeedKind,
    TripUpdate,
    VehiclePosition,
)

if TYPE_CHECKING:
    from google.transit import gtfs_realtime_pb2  # type: ignore[import-untyped]

logger = get_logger(__name__)

# TripDescriptor.ScheduleRelationship
TRIP_CANCELED = 3

# StopTimeUpdate.ScheduleRelationship
STOP_SKIPPED = 1
STOP_NO_DATA = 2

CAUSE_MAP = {
    1: "UNKNOWN_CAUSE",
    2: "OTHER_CAUSE",
    3: "TECHNICAL_PROBLEM",
    4: "STRIKE",
    5: "DEMONSTRATION",
    6: "ACCIDENT",
    7: "HOLIDAY",
    8: "WEATHER",
    9: "MAINTENANCE",
    10: "CONSTRUCTION",
    11: "POLICE_ACTIVITY",
    12: "MEDICAL_EMERGENCY",
}

EFFECT_MAP = {
    1: "NO_SERVICE",
    2: "REDUCED_SERVICE",
    3: "SIGNIFICANT_DELAYS",
    4: "DETOUR",
    5: "ADDITIONAL_SERVICE",
    6: "MODIFIED_SERVICE",
    7: "OTHER_EFFECT",
    8: "UNKNOWN_EFFECT",
    9: "STOP_MOVED",
    10: "NO_EFFECT",
    11: "ACCESSIBILITY_ISSUE",
}


class MalformedEntityError(Exception):
    """Raised for a single feed entity that cannot be converted."""


def _get_translation(translated_string: Any) -> str:
    """Extract first translation text from a TranslatedString, or empty string."""
    if translated_string and translated_string.translation:
        return str(translated_string.translation[0].text)
    return ""


class GtfsRtNormalizer:
    """Converts a decoded FeedMessage into FeedEntity records.

    One bad entity never discards the feed: it is skipped and counted in
    ``DecodedFeed.skipped``.
    """

    @staticmethod
    def normalize(feed: gtfs_realtime_pb2.FeedMessage, feed_kind: FeedKind) -> DecodedFeed:
        feed_ts = feed.header.timestamp if feed.header.timestamp else 0
        entities: list[FeedEntity] = []
        skipped = 0

        for entity in feed.entity:
            try:
                if entity.HasField("trip_update"):
                    updates, bad_updates = _trip_updates(entity.trip_update)
                    entities.extend(updates)
                    skipped += bad_updates
                elif entity.HasField("vehicle"):
                    entities.append(_vehicle_position(entity.vehicle, feed_ts))
                elif entity.HasField("alert"):
                    entities.append(_alert(entity.id, entity.alert))
                else:
                    raise MalformedEntityError("entity carries no payload")
            except (MalformedEntityError, ValueError) as exc:
                skipped += 1
                logger.debug(
                    "Skipping malformed GTFS-RT entity",
                    feed_kind=str(feed_kind),
                    entity_id=entity.id,
                    error=str(exc),
                )

        if skipped:
            logger.warning(
                "Skipped malformed GTFS-RT entities",
                feed_kind=str(feed_kind),
                skipped=skipped,
                kept=len(entities),
            )

        return DecodedFeed(
            feed_kind=feed_kind,
            feed_timestamp=feed_ts,
            entities=tuple(entities),
            skipped=skipped,
        )


def _trip_updates(tu: Any) -> tuple[list[TripUpdate], int]:
    """Expand a TripUpdate entity into one record per stop time update.

    Returns:
        (records, number of stop time updates skipped as malformed)
    """
    trip_id = tu.trip.trip_id
    if not trip_id:
        raise MalformedEntityError("trip update without trip_id")
    if tu.trip.schedule_relationship == TRIP_CANCELED:
        return [], 0

    route_id = tu.trip.route_id or None
    direction_id = tu.trip.direction_id if tu.trip.HasField("direction_id") else None
    start_date = tu.trip.start_date or None
    vehicle_id = tu.vehicle.id if tu.HasField("vehicle") and tu.vehicle.id else None

    records: list[TripUpdate] = []
    bad = 0
    for stu in tu.stop_time_update:
        if not stu.stop_id:
            bad += 1
            continue
        if stu.schedule_relationship == STOP_SKIPPED:
            continue

        event = None
        if stu.HasField("arrival"):
            event = stu.arrival
        elif stu.HasField("departure"):
            event = stu.departure

        event_time = event.time if event is not None and event.time else None
        delay = event.delay if event is not None and event.HasField("delay") else None

        scheduled: int | None = None
        predicted: int | None = None
        if stu.schedule_relationship == STOP_NO_DATA:
            # Times carried without realtime data are timetable times
            scheduled = event_time
            delay = None
        elif event_time is not None:
            predicted = event_time
            scheduled = event_time - (delay or 0)

        records.append(
            TripUpdate(
                trip_id=trip_id,
                stop_id=stu.stop_id,
                scheduled_arrival=scheduled,
                predicted_arrival=predicted,
                delay=delay,
                vehicle_id=vehicle_id,
                route_id=route_id,
                direction_id=direction_id,
                start_date=start_date,
                stop_sequence=stu.stop_sequence if stu.HasField("stop_sequence") else None,
            )
        )
    return records, bad


def _vehicle_position(vp: Any, feed_ts: int) -> VehiclePosition:
    vehicle_id = vp.vehicle.id if vp.HasField("vehicle") else ""
    if not vehicle_id:
        raise MalformedEntityError("vehicle position without vehicle id")

    trip_id = vp.trip.trip_id if vp.HasField("trip") else ""
    if not trip_id:
        raise MalformedEntityError(f"vehicle {vehicle_id} not assigned to a trip")

    if not vp.HasField("position"):
        raise MalformedEntityError(f"vehicle {vehicle_id} has no position")

    observed_at = vp.timestamp or feed_ts
    if not observed_at:
        raise MalformedEntityError(f"vehicle {vehicle_id} has no observation time")

    return VehiclePosition(
        vehicle_id=vehicle_id,
        trip_id=trip_id,
        latitude=vp.position.latitude,
        longitude=vp.position.longitude,
        timestamp=observed_at,
        route_id=vp.trip.route_id or None,
        direction_id=vp.trip.direction_id if vp.trip.HasField("direction_id") else None,
        stop_id=vp.stop_id or None,
        label=vp.vehicle.label or None,
    )


def _alert(alert_id: str, alert: Any) -> Alert:
    if not alert_id:
        raise MalformedEntityError("alert without id")

    route_ids: set[str] = set()
    stop_ids: set[str] = set()
    for informed in alert.informed_entity:
        if informed.route_id:
            route_ids.add(informed.route_id)
        if informed.stop_id:
            stop_ids.add(informed.stop_id)

    start = 0
    end: int | None = None
    if alert.active_period:
        period = alert.active_period[0]
        start = period.start if period.start else 0
        end = period.end if period.end else None

    return Alert(
        alert_id=alert_id,
        header=_get_translation(alert.header_text) or "No title",
        description=_get_translation(alert.description_text) or "No description available",
        url=_get_translation(alert.url) or None,
        route_ids=frozenset(route_ids),
        stop_ids=frozenset(stop_ids),
        active_start=start,
        active_end=end,
        severity=alert.severity_level if alert.HasField("severity_level") else 0,
        cause=CAUSE_MAP.get(alert.cause, "UNKNOWN_CAUSE"),
        effect=EFFECT_MAP.get(alert.effect, "UNKNOWN_EFFECT"),
    )
