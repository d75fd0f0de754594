"""Test fixtures for GTFS-RT protobuf data."""

from __future__ import annotations

import time

from google.transit import gtfs_realtime_pb2


def _new_feed(feed_timestamp: int | None) -> gtfs_realtime_pb2.FeedMessage:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    feed.header.timestamp = feed_timestamp or int(time.time())
    return feed


def build_trip_update_feed(
    trip_id: str = "A-0800",
    route_id: str = "59",
    stop_updates: list[dict] | None = None,
    feed_timestamp: int | None = None,
    direction_id: int | None = None,
    start_date: str = "",
    vehicle_id: str = "",
    schedule_relationship: int = 0,  # SCHEDULED
) -> bytes:
    """Build a serialized FeedMessage with a TripUpdate entity.

    Args:
        trip_id: The trip identifier.
        route_id: The route identifier.
        stop_updates: List of dicts with keys: stop_id, stop_sequence,
            arrival_delay, arrival_time, schedule_relationship.
        feed_timestamp: Unix timestamp for the feed header.
        direction_id: Optional trip direction flag.
        start_date: Optional YYYYMMDD service date.
        vehicle_id: Optional vehicle descriptor id.
        schedule_relationship: Trip schedule relationship (3 = CANCELED).

    Returns:
        Serialized protobuf bytes.
    """
    feed = _new_feed(feed_timestamp)

    entity = feed.entity.add()
    entity.id = f"tu_{trip_id}"
    tu = entity.trip_update
    tu.trip.trip_id = trip_id
    tu.trip.route_id = route_id
    tu.trip.schedule_relationship = schedule_relationship
    if direction_id is not None:
        tu.trip.direction_id = direction_id
    if start_date:
        tu.trip.start_date = start_date
    if vehicle_id:
        tu.vehicle.id = vehicle_id

    if stop_updates is None:
        stop_updates = [
            {"stop_id": "3692", "stop_sequence": 1, "arrival_delay": 60,
             "arrival_time": 1_700_000_060},
            {"stop_id": "3701", "stop_sequence": 2, "arrival_delay": 120,
             "arrival_time": 1_700_000_420},
        ]

    for su in stop_updates:
        stu = tu.stop_time_update.add()
        if su.get("stop_id"):
            stu.stop_id = su["stop_id"]
        if "stop_sequence" in su:
            stu.stop_sequence = su["stop_sequence"]
        if "schedule_relationship" in su:
            stu.schedule_relationship = su["schedule_relationship"]
        if "arrival_delay" in su:
            stu.arrival.delay = su["arrival_delay"]
        if "arrival_time" in su:
            stu.arrival.time = su["arrival_time"]

    return feed.SerializeToString()


def build_vehicle_position_feed(
    vehicle_id: str = "tram_1204",
    trip_id: str = "A-0800",
    route_id: str = "59",
    lat: float = 44.8449,
    lon: float = -0.5736,
    bearing: float = 90.0,
    speed: float = 8.5,
    timestamp: int | None = None,
    feed_timestamp: int | None = None,
) -> bytes:
    """Build a serialized FeedMessage with a VehiclePosition entity."""
    feed = _new_feed(feed_timestamp)

    entity = feed.entity.add()
    entity.id = f"vp_{vehicle_id}"
    vp = entity.vehicle
    vp.vehicle.id = vehicle_id
    vp.vehicle.label = f"Rame {vehicle_id}"
    if trip_id:
        vp.trip.trip_id = trip_id
        vp.trip.route_id = route_id
    vp.position.latitude = lat
    vp.position.longitude = lon
    vp.position.bearing = bearing
    vp.position.speed = speed
    vp.current_stop_sequence = 3
    vp.current_status = 1  # STOPPED_AT
    vp.stop_id = "3692"
    if timestamp:
        vp.timestamp = timestamp

    return feed.SerializeToString()


def build_alert_feed(
    alert_id: str = "alert_001",
    cause: int = 3,  # TECHNICAL_PROBLEM
    effect: int = 3,  # SIGNIFICANT_DELAYS
    header: str = "Perturbation Tram A",
    description: str = "Trafic ralenti entre Quinconces et Gambetta.",
    route_id: str = "59",
    stop_id: str = "",
    active_start: int | None = None,
    active_end: int | None = None,
    feed_timestamp: int | None = None,
) -> bytes:
    """Build a serialized FeedMessage with an Alert entity."""
    feed = _new_feed(feed_timestamp)

    entity = feed.entity.add()
    entity.id = alert_id
    alert = entity.alert
    alert.cause = cause
    alert.effect = effect

    ts = alert.header_text.translation.add()
    ts.text = header
    ts.language = "fr"

    ds = alert.description_text.translation.add()
    ds.text = description
    ds.language = "fr"

    if active_start or active_end:
        period = alert.active_period.add()
        if active_start:
            period.start = active_start
        if active_end:
            period.end = active_end

    ie = alert.informed_entity.add()
    if route_id:
        ie.route_id = route_id
    if stop_id:
        ie.stop_id = stop_id

    return feed.SerializeToString()


def build_empty_feed(feed_timestamp: int | None = None) -> bytes:
    """Build an empty FeedMessage with no entities."""
    return _new_feed(feed_timestamp).SerializeToString()


def build_feed_with_malformed_entity(feed_timestamp: int | None = None) -> bytes:
    """Build a feed holding one good TripUpdate and one entity with no payload."""
    feed = _new_feed(feed_timestamp)

    good = feed.entity.add()
    good.id = "tu_good"
    good.trip_update.trip.trip_id = "A-0800"
    stu = good.trip_update.stop_time_update.add()
    stu.stop_id = "3692"
    stu.arrival.time = 1_700_000_000

    empty = feed.entity.add()
    empty.id = "empty_entity"

    return feed.SerializeToString()


def build_multi_entity_trip_update_feed(
    count: int = 5, feed_timestamp: int | None = None
) -> bytes:
    """Build a FeedMessage with multiple TripUpdate entities."""
    feed = _new_feed(feed_timestamp)

    for i in range(count):
        entity = feed.entity.add()
        entity.id = f"tu_trip_{i:03d}"
        tu = entity.trip_update
        tu.trip.trip_id = f"trip_{i:03d}"
        tu.trip.route_id = f"route_{i:03d}"

        stu = tu.stop_time_update.add()
        stu.stop_id = f"stop_{i:03d}"
        stu.stop_sequence = 1
        stu.arrival.delay = i * 30
        stu.arrival.time = 1_700_000_000 + i * 60

    return feed.SerializeToString()
