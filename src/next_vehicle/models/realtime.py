"""GTFS-Realtime records and the feed entity tagged union."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class FeedKind(StrEnum):
    """The three realtime feeds sharing the GTFS-RT schema."""

    VEHICLE_POSITIONS = "vehicle_positions"
    TRIP_UPDATES = "trip_updates"
    ALERTS = "alerts"


class TripUpdate(BaseModel):
    """Predicted call of one trip at one stop.

    ``predicted_arrival`` absent means "use schedule". ``scheduled_arrival``
    may be absent when the feed only carries a delay; the aggregator then
    resolves it from the static stop_times table.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["trip_update"] = "trip_update"
    trip_id: str
    stop_id: str
    scheduled_arrival: int | None = None
    predicted_arrival: int | None = None
    delay: int | None = None
    vehicle_id: str | None = None
    route_id: str | None = None
    direction_id: int | None = None
    start_date: str | None = None
    stop_sequence: int | None = None


class VehiclePosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["vehicle_position"] = "vehicle_position"
    vehicle_id: str
    trip_id: str
    latitude: float
    longitude: float
    timestamp: int
    route_id: str | None = None
    direction_id: int | None = None
    stop_id: str | None = None
    label: str | None = None


class Alert(BaseModel):
    """Service alert; active over ``[active_start, active_end)``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["alert"] = "alert"
    alert_id: str
    header: str
    description: str
    url: str | None = None
    route_ids: frozenset[str] = Field(default_factory=frozenset)
    stop_ids: frozenset[str] = Field(default_factory=frozenset)
    active_start: int = 0
    active_end: int | None = None
    severity: int = 0
    cause: str = "UNKNOWN_CAUSE"
    effect: str = "UNKNOWN_EFFECT"


FeedEntity = Annotated[
    Union[TripUpdate, VehiclePosition, Alert],
    Field(discriminator="kind"),
]


class DecodedFeed(BaseModel):
    """Entities decoded from one feed fetch."""

    model_config = ConfigDict(frozen=True)

    feed_kind: FeedKind
    feed_timestamp: int = 0
    entities: tuple[FeedEntity, ...] = ()
    skipped: int = 0


class RealtimeSnapshot(BaseModel):
    """Payload of the realtime tier: the three feeds merged."""

    model_config = ConfigDict(frozen=True)

    trip_updates: tuple[TripUpdate, ...] = ()
    vehicle_positions: tuple[VehiclePosition, ...] = ()
    alerts: tuple[Alert, ...] = ()
    skipped_entities: int = 0
    feed_timestamp: int = 0

    @classmethod
    def from_feeds(cls, feeds: list[DecodedFeed]) -> RealtimeSnapshot:
        """Merge decoded feeds, routing each entity by its kind."""
        trip_updates: list[TripUpdate] = []
        positions: list[VehiclePosition] = []
        alerts: list[Alert] = []
        for feed in feeds:
            for entity in feed.entities:
                if isinstance(entity, TripUpdate):
                    trip_updates.append(entity)
                elif isinstance(entity, VehiclePosition):
                    positions.append(entity)
                elif isinstance(entity, Alert):
                    alerts.append(entity)
        return cls(
            trip_updates=tuple(trip_updates),
            vehicle_positions=tuple(positions),
            alerts=tuple(alerts),
            skipped_entities=sum(feed.skipped for feed in feeds),
            feed_timestamp=max((feed.feed_timestamp for feed in feeds), default=0),
        )
