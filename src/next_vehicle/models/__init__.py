"""Domain models for the next_vehicle engine."""

from next_vehicle.models.arrivals import (
    AlertStatus,
    DataSource,
    DelayStatus,
    MatchedAlert,
    RealTimeArrival,
)
from next_vehicle.models.gtfs import GtfsRoute, GtfsStop, GtfsStopTime, GtfsTrip, StaticArchive
from next_vehicle.models.network import DiscoveryCatalog, Line, Stop, TransportKind
from next_vehicle.models.realtime import (
    Alert,
    DecodedFeed,
    FeedEntity,
    FeedKind,
    RealtimeSnapshot,
    TripUpdate,
    VehiclePosition,
)

__all__ = [
    "Alert",
    "AlertStatus",
    "DataSource",
    "DecodedFeed",
    "DelayStatus",
    "DiscoveryCatalog",
    "FeedEntity",
    "FeedKind",
    "GtfsRoute",
    "GtfsStop",
    "GtfsStopTime",
    "GtfsTrip",
    "Line",
    "MatchedAlert",
    "RealTimeArrival",
    "RealtimeSnapshot",
    "StaticArchive",
    "Stop",
    "TransportKind",
    "TripUpdate",
    "VehiclePosition",
]
