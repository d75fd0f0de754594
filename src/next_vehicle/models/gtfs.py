"""Typed records decoded from the static GTFS archive."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class GtfsStop(BaseModel):
    model_config = ConfigDict(frozen=True)

    stop_id: str
    name: str
    lat: float
    lon: float


class GtfsRoute(BaseModel):
    model_config = ConfigDict(frozen=True)

    route_id: str
    short_name: str
    long_name: str
    route_type: int | None = None
    color: str | None = None


class GtfsTrip(BaseModel):
    model_config = ConfigDict(frozen=True)

    trip_id: str
    route_id: str
    service_id: str
    direction_id: int | None = None
    headsign: str | None = None


class GtfsStopTime(BaseModel):
    """One scheduled call; ``arrival_sec`` counts from service-day midnight."""

    model_config = ConfigDict(frozen=True)

    trip_id: str
    stop_id: str
    stop_sequence: int
    arrival_sec: int


class StaticArchive(BaseModel):
    """Payload of the static tier: the decoded schedule archive."""

    model_config = ConfigDict(frozen=True)

    stops: tuple[GtfsStop, ...] = ()
    routes: tuple[GtfsRoute, ...] = ()
    trips: tuple[GtfsTrip, ...] = ()
    stop_times: tuple[GtfsStopTime, ...] = ()
    timezone: str | None = None
