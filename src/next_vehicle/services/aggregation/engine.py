"""Aggregator: joins static schedule, discovery catalog and realtime feeds."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from next_vehicle.logging import get_logger
from next_vehicle.models.arrivals import DataSource, RealTimeArrival
from next_vehicle.models.network import Line, Stop
from next_vehicle.services.aggregation.delay import (
    classify_delay,
    compute_predicted,
    compute_scheduled_epoch,
    compute_service_date,
    line_color,
    parse_service_date,
    transport_kind,
)
from next_vehicle.services.discovery.client import extract_stop_id

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import tzinfo

    from next_vehicle.config import Settings
    from next_vehicle.models.gtfs import GtfsRoute, GtfsStopTime, GtfsTrip, StaticArchive
    from next_vehicle.models.network import DiscoveryCatalog
    from next_vehicle.models.realtime import (
        Alert,
        RealtimeSnapshot,
        TripUpdate,
        VehiclePosition,
    )

logger = get_logger(__name__)


@dataclass
class AggregationStats:
    """Counters for one aggregation pass."""

    trip_updates: int = 0
    arrivals: int = 0
    gps_tracked: int = 0
    scheduled: int = 0
    unresolved: int = 0
    expired: int = 0
    truncated: int = 0
    vehicles: int = 0
    vehicles_unassigned: int = 0
    alerts: int = 0
    skipped_entities: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "trip_updates": self.trip_updates,
            "arrivals": self.arrivals,
            "gps_tracked": self.gps_tracked,
            "scheduled": self.scheduled,
            "unresolved": self.unresolved,
            "expired": self.expired,
            "truncated": self.truncated,
            "vehicles": self.vehicles,
            "vehicles_unassigned": self.vehicles_unassigned,
            "alerts": self.alerts,
            "skipped_entities": self.skipped_entities,
        }


@dataclass(frozen=True)
class NetworkView:
    """Immutable derived view; rebuilt in full and swapped in by one assignment."""

    built_at: float
    stops: Mapping[str, Stop]
    lines: Mapping[str, Line]
    arrivals_by_stop: Mapping[str, tuple[RealTimeArrival, ...]]
    arrivals_by_line: Mapping[str, tuple[RealTimeArrival, ...]]
    vehicles_by_line: Mapping[str, tuple[VehiclePosition, ...]]
    stops_by_line: Mapping[str, tuple[str, ...]]
    alerts: tuple[Alert, ...]
    has_realtime: bool
    stats: AggregationStats = field(default_factory=AggregationStats)


class StaticIndex:
    """Lookup tables over a decoded archive, built once per archive."""

    def __init__(self, archive: StaticArchive) -> None:
        self.archive = archive
        self.routes: dict[str, GtfsRoute] = {route.route_id: route for route in archive.routes}
        self.trips: dict[str, GtfsTrip] = {trip.trip_id: trip for trip in archive.trips}
        self.stop_names: dict[str, str] = {stop.stop_id: stop.name for stop in archive.stops}

        self.by_sequence: dict[tuple[str, int], GtfsStopTime] = {}
        self.by_stop: dict[tuple[str, str], GtfsStopTime] = {}
        routes_by_stop: dict[str, set[str]] = defaultdict(set)
        for stop_time in archive.stop_times:
            self.by_sequence[(stop_time.trip_id, stop_time.stop_sequence)] = stop_time
            # First call wins for loop trips visiting a stop twice
            self.by_stop.setdefault((stop_time.trip_id, stop_time.stop_id), stop_time)
            trip = self.trips.get(stop_time.trip_id)
            if trip is not None:
                routes_by_stop[stop_time.stop_id].add(trip.route_id)
        self.routes_by_stop: dict[str, frozenset[str]] = {
            stop_id: frozenset(route_ids) for stop_id, route_ids in routes_by_stop.items()
        }

    def stop_time_for(self, update: TripUpdate, stop_id: str) -> GtfsStopTime | None:
        if update.stop_sequence is not None:
            found = self.by_sequence.get((update.trip_id, update.stop_sequence))
            if found is not None:
                return found
        return self.by_stop.get((update.trip_id, update.stop_id)) or self.by_stop.get(
            (update.trip_id, stop_id)
        )


class Aggregator:
    """Builds a NetworkView from the three cache payloads.

    Pure apart from the memoized StaticIndex: the same inputs and ``now``
    always produce the same view.
    """

    def __init__(self, settings: Settings) -> None:
        self.realtime_max_age = settings.realtime_max_age_sec
        self.early_threshold = settings.early_threshold_sec
        self.delayed_threshold = settings.delayed_threshold_sec
        self.arrival_grace = settings.arrival_grace_sec
        self.max_arrivals_per_stop = settings.max_arrivals_per_stop
        self.default_timezone = settings.agency_timezone
        self._static_index: StaticIndex | None = None

    def index_static(self, archive: StaticArchive) -> StaticIndex:
        """Return the lookup tables for ``archive``, reusing them while it is unchanged."""
        if self._static_index is None or self._static_index.archive is not archive:
            self._static_index = StaticIndex(archive)
            logger.debug(
                "Static index rebuilt",
                trips=len(self._static_index.trips),
                routes=len(self._static_index.routes),
            )
        return self._static_index

    def build(
        self,
        static: StaticArchive | None,
        catalog: DiscoveryCatalog | None,
        realtime: RealtimeSnapshot | None,
        now: float,
    ) -> NetworkView:
        index = self.index_static(static) if static is not None else None
        tz = self._timezone(static)
        stats = AggregationStats()

        lines = _build_lines(catalog, index)
        stops = _build_stops(catalog, index)

        arrivals_by_stop: dict[str, list[RealTimeArrival]] = defaultdict(list)
        vehicles_by_line: dict[str, list[VehiclePosition]] = defaultdict(list)
        alerts: tuple[Alert, ...] = ()

        if realtime is not None:
            stats.skipped_entities = realtime.skipped_entities
            stats.trip_updates = len(realtime.trip_updates)
            alerts = realtime.alerts
            stats.alerts = len(alerts)

            vehicles_by_trip = _latest_by_trip(realtime.vehicle_positions)
            for update in realtime.trip_updates:
                arrival = self._resolve(update, index, lines, vehicles_by_trip, tz, now)
                if arrival is None:
                    stats.unresolved += 1
                    continue
                if arrival.predicted_arrival < now - self.arrival_grace:
                    stats.expired += 1
                    continue
                arrivals_by_stop[arrival.stop_id].append(arrival)

            for position in realtime.vehicle_positions:
                line_id = _line_for_vehicle(position, index)
                if line_id is None:
                    stats.vehicles_unassigned += 1
                    continue
                vehicles_by_line[line_id].append(position)
                stats.vehicles += 1

        by_stop: dict[str, tuple[RealTimeArrival, ...]] = {}
        by_line: dict[str, list[RealTimeArrival]] = defaultdict(list)
        for stop_id, arrivals in arrivals_by_stop.items():
            arrivals.sort(key=lambda a: (a.predicted_arrival, a.trip_id))
            kept = arrivals[: self.max_arrivals_per_stop]
            stats.truncated += len(arrivals) - len(kept)
            by_stop[stop_id] = tuple(kept)
            for arrival in kept:
                stats.arrivals += 1
                if arrival.source is DataSource.GPS_TRACKED:
                    stats.gps_tracked += 1
                else:
                    stats.scheduled += 1
                if arrival.line_id is not None:
                    by_line[arrival.line_id].append(arrival)

        for arrivals in by_line.values():
            arrivals.sort(key=lambda a: (a.predicted_arrival, a.trip_id))

        view = NetworkView(
            built_at=now,
            stops=MappingProxyType(stops),
            lines=MappingProxyType(lines),
            arrivals_by_stop=MappingProxyType(by_stop),
            arrivals_by_line=MappingProxyType({k: tuple(v) for k, v in by_line.items()}),
            vehicles_by_line=MappingProxyType(
                {
                    line_id: tuple(sorted(positions, key=lambda p: p.vehicle_id))
                    for line_id, positions in vehicles_by_line.items()
                }
            ),
            stops_by_line=MappingProxyType(_stops_by_line(stops)),
            alerts=alerts,
            has_realtime=realtime is not None,
            stats=stats,
        )
        logger.info("Network view built", **stats.to_dict())
        return view

    def _resolve(
        self,
        update: TripUpdate,
        index: StaticIndex | None,
        lines: Mapping[str, Line],
        vehicles_by_trip: Mapping[str, VehiclePosition],
        tz: tzinfo,
        now: float,
    ) -> RealTimeArrival | None:
        stop_id = extract_stop_id(update.stop_id)
        trip = index.trips.get(update.trip_id) if index is not None else None

        scheduled = update.scheduled_arrival
        if scheduled is None and index is not None:
            stop_time = index.stop_time_for(update, stop_id)
            if stop_time is not None:
                service_date = parse_service_date(update.start_date) or compute_service_date(
                    now, tz, stop_time.arrival_sec
                )
                scheduled = compute_scheduled_epoch(service_date, stop_time.arrival_sec, tz)
        if scheduled is None:
            return None

        predicted = compute_predicted(scheduled, update.predicted_arrival, update.delay)
        delay = predicted - scheduled

        line_id = update.route_id or (trip.route_id if trip is not None else None)
        direction_id = update.direction_id
        if direction_id is None and trip is not None:
            direction_id = trip.direction_id

        line = lines.get(line_id) if line_id is not None else None
        direction = line.destination_for(direction_id) if line is not None else None
        if direction is None and trip is not None:
            direction = trip.headsign

        position = vehicles_by_trip.get(update.trip_id)
        tracked = position is not None and now - position.timestamp < self.realtime_max_age

        vehicle_id = update.vehicle_id
        if vehicle_id is None and position is not None:
            vehicle_id = position.vehicle_id

        return RealTimeArrival(
            line_id=line_id,
            stop_id=stop_id,
            trip_id=update.trip_id,
            direction=direction,
            predicted_arrival=predicted,
            scheduled_arrival=scheduled,
            delay_seconds=delay,
            delay_status=classify_delay(
                delay,
                early_threshold=self.early_threshold,
                delayed_threshold=self.delayed_threshold,
            ),
            source=DataSource.GPS_TRACKED if tracked else DataSource.SCHEDULED,
            vehicle_id=vehicle_id,
        )

    def _timezone(self, static: StaticArchive | None) -> tzinfo:
        name = (static.timezone if static is not None else None) or self.default_timezone
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "Unknown agency timezone, using default",
                timezone=name,
                default=self.default_timezone,
            )
            return ZoneInfo(self.default_timezone)


def _build_lines(catalog: DiscoveryCatalog | None, index: StaticIndex | None) -> dict[str, Line]:
    """Catalog lines enriched from static routes; static-only routes fill gaps."""
    routes = index.routes if index is not None else {}
    lines: dict[str, Line] = {}

    for line in catalog.lines if catalog is not None else ():
        route = routes.get(line.line_id)
        if route is not None:
            line = line.model_copy(
                update={"color": line_color(route.color), "kind": transport_kind(route.route_type)}
            )
        lines[line.line_id] = line

    for route_id, route in routes.items():
        if route_id in lines:
            continue
        lines[route_id] = Line(
            line_id=route_id,
            line_ref=route_id,
            code=route.short_name or route_id,
            name=route.long_name or route.short_name,
            color=line_color(route.color),
            kind=transport_kind(route.route_type),
        )
    return lines


def _build_stops(catalog: DiscoveryCatalog | None, index: StaticIndex | None) -> dict[str, Stop]:
    """Catalog stops; without a catalog, stops come from the archive."""
    if catalog is not None and catalog.stops:
        return {stop.stop_id: stop for stop in catalog.stops}
    if index is None:
        return {}
    return {
        stop.stop_id: Stop(
            stop_id=stop.stop_id,
            name=stop.name,
            latitude=stop.lat,
            longitude=stop.lon,
            lines=index.routes_by_stop.get(stop.stop_id, frozenset()),
        )
        for stop in index.archive.stops
    }


def _stops_by_line(stops: Mapping[str, Stop]) -> dict[str, tuple[str, ...]]:
    result: dict[str, list[str]] = defaultdict(list)
    for stop in stops.values():
        for line_id in stop.lines:
            result[line_id].append(stop.stop_id)
    return {line_id: tuple(sorted(stop_ids)) for line_id, stop_ids in result.items()}


def _latest_by_trip(positions: tuple[VehiclePosition, ...]) -> dict[str, VehiclePosition]:
    latest: dict[str, VehiclePosition] = {}
    for position in positions:
        existing = latest.get(position.trip_id)
        if existing is None or position.timestamp > existing.timestamp:
            latest[position.trip_id] = position
    return latest


def _line_for_vehicle(position: VehiclePosition, index: StaticIndex | None) -> str | None:
    if position.route_id:
        return position.route_id
    if index is None:
        return None
    trip = index.trips.get(position.trip_id)
    return trip.route_id if trip is not None else None


def summarize_view(view: NetworkView) -> dict[str, Any]:
    """Plain-dict counters for reporting."""
    return {
        "built_at": view.built_at,
        "stops": len(view.stops),
        "lines": len(view.lines),
        "stops_with_arrivals": len(view.arrivals_by_stop),
        "has_realtime": view.has_realtime,
        **view.stats.to_dict(),
    }
