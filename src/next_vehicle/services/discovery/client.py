"""SIRI-Lite discovery client for the TBM stop and line catalogs."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from next_vehicle.config import Settings, get_settings
from next_vehicle.errors import DecodeError
from next_vehicle.logging import get_logger
from next_vehicle.models.network import DiscoveryCatalog, Line, Stop
from next_vehicle.services.http import http_get

logger = get_logger(__name__)


def extract_stop_id(full_id: str) -> str:
    """Reduce a SIRI stop point reference to the GTFS stop id.

    Examples:
        "bordeaux:StopPoint:BP:3692:LOC" -> "3692"
        "TBM:StopPoint:5220:LOC" -> "5220"
        "5220" -> "5220"
    """
    if "BP:" in full_id:
        return full_id.split("BP:", 1)[1].split(":", 1)[0]
    parts = full_id.split(":")
    if len(parts) >= 2:
        return parts[-2]
    return full_id


def extract_line_id(line_ref: str) -> str | None:
    """Return the GTFS route id carried by a line ref ("bordeaux:Line:59:LOC" -> "59")."""
    parts = line_ref.split(":")
    if len(parts) < 3:
        return None
    return parts[2]


def _value(node: Any, *path: str | int) -> Any:
    """Walk nested SIRI JSON; returns None on any missing step."""
    for step in path:
        if isinstance(step, int):
            if not isinstance(node, list) or len(node) <= step:
                return None
        elif not isinstance(node, dict):
            return None
        node = node[step] if isinstance(step, int) else node.get(step)
    return node


class DiscoveryClient:
    """Fetches and maps the stop-point and line discovery catalogs.

    No retries here: the metadata cache tier decides when to try again.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._stops_url = settings.discovery_stops_url
        self._lines_url = settings.discovery_lines_url
        self._timeout_sec = settings.request_timeout_sec
        self._transport = transport

    async def fetch_catalog(self) -> DiscoveryCatalog:
        stops, lines = await asyncio.gather(self.fetch_stops(), self.fetch_lines())
        return DiscoveryCatalog(stops=tuple(stops), lines=tuple(lines))

    async def fetch_stops(self) -> list[Stop]:
        """Fetch the stop catalog.

        Raises:
            NetworkError: On timeout, transport failure or non-2xx.
            DecodeError: On invalid JSON, missing envelope or no usable stop.
        """
        payload = await self._get_json(self._stops_url, "stop discovery")
        stop_points = _value(payload, "Siri", "StopPointsDelivery", "AnnotatedStopPointRef")
        if not isinstance(stop_points, list):
            msg = "Missing or invalid stop points data in discovery response"
            raise DecodeError(msg, feed="stops")

        stops = [stop for stop in map(_map_stop, stop_points) if stop is not None]
        if not stops:
            msg = "No valid stops found in discovery response"
            raise DecodeError(msg, feed="stops")

        logger.info(
            "Stop catalog fetched",
            stops=len(stops),
            skipped=len(stop_points) - len(stops),
        )
        return stops

    async def fetch_lines(self) -> list[Line]:
        """Fetch the line catalog.

        Raises:
            NetworkError: On timeout, transport failure or non-2xx.
            DecodeError: On invalid JSON, missing envelope or no usable line.
        """
        payload = await self._get_json(self._lines_url, "line discovery")
        line_refs = _value(payload, "Siri", "LinesDelivery", "AnnotatedLineRef")
        if not isinstance(line_refs, list):
            msg = "Missing or invalid lines data in discovery response"
            raise DecodeError(msg, feed="lines")

        lines = [line for line in map(_map_line, line_refs) if line is not None]
        if not lines:
            msg = "No valid lines found in discovery response"
            raise DecodeError(msg, feed="lines")

        logger.info("Line catalog fetched", lines=len(lines), skipped=len(line_refs) - len(lines))
        return lines

    async def _get_json(self, url: str, label: str) -> Any:
        response = await http_get(
            url,
            timeout_sec=self._timeout_sec,
            label=label,
            transport=self._transport,
        )
        try:
            return response.json()
        except ValueError as exc:
            msg = f"Invalid JSON in {label} response"
            raise DecodeError(msg, feed=label) from exc


def _map_stop(node: Any) -> Stop | None:
    full_id = _value(node, "StopPointRef", "value")
    name = _value(node, "StopName", "value")
    latitude = _value(node, "Location", "latitude")
    longitude = _value(node, "Location", "longitude")
    if not isinstance(full_id, str) or not isinstance(name, str):
        return None
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        return None

    lines: set[str] = set()
    for entry in _value(node, "Lines") or []:
        ref = _value(entry, "value")
        if isinstance(ref, str):
            lines.add(extract_line_id(ref) or ref)

    return Stop(
        stop_id=extract_stop_id(full_id),
        name=name,
        latitude=float(latitude),
        longitude=float(longitude),
        lines=frozenset(lines),
    )


def _map_line(node: Any) -> Line | None:
    line_ref = _value(node, "LineRef", "value")
    name = _value(node, "LineName", 0, "value")
    code = _value(node, "LineCode", "value")
    if not isinstance(line_ref, str) or not isinstance(name, str) or not isinstance(code, str):
        return None

    outbound: str | None = None
    inbound: str | None = None
    for destination in _value(node, "Destinations") or []:
        direction = str(_value(destination, "DirectionRef", "value"))
        place = _value(destination, "PlaceName", 0, "value")
        if not isinstance(place, str):
            continue
        if direction == "0":
            outbound = place
        elif direction == "1":
            inbound = place

    return Line(
        line_id=extract_line_id(line_ref) or line_ref,
        line_ref=line_ref,
        code=code,
        name=name,
        destinations=(outbound, inbound),
    )
