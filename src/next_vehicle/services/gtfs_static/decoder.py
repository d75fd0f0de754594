"""Static archive decoder: GTFS ZIP bytes to a typed StaticArchive."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from next_vehicle.errors import ArchiveError
from next_vehicle.logging import get_logger
from next_vehicle.models.gtfs import StaticArchive
from next_vehicle.services.gtfs_static.normalizer import GtfsNormalizer, NormalizationError
from next_vehicle.services.gtfs_static.parser import GtfsParser
from next_vehicle.services.gtfs_static.reader import GtfsZipReader

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger(__name__)

T = TypeVar("T")


class ArchiveDecoder:
    """Decodes a whole GTFS archive; correctness is all-or-nothing.

    A single malformed row in any required table fails the decode, so a
    half-imported schedule can never replace a good cached one.
    """

    @staticmethod
    def decode(data: bytes) -> StaticArchive:
        """Decode archive bytes.

        Raises:
            ArchiveError: Corrupt zip, missing table/column, or malformed row.
        """
        with GtfsZipReader(data) as reader:
            parser = GtfsParser(reader)
            stops = _read_table(parser, "stops.txt", GtfsNormalizer.normalize_stop)
            routes = _read_table(parser, "routes.txt", GtfsNormalizer.normalize_route)
            trips = _read_table(parser, "trips.txt", GtfsNormalizer.normalize_trip)
            stop_times = _read_table(parser, "stop_times.txt", GtfsNormalizer.normalize_stop_time)
            timezone = _read_timezone(parser) if reader.has_file("agency.txt") else None

        logger.info(
            "GTFS archive decoded",
            stops=len(stops),
            routes=len(routes),
            trips=len(trips),
            stop_times=len(stop_times),
            timezone=timezone,
        )
        return StaticArchive(
            stops=tuple(stops),
            routes=tuple(routes),
            trips=tuple(trips),
            stop_times=tuple(stop_times),
            timezone=timezone,
        )


def _read_table(
    parser: GtfsParser,
    filename: str,
    normalize: Callable[[dict[str, Any]], T],
) -> list[T]:
    records: list[T] = []
    for line_num, row in parser.parse_file(filename):
        try:
            records.append(normalize(row))
        except NormalizationError as exc:
            msg = f"Malformed row in {filename} at line {line_num}: {exc}"
            raise ArchiveError(msg) from exc
    return records


def _read_timezone(parser: GtfsParser) -> str | None:
    # GTFS requires every agency of a feed to share one timezone
    for _, row in parser.parse_file("agency.txt"):
        value = (row.get("agency_timezone") or "").strip()
        if value:
            return value
    return None
