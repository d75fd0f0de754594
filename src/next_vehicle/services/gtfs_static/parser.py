"""GTFS CSV parser with header-name column validation."""

from __future__ import annotations

import csv
import zipfile
from typing import TYPE_CHECKING, Any

from next_vehicle.errors import ArchiveError
from next_vehicle.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterator

    from next_vehicle.services.gtfs_static.reader import GtfsZipReader

logger = get_logger(__name__)

# Required columns per GTFS file (subset we need)
REQUIRED_COLUMNS: dict[str, set[str]] = {
    "stops.txt": {"stop_id", "stop_name", "stop_lat", "stop_lon"},
    "routes.txt": {"route_id"},
    "trips.txt": {"route_id", "service_id", "trip_id"},
    "stop_times.txt": {"trip_id", "arrival_time", "stop_id", "stop_sequence"},
    "agency.txt": {"agency_timezone"},
}


class GtfsParser:
    """Parses GTFS CSV files row by row, keyed by header name.

    Column order is not assumed; unknown columns are carried through and
    ignored by the normalizer.
    """

    def __init__(self, reader: GtfsZipReader) -> None:
        self._reader = reader

    def parse_file(self, filename: str) -> Iterator[tuple[int, dict[str, Any]]]:
        """Yield ``(line_number, row)`` pairs for a GTFS table.

        Raises:
            ArchiveError: If the table is empty, unreadable or misses required columns.
        """
        text_io = self._reader.open_file(filename)
        csv_reader = csv.DictReader(text_io)

        try:
            fieldnames = csv_reader.fieldnames
        except (csv.Error, UnicodeDecodeError, zipfile.BadZipFile) as exc:
            msg = f"Unreadable header in {filename}: {exc}"
            raise ArchiveError(msg) from exc

        if fieldnames is None:
            msg = f"Empty CSV file: {filename}"
            raise ArchiveError(msg)

        actual_columns = {name.strip() for name in fieldnames}
        required = REQUIRED_COLUMNS.get(filename, set())
        missing = required - actual_columns
        if missing:
            msg = f"Missing required columns in {filename}: {sorted(missing)}"
            raise ArchiveError(msg)

        logger.debug(
            "Parsing GTFS file",
            filename=filename,
            extra_columns=sorted(actual_columns - required) or None,
        )

        try:
            for row in csv_reader:
                yield csv_reader.line_num, {
                    (key.strip() if key else key): value for key, value in row.items()
                }
        except (csv.Error, UnicodeDecodeError, zipfile.BadZipFile) as exc:
            msg = f"Malformed CSV in {filename} near line {csv_reader.line_num}: {exc}"
            raise ArchiveError(msg) from exc

