"""Tests for GtfsParser - CSV column validation and streaming."""

from __future__ import annotations

import pytest

from next_vehicle.errors import ArchiveError
from next_vehicle.services.gtfs_static.parser import GtfsParser
from next_vehicle.services.gtfs_static.reader import GtfsZipReader

from .fixtures.gtfs_fixture import build_gtfs_zip


def _rows(zip_bytes: bytes, filename: str) -> list[dict]:
    with GtfsZipReader(zip_bytes) as reader:
        return [row for _, row in GtfsParser(reader).parse_file(filename)]


class TestGtfsParser:
    """Tests for CSV parsing and column validation."""

    def test_stops_file_yields_rows(self) -> None:
        rows = _rows(build_gtfs_zip(), "stops.txt")

        assert len(rows) == 3
        assert rows[0]["stop_id"] == "3692"
        assert rows[0]["stop_name"] == "Quinconces"

    def test_routes_file_yields_rows(self) -> None:
        rows = _rows(build_gtfs_zip(), "routes.txt")

        assert len(rows) == 3
        assert rows[0]["route_id"] == "59"
        assert rows[0]["route_color"] == "81197F"

    def test_stop_times_file_yields_line_numbers(self) -> None:
        with GtfsZipReader(build_gtfs_zip()) as reader:
            parsed = list(GtfsParser(reader).parse_file("stop_times.txt"))

        assert len(parsed) == 10
        first_line, first_row = parsed[0]
        assert first_line == 2  # header is line 1
        assert first_row["arrival_time"] == "08:00:00"

    def test_columns_looked_up_by_name_not_position(self) -> None:
        stops = "stop_lon,stop_name,stop_id,stop_lat\n-0.57,Quinconces,3692,44.84\n"
        rows = _rows(build_gtfs_zip(stops=stops), "stops.txt")
        assert rows[0]["stop_id"] == "3692"
        assert rows[0]["stop_lat"] == "44.84"

    def test_header_whitespace_is_stripped(self) -> None:
        stops = "stop_id, stop_name ,stop_lat,stop_lon\n3692,Quinconces,44.84,-0.57\n"
        rows = _rows(build_gtfs_zip(stops=stops), "stops.txt")
        assert rows[0]["stop_name"] == "Quinconces"

    def test_missing_required_column_raises(self) -> None:
        bad_stops = "stop_id,stop_name\n3692,Quinconces\n"
        with pytest.raises(ArchiveError, match="stop_lat"):
            _rows(build_gtfs_zip(stops=bad_stops), "stops.txt")

    def test_empty_file_raises(self) -> None:
        with pytest.raises(ArchiveError, match="Empty CSV"):
            _rows(build_gtfs_zip(trips=""), "trips.txt")

    def test_header_only_parses_zero_rows(self) -> None:
        empty_stops = "stop_id,stop_name,stop_lat,stop_lon\n"
        assert _rows(build_gtfs_zip(stops=empty_stops), "stops.txt") == []

    def test_extra_columns_carried_through(self) -> None:
        rows = _rows(build_gtfs_zip(), "stops.txt")
        assert "location_type" in rows[0]

    def test_stop_times_missing_column_raises(self) -> None:
        bad_st = "trip_id,stop_id\nA-0800,3692\n"
        with pytest.raises(ArchiveError, match="arrival_time"):
            _rows(build_gtfs_zip(stop_times=bad_st), "stop_times.txt")
