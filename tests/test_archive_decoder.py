"""Tests for ArchiveDecoder - whole-archive decode, all-or-nothing."""

from __future__ import annotations

import pytest

from next_vehicle.errors import ArchiveError
from next_vehicle.services.gtfs_static.decoder import ArchiveDecoder

from .fixtures.gtfs_fixture import (
    STOP_TIMES_TXT,
    build_empty_csv_zip,
    build_gtfs_zip,
    build_invalid_zip,
)


class TestArchiveDecoder:
    def test_decodes_every_table(self) -> None:
        archive = ArchiveDecoder.decode(build_gtfs_zip())

        assert [s.stop_id for s in archive.stops] == ["3692", "3701", "5220"]
        assert {r.route_id for r in archive.routes} == {"59", "22", "702"}
        assert len(archive.trips) == 4
        assert len(archive.stop_times) == 10
        assert archive.timezone == "Europe/Paris"

    def test_overnight_stop_time_kept_above_one_day(self) -> None:
        archive = ArchiveDecoder.decode(build_gtfs_zip())
        night = [st for st in archive.stop_times if st.trip_id == "L1-NIGHT"]
        assert night[0].arrival_sec == 90090

    def test_timezone_absent_without_agency(self) -> None:
        archive = ArchiveDecoder.decode(build_gtfs_zip(agency=None))
        assert archive.timezone is None

    def test_header_only_tables_decode_empty(self) -> None:
        archive = ArchiveDecoder.decode(build_empty_csv_zip())
        assert archive.stops == ()
        assert archive.stop_times == ()

    def test_malformed_row_fails_whole_decode(self) -> None:
        bad = STOP_TIMES_TXT + "A-0800,8h30,8h30,3692,4,0,0\n"
        with pytest.raises(ArchiveError, match=r"stop_times\.txt at line 12"):
            ArchiveDecoder.decode(build_gtfs_zip(stop_times=bad))

    def test_missing_table_fails(self) -> None:
        with pytest.raises(ArchiveError, match=r"trips\.txt"):
            ArchiveDecoder.decode(build_gtfs_zip(exclude_files={"trips.txt"}))

    def test_not_a_zip_fails(self) -> None:
        with pytest.raises(ArchiveError):
            ArchiveDecoder.decode(build_invalid_zip())
