"""GTFS ZIP reader - opens the archive and checks required tables."""

from __future__ import annotations

import io
import zipfile

from next_vehicle.errors import ArchiveError
from next_vehicle.logging import get_logger

logger = get_logger(__name__)

REQUIRED_FILES = {"stops.txt", "routes.txt", "trips.txt", "stop_times.txt"}

OPTIONAL_FILES = {"agency.txt"}


class GtfsZipReader:
    """Opens and validates a GTFS ZIP archive."""

    def __init__(self, data: bytes) -> None:
        """Initialize reader with ZIP bytes.

        Raises:
            ArchiveError: If data is not a valid ZIP or required files are missing.
        """
        try:
            self._zip = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as exc:
            msg = f"Corrupt GTFS archive: {exc}"
            raise ArchiveError(msg) from exc
        self._validate_required_files()

    def _validate_required_files(self) -> None:
        names = set(self._zip.namelist())
        missing = REQUIRED_FILES - names
        if missing:
            self._zip.close()
            msg = f"Missing required GTFS files: {sorted(missing)}"
            raise ArchiveError(msg)

        logger.info(
            "GTFS ZIP validated",
            optional_present=sorted(OPTIONAL_FILES & names),
            total_files=len(names),
        )

    def has_file(self, filename: str) -> bool:
        return filename in self._zip.namelist()

    def open_file(self, filename: str) -> io.TextIOWrapper:
        """Open a file from the ZIP archive for text reading.

        Returns:
            TextIOWrapper suitable for csv.DictReader.
        """
        try:
            binary_stream = self._zip.open(filename)
        except (zipfile.BadZipFile, KeyError) as exc:
            msg = f"Cannot open {filename} in GTFS archive: {exc}"
            raise ArchiveError(msg) from exc
        return io.TextIOWrapper(binary_stream, encoding="utf-8-sig")

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> GtfsZipReader:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
