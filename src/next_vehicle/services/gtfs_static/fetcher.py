"""GTFS static archive fetcher with ZIP validation."""

from __future__ import annotations

import hashlib
import io
import zipfile
from pathlib import Path

import httpx

from next_vehicle.errors import ArchiveError
from next_vehicle.logging import get_logger
from next_vehicle.services.http import http_get, redact_url

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 60.0

# ZIP magic bytes
ZIP_MAGIC = b"PK\x03\x04"


class GtfsStaticFetcher:
    """Fetches the static GTFS archive from a remote URL or local path.

    Retry policy belongs to the cache tier; a failed fetch is reported once.
    """

    def __init__(
        self,
        url: str,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout_sec = timeout_sec
        self._transport = transport

    async def fetch(self) -> bytes:
        """Download the GTFS ZIP.

        Raises:
            NetworkError: On timeout, transport failure or non-2xx status.
            ArchiveError: If the response is not a valid ZIP.
        """
        logger.info("Fetching GTFS static archive", url=redact_url(self.url))
        response = await http_get(
            self.url,
            timeout_sec=self.timeout_sec,
            label="GTFS static archive",
            transport=self._transport,
        )
        data = response.content
        self._validate_zip(data)
        logger.info(
            "GTFS archive downloaded",
            size_bytes=len(data),
            archive_hash=hashlib.sha256(data).hexdigest()[:12],
        )
        return data

    def fetch_local(self, path: str | Path) -> bytes:
        """Read a GTFS ZIP from the local filesystem.

        Raises:
            FileNotFoundError: If path does not exist.
            ArchiveError: If file is not a valid ZIP.
        """
        path = Path(path)
        if not path.exists():
            msg = f"Local GTFS file not found: {path}"
            raise FileNotFoundError(msg)

        data = path.read_bytes()
        self._validate_zip(data)
        logger.info("GTFS archive loaded from local file", path=str(path), size_bytes=len(data))
        return data

    @staticmethod
    def _validate_zip(data: bytes) -> None:
        """Validate that data starts with ZIP magic bytes."""
        if len(data) < 4 or data[:4] != ZIP_MAGIC:
            msg = "Downloaded content is not a valid ZIP file"
            raise ArchiveError(msg)
        if not zipfile.is_zipfile(io.BytesIO(data)):
            msg = "Downloaded content is not a valid ZIP file"
            raise ArchiveError(msg)
