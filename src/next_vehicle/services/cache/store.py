"""On-disk mirror for the static cache tier."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from next_vehicle.errors import CacheIOError
from next_vehicle.logging import get_logger

logger = get_logger(__name__)

PAYLOAD_KEY = "payload"
FETCHED_AT_KEY = "fetchedAtEpochSeconds"


class StaticCacheFile:
    """Reads and writes ``{"payload": ..., "fetchedAtEpochSeconds": ...}``.

    A missing, unreadable or structurally invalid file loads as ``None``
    (the tier starts Empty). Writes go to a sibling temp file that is then
    renamed over the target, so readers never observe a partial file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> tuple[dict[str, Any], float] | None:
        """Return ``(payload, fetched_at)`` or None when nothing usable is on disk."""
        if not self.path.exists():
            logger.info("No static cache file", path=str(self.path))
            return None

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning(
                "Ignoring unreadable static cache file", path=str(self.path), error=str(exc)
            )
            return None

        if not isinstance(raw, dict):
            logger.warning("Ignoring static cache file with bad envelope", path=str(self.path))
            return None

        payload = raw.get(PAYLOAD_KEY)
        fetched_at = raw.get(FETCHED_AT_KEY)
        if not isinstance(payload, dict) or isinstance(fetched_at, bool) or not isinstance(
            fetched_at, (int, float)
        ):
            logger.warning(
                "Ignoring static cache file with missing fields",
                path=str(self.path),
                keys=sorted(raw),
            )
            return None

        return payload, float(fetched_at)

    def save(self, payload: dict[str, Any], fetched_at: float) -> None:
        """Atomically replace the cache file.

        Raises:
            CacheIOError: The directory or file could not be written.
        """
        document = {PAYLOAD_KEY: payload, FETCHED_AT_KEY: fetched_at}
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                json.dump(document, handle, separators=(",", ":"))
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            msg = f"Cannot write static cache file {self.path}: {exc}"
            raise CacheIOError(msg, path=str(self.path)) from exc

        logger.info("Static cache file written", path=str(self.path))
