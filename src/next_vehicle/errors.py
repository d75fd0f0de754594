"""Exception hierarchy for the next_vehicle engine."""

from __future__ import annotations


class NextVehicleError(Exception):
    """Base exception for all engine errors."""


class NetworkError(NextVehicleError):
    """HTTP-level failure (timeout, DNS, connection, non-2xx).

    Retryable by the caller's refresh policy; clients never retry internally.
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = True,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.retryable = retryable
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class DecodeError(NextVehicleError):
    """A response envelope could not be decoded (protobuf or JSON)."""

    def __init__(self, message: str, *, feed: str = "") -> None:
        self.feed = feed
        super().__init__(message)


class ArchiveError(NextVehicleError):
    """Static GTFS archive is corrupt or incomplete."""


class CacheIOError(NextVehicleError):
    """Cache file could not be read or written."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class NoDataAvailableError(NextVehicleError):
    """No payload exists for a category and nothing can be served."""

    def __init__(self, category: str, message: str | None = None) -> None:
        self.category = category
        super().__init__(message or f"No {category} data available")
