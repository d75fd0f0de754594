"""Pure delay and line-classification helpers for the aggregator.

All functions here are stateless and free of I/O so they can be unit-tested
without a cache or settings object.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo

from next_vehicle.models.arrivals import DelayStatus
from next_vehicle.models.network import DEFAULT_LINE_COLOR, TransportKind
from next_vehicle.services.gtfs_static.normalizer import parse_hex_color

# ---------------------------------------------------------------------------
# Delay classification
# ---------------------------------------------------------------------------

# Default thresholds match the config defaults.  Pass explicit values in
# tests to avoid depending on the settings singleton.
_DEFAULT_EARLY_THRESHOLD = -60  # seconds
_DEFAULT_DELAYED_THRESHOLD = 120  # seconds


def classify_delay(
    delay_sec: int,
    *,
    early_threshold: int = _DEFAULT_EARLY_THRESHOLD,
    delayed_threshold: int = _DEFAULT_DELAYED_THRESHOLD,
) -> DelayStatus:
    """Bucket a signed delay (positive = late).

    ``delay <= early_threshold`` is early, ``delay >= delayed_threshold`` is
    delayed, anything in between is on time. With the defaults:

        -60 -> early, -59 -> on-time, 119 -> on-time, 120 -> delayed
    """
    if delay_sec <= early_threshold:
        return DelayStatus.EARLY
    if delay_sec >= delayed_threshold:
        return DelayStatus.DELAYED
    return DelayStatus.ON_TIME


def compute_predicted(
    scheduled: int,
    predicted: int | None,
    feed_delay: int | None,
) -> int:
    """Best predicted arrival instant.

    Priority:
    1. the feed's predicted instant
    2. scheduled + feed-reported delay
    3. the schedule itself
    """
    if predicted is not None:
        return predicted
    if feed_delay is not None:
        return scheduled + feed_delay
    return scheduled


# ---------------------------------------------------------------------------
# Service-day arithmetic
# ---------------------------------------------------------------------------


def parse_service_date(value: str | None) -> date | None:
    """Parse a GTFS ``YYYYMMDD`` start date; None when absent or invalid."""
    if not value or len(value) != 8 or not value.isdigit():
        return None
    try:
        return date(int(value[0:4]), int(value[4:6]), int(value[6:8]))
    except ValueError:
        return None


def compute_service_date(now: float, tz: tzinfo, arrival_sec: int) -> date:
    """Derive the service date for a stop time observed around ``now``.

    A stop time can belong to today's or yesterday's service day: 23:58:00
    seen just after midnight is yesterday's call, 25:01:30 seen late in the
    evening is tonight's. The candidate whose scheduled instant lies closest
    to ``now`` wins, today on a tie.
    """
    today = datetime.fromtimestamp(now, tz=tz).date()
    candidates = (today, today - timedelta(days=1))
    return min(
        candidates,
        key=lambda d: abs(compute_scheduled_epoch(d, arrival_sec, tz) - now),
    )


def compute_scheduled_epoch(service_date: date, arrival_sec: int, tz: tzinfo) -> int:
    """Epoch seconds of ``arrival_sec`` after the service day's reference time.

    GTFS measures stop times from "noon minus 12h", which equals local
    midnight except on daylight-saving transition days.
    """
    noon = datetime(service_date.year, service_date.month, service_date.day, 12, tzinfo=tz)
    # Aware datetime arithmetic is wall-clock; subtract on the epoch instead
    return int(noon.timestamp()) - 12 * 3600 + arrival_sec


# ---------------------------------------------------------------------------
# Line enrichment
# ---------------------------------------------------------------------------

_TRAM_ROUTE_TYPES = frozenset({0, *range(900, 907)})
_BRT_ROUTE_TYPES = frozenset({702})


def transport_kind(route_type: int | None) -> TransportKind:
    """Map a GTFS (or extended) route_type to the vehicle family."""
    if route_type in _TRAM_ROUTE_TYPES:
        return TransportKind.TRAM
    if route_type in _BRT_ROUTE_TYPES:
        return TransportKind.BRT
    return TransportKind.BUS


def line_color(hex_color: str | None) -> tuple[int, int, int]:
    """RGB triple for a route colour, grey when unset or invalid."""
    return parse_hex_color(hex_color) or DEFAULT_LINE_COLOR
