"""Aggregation of cached payloads into the queryable network view."""

from next_vehicle.services.aggregation.alerts import AlertMatcher, alert_status
from next_vehicle.services.aggregation.delay import classify_delay, transport_kind
from next_vehicle.services.aggregation.engine import Aggregator, NetworkView, StaticIndex

__all__ = [
    "AlertMatcher",
    "Aggregator",
    "NetworkView",
    "StaticIndex",
    "alert_status",
    "classify_delay",
    "transport_kind",
]
