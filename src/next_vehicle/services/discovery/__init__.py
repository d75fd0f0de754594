"""Stop and line discovery (SIRI-Lite)."""

from next_vehicle.services.discovery.client import (
    DiscoveryClient,
    extract_line_id,
    extract_stop_id,
)

__all__ = ["DiscoveryClient", "extract_line_id", "extract_stop_id"]
