"""Derived arrival and alert-match records (never persisted)."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from next_vehicle.models.realtime import Alert


class DataSource(StrEnum):
    GPS_TRACKED = "gps-tracked"
    SCHEDULED = "scheduled"


class DelayStatus(StrEnum):
    EARLY = "early"
    ON_TIME = "on-time"
    DELAYED = "delayed"


class AlertStatus(StrEnum):
    ACTIVE = "active"
    FUTURE = "future"


class RealTimeArrival(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_id: str | None
    stop_id: str
    trip_id: str
    direction: str | None
    predicted_arrival: int
    scheduled_arrival: int
    delay_seconds: int
    delay_status: DelayStatus
    source: DataSource
    vehicle_id: str | None = None

    def seconds_until(self, now: float) -> int:
        """Seconds from ``now`` to the predicted arrival (negative once passed)."""
        return int(self.predicted_arrival - now)


class MatchedAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    alert: Alert
    status: AlertStatus
