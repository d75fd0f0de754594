"""Alert matcher: which alerts affect a line or stop right now."""

from __future__ import annotations

from typing import TYPE_CHECKING

from next_vehicle.models.arrivals import AlertStatus, MatchedAlert
from next_vehicle.services.discovery.client import extract_stop_id

if TYPE_CHECKING:
    from collections.abc import Iterable

    from next_vehicle.models.network import Line
    from next_vehicle.models.realtime import Alert


def alert_status(alert: Alert, now: float) -> AlertStatus | None:
    """Status over ``[active_start, active_end)``; None once expired."""
    if now < alert.active_start:
        return AlertStatus.FUTURE
    if alert.active_end is None or now < alert.active_end:
        return AlertStatus.ACTIVE
    return None


class AlertMatcher:
    """Stateless; statuses are recomputed against ``now`` on every call."""

    @staticmethod
    def match(
        alerts: Iterable[Alert],
        *,
        now: float,
        line: Line | None = None,
        stop_id: str | None = None,
    ) -> list[MatchedAlert]:
        """Return alerts touching the selection, active ones first.

        A line matches an alert's route set by id or short code; a stop
        matches by raw or extracted id. With no selection every live alert
        is returned.
        """
        line_keys = {line.line_id, line.code} if line is not None else set()
        stop_keys = {stop_id, extract_stop_id(stop_id)} if stop_id is not None else set()

        matched: list[MatchedAlert] = []
        for alert in alerts:
            if line_keys or stop_keys:
                hits_line = bool(line_keys & alert.route_ids)
                alert_stops = {*alert.stop_ids, *map(extract_stop_id, alert.stop_ids)}
                hits_stop = bool(stop_keys & alert_stops)
                if not (hits_line or hits_stop):
                    continue
            status = alert_status(alert, now)
            if status is None:
                continue
            matched.append(MatchedAlert(alert=alert, status=status))

        matched.sort(
            key=lambda m: (
                m.status is not AlertStatus.ACTIVE,
                -m.alert.severity,
                m.alert.active_start,
                m.alert.alert_id,
            )
        )
        return matched
