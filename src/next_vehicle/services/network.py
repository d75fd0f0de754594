"""Network service: refresh cycle and read-only queries over the network view."""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import TYPE_CHECKING, Any

import httpx

from next_vehicle.config import Settings, get_settings
from next_vehicle.errors import NextVehicleError, NoDataAvailableError
from next_vehicle.logging import bind_refresh_context, clear_refresh_context, get_logger
from next_vehicle.models.network import Line
from next_vehicle.services.aggregation.alerts import AlertMatcher
from next_vehicle.services.aggregation.engine import Aggregator, NetworkView, summarize_view
from next_vehicle.services.cache.manager import CacheCategory, CacheManager
from next_vehicle.services.cache.store import StaticCacheFile
from next_vehicle.services.discovery.client import DiscoveryClient, extract_stop_id
from next_vehicle.services.gtfs_rt.client import RealtimeFeedClient
from next_vehicle.services.gtfs_static.decoder import ArchiveDecoder
from next_vehicle.services.gtfs_static.fetcher import GtfsStaticFetcher

if TYPE_CHECKING:
    from collections.abc import Callable

    from next_vehicle.models.arrivals import MatchedAlert, RealTimeArrival
    from next_vehicle.models.gtfs import StaticArchive
    from next_vehicle.models.network import Stop
    from next_vehicle.models.realtime import VehiclePosition
    from next_vehicle.services.cache.tier import TierStatus

logger = get_logger(__name__)

STATUS_OK = "ok"
STATUS_STALE = "stale"
STATUS_ERROR = "error"


class NetworkService:
    """Front door of the engine.

    ``refresh()`` is triggered by the host (timer, key press, ...); there is
    no internal scheduler. Queries read the last built view and never block
    on the network.

    Usage:
        service = NetworkService()
        report = await service.refresh()
        arrivals = service.get_arrivals("3692", line_id="59")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        cache: CacheManager | None = None,
        clock: Callable[[], float] = time.time,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._settings = settings
        self._clock = clock
        self._aggregator = Aggregator(settings)
        self._view: NetworkView | None = None
        self._refresh_count = 0

        if cache is None:
            static_fetcher = GtfsStaticFetcher(
                settings.gtfs_static_url,
                timeout_sec=settings.static_request_timeout_sec,
                transport=transport,
            )
            discovery = DiscoveryClient(settings, transport=transport)
            realtime = RealtimeFeedClient(settings, transport=transport)

            async def fetch_static() -> StaticArchive:
                data = await static_fetcher.fetch()
                return await asyncio.to_thread(ArchiveDecoder.decode, data)

            cache = CacheManager(
                settings,
                static_fetch=fetch_static,
                metadata_fetch=discovery.fetch_catalog,
                realtime_fetch=realtime.fetch_snapshot,
                static_file=StaticCacheFile(settings.static_cache_path),
                clock=clock,
            )
        self._cache = cache

    @property
    def view(self) -> NetworkView | None:
        return self._view

    @property
    def cache(self) -> CacheManager:
        return self._cache

    async def refresh(self, *, force: bool = False) -> dict[str, Any]:
        """Refresh every tier concurrently and rebuild the view.

        Client errors never escape: each category is reported as ``ok``,
        ``stale`` (served from a previous payload) or ``error``.

        Returns:
            Report dict with per-category results and view counters.
        """
        refresh_id = str(uuid.uuid4())[:8]
        self._refresh_count += 1
        bind_refresh_context(refresh_id=refresh_id)
        try:
            logger.info("Starting refresh cycle", refresh_count=self._refresh_count, force=force)
            results = await asyncio.gather(
                *(self._refresh_category(category, force) for category in CacheCategory)
            )
            report: dict[str, Any] = {
                "refresh_id": refresh_id,
                "refresh_count": self._refresh_count,
                "categories": dict(zip((str(c) for c in CacheCategory), results)),
            }

            view = self._aggregator.build(
                _payload(self._cache.static.entry),
                _payload(self._cache.metadata.entry),
                _payload(self._cache.realtime.entry),
                now=self._clock(),
            )
            self._view = view
            report["view"] = summarize_view(view)
            logger.info("Refresh cycle complete", report=report)
            return report
        finally:
            clear_refresh_context()

    async def _refresh_category(self, category: CacheCategory, force: bool) -> dict[str, Any]:
        """Refresh one tier; isolated so one failing source never blocks the others."""
        tier = self._cache.tier(category)
        errors_before = tier.status().error_count
        result: dict[str, Any] = {
            "status": STATUS_ERROR,
            "state": None,
            "age_seconds": None,
            "error": None,
        }

        try:
            entry = await tier.refresh(force=force)
        except NextVehicleError as exc:
            result["error"] = str(exc)
            result["state"] = str(tier.status().state)
            return result

        status = tier.status()
        failed = status.error_count > errors_before
        stale = failed or not entry.is_fresh(self._clock())
        result["status"] = STATUS_STALE if stale else STATUS_OK
        result["state"] = str(status.state)
        result["age_seconds"] = status.age_seconds
        result["error"] = status.last_error if failed else None
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_arrivals(self, stop_id: str, line_id: str | None = None) -> list[RealTimeArrival]:
        """Upcoming arrivals at a stop, soonest first.

        Raises:
            NoDataAvailableError: No realtime payload has ever been fetched.
        """
        view = self._require_view()
        if not view.has_realtime:
            raise NoDataAvailableError(str(CacheCategory.REALTIME))

        arrivals = view.arrivals_by_stop.get(stop_id) or view.arrivals_by_stop.get(
            extract_stop_id(stop_id), ()
        )
        cutoff = self._clock() - self._settings.arrival_grace_sec
        selected = [a for a in arrivals if a.predicted_arrival >= cutoff]

        if line_id is not None:
            line = self._find_line(view, line_id)
            wanted = line.line_id if line is not None else line_id
            selected = [a for a in selected if a.line_id == wanted]
        return selected

    def get_stop(self, stop_id: str) -> Stop | None:
        view = self._require_view()
        return view.stops.get(stop_id) or view.stops.get(extract_stop_id(stop_id))

    def get_line(self, line_id: str) -> Line | None:
        """Look a line up by id, discovery ref or short code."""
        return self._find_line(self._require_view(), line_id)

    def get_alerts_for(
        self,
        line_id: str | None = None,
        stop_id: str | None = None,
    ) -> list[MatchedAlert]:
        view = self._require_view()
        line: Line | None = None
        if line_id is not None:
            line = self._find_line(view, line_id) or Line(
                line_id=line_id, line_ref=line_id, code=line_id, name=line_id
            )
        return AlertMatcher.match(view.alerts, now=self._clock(), line=line, stop_id=stop_id)

    def cache_status(self) -> dict[str, TierStatus]:
        return self._cache.status()

    def find_stops(self, name: str) -> list[Stop]:
        """Stops whose name matches ``name``; exact (case-insensitive) matches first."""
        view = self._require_view()
        needle = name.strip().casefold()
        if not needle:
            return []
        exact = [s for s in view.stops.values() if s.name.casefold() == needle]
        partial = [
            s for s in view.stops.values() if needle in s.name.casefold() and s not in exact
        ]
        return sorted(exact, key=lambda s: s.stop_id) + sorted(
            partial, key=lambda s: (s.name.casefold(), s.stop_id)
        )

    def find_lines(self, query: str) -> list[Line]:
        """Lines matching ``query`` by code, id or name; exact matches first."""
        view = self._require_view()
        needle = query.strip().casefold()
        if not needle:
            return []

        def exact(line: Line) -> bool:
            return needle in (line.code.casefold(), line.line_id.casefold(), line.name.casefold())

        exact_hits = [line for line in view.lines.values() if exact(line)]
        partial_hits = [
            line
            for line in view.lines.values()
            if not exact(line)
            and (needle in line.name.casefold() or needle in line.code.casefold())
        ]
        return sorted(exact_hits, key=lambda line: line.line_id) + sorted(
            partial_hits, key=lambda line: (line.code.casefold(), line.line_id)
        )

    def stops_for_line(self, line_id: str) -> list[Stop]:
        view = self._require_view()
        line = self._find_line(view, line_id)
        key = line.line_id if line is not None else line_id
        return [view.stops[stop_id] for stop_id in view.stops_by_line.get(key, ())]

    def vehicles_for_line(self, line_id: str) -> list[VehiclePosition]:
        view = self._require_view()
        line = self._find_line(view, line_id)
        key = line.line_id if line is not None else line_id
        return list(view.vehicles_by_line.get(key, ()))

    def stats(self) -> dict[str, Any]:
        """Cache ages and view counters for status displays."""
        return {
            "refresh_count": self._refresh_count,
            "cache": {name: status.to_dict() for name, status in self.cache_status().items()},
            "view": summarize_view(self._view) if self._view is not None else None,
        }

    def _require_view(self) -> NetworkView:
        if self._view is None:
            raise NoDataAvailableError("network", "No network data available; refresh first")
        return self._view

    @staticmethod
    def _find_line(view: NetworkView, line_id: str) -> Line | None:
        line = view.lines.get(line_id)
        if line is not None:
            return line
        needle = line_id.casefold()
        for candidate in view.lines.values():
            if candidate.line_ref == line_id or candidate.code.casefold() == needle:
                return candidate
        return None


def _payload(entry: Any) -> Any:
    return entry.payload if entry is not None else None
