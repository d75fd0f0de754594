"""Single-category cache tier: TTL state machine with single-flight refresh."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Generic, TypeVar

from next_vehicle.errors import NetworkError, NextVehicleError
from next_vehicle.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = get_logger(__name__)

T = TypeVar("T")


class CacheState(StrEnum):
    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"
    REFRESHING = "refreshing"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached payload; fresh iff ``now - fetched_at < max_age``."""

    payload: T
    fetched_at: float
    max_age: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.fetched_at)

    def is_fresh(self, now: float) -> bool:
        return now - self.fetched_at < self.max_age


@dataclass(frozen=True)
class TierStatus:
    category: str
    state: CacheState
    age_seconds: float | None
    fetched_at: float | None
    last_error: str | None
    fetch_count: int
    error_count: int

    def to_dict(self) -> dict[str, object]:
        return {
            "category": self.category,
            "state": str(self.state),
            "age_seconds": self.age_seconds,
            "fetched_at": self.fetched_at,
            "last_error": self.last_error,
            "fetch_count": self.fetch_count,
            "error_count": self.error_count,
        }


class CacheTier(Generic[T]):
    """Owns one category's entry and its ``Empty/Fresh/Stale/Refreshing`` state.

    Transitions happen under ``_lock``; the lock is never held across the
    fetch itself. Concurrent readers during ``Refreshing`` await the same
    task, so one stale read triggers exactly one network fetch.

    A failed refresh keeps the previous payload (stale fallback). With no
    previous payload the typed error is raised to every waiting caller.
    """

    def __init__(
        self,
        category: str,
        fetch: Callable[[], Awaitable[T]],
        *,
        max_age: float,
        clock: Callable[[], float] = time.time,
        fetch_timeout: float | None = None,
        on_store: Callable[[CacheEntry[T]], None] | None = None,
    ) -> None:
        self.category = category
        self.max_age = max_age
        self._fetch = fetch
        self._clock = clock
        self._fetch_timeout = fetch_timeout
        self._on_store = on_store

        self._lock = asyncio.Lock()
        self._state = CacheState.EMPTY
        self._entry: CacheEntry[T] | None = None
        self._inflight: asyncio.Task[CacheEntry[T]] | None = None
        self._last_error: str | None = None
        self._fetch_count = 0
        self._error_count = 0

    @property
    def state(self) -> CacheState:
        return self._settle(self._clock())

    @property
    def entry(self) -> CacheEntry[T] | None:
        """Last stored entry, fresh or stale, without triggering I/O."""
        return self._entry

    def seed(self, payload: T, fetched_at: float) -> None:
        """Install a payload loaded from elsewhere (e.g. the disk mirror)."""
        self._entry = CacheEntry(payload=payload, fetched_at=fetched_at, max_age=self.max_age)
        state = self._settle(self._clock())
        logger.info(
            "Cache tier seeded",
            category=self.category,
            state=str(state),
            age_sec=round(self._entry.age(self._clock())),
        )

    async def get(self) -> CacheEntry[T]:
        """Return the entry, refreshing first when it is stale or missing.

        Raises:
            NextVehicleError: The fetch failed and there is nothing to fall back to.
        """
        async with self._lock:
            entry = self._entry
            if entry is not None and entry.is_fresh(self._clock()):
                return entry
            task = self._start_refresh()
        return await asyncio.shield(task)

    async def refresh(self, *, force: bool = False) -> CacheEntry[T]:
        """Refresh on demand; without ``force`` this is ``get()``."""
        if not force:
            return await self.get()
        async with self._lock:
            task = self._start_refresh()
        return await asyncio.shield(task)

    def status(self) -> TierStatus:
        now = self._clock()
        state = self._settle(now)
        entry = self._entry
        return TierStatus(
            category=self.category,
            state=state,
            age_seconds=entry.age(now) if entry else None,
            fetched_at=entry.fetched_at if entry else None,
            last_error=self._last_error,
            fetch_count=self._fetch_count,
            error_count=self._error_count,
        )

    def _settle(self, now: float) -> CacheState:
        """Recompute the state from the entry's age unless a fetch is in flight."""
        if self._inflight is not None:
            self._state = CacheState.REFRESHING
        elif self._entry is None:
            self._state = CacheState.EMPTY
        elif self._entry.is_fresh(now):
            self._state = CacheState.FRESH
        else:
            self._state = CacheState.STALE
        return self._state

    def _start_refresh(self) -> asyncio.Task[CacheEntry[T]]:
        # caller holds _lock
        if self._inflight is None:
            logger.debug("Cache tier refreshing", category=self.category, state=str(self._state))
            self._inflight = asyncio.create_task(
                self._run_fetch(), name=f"cache-refresh-{self.category}"
            )
            self._state = CacheState.REFRESHING
        return self._inflight

    async def _run_fetch(self) -> CacheEntry[T]:
        try:
            if self._fetch_timeout is None:
                payload = await self._fetch()
            else:
                payload = await asyncio.wait_for(self._fetch(), self._fetch_timeout)
        except TimeoutError:
            msg = f"{self.category} refresh exceeded {self._fetch_timeout}s"
            async with self._lock:
                return self._record_failure(NetworkError(msg))
        except NextVehicleError as exc:
            async with self._lock:
                return self._record_failure(exc)
        except BaseException:
            self._inflight = None
            self._settle(self._clock())
            raise

        async with self._lock:
            entry = CacheEntry(payload=payload, fetched_at=self._clock(), max_age=self.max_age)
            self._entry = entry
            self._inflight = None
            self._fetch_count += 1
            self._last_error = None
            self._settle(entry.fetched_at)

        logger.info("Cache tier refreshed", category=self.category)
        if self._on_store is not None:
            await asyncio.to_thread(self._on_store, entry)
        return entry

    def _record_failure(self, exc: NextVehicleError) -> CacheEntry[T]:
        # caller holds _lock
        self._inflight = None
        self._error_count += 1
        self._last_error = str(exc)
        state = self._settle(self._clock())

        if self._entry is None:
            logger.error(
                "Cache refresh failed with no fallback",
                category=self.category,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise exc

        logger.warning(
            "Cache refresh failed, serving previous payload",
            category=self.category,
            state=str(state),
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return self._entry
