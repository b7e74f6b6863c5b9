"""Cache-first sunrise/sunset lookup with an offline analytic fallback."""

from functools import partial
from typing import Any, Dict, List, Optional, Protocol, Tuple
import asyncio
import logging

import aiohttp

from ..core.daylight import day_progress, estimate_sun_times
from ..core.timebase import Timebase, require_coordinates, require_timestamp, to_iso_date
from ..errors import RemoteSourceError
from ..model.records import SunTimesRecord
from ..runtime.clock import Clock
from ..runtime.pool import run_bounded
from ..runtime.state import TrackerState
from ..storage.base import Store

logger = logging.getLogger(__name__)

SunKey = Tuple[str, float, float]

# Failures that make request() fall back to the offline estimate.
FALLBACK_ERRORS = (RemoteSourceError, aiohttp.ClientError, asyncio.TimeoutError, OSError)


class SunFetcher(Protocol):
    async def fetch(self, date: str, lat: float, lon: float) -> Dict[str, int]:
        ...


def _drain(task: asyncio.Future) -> None:
    # Late results of timed-out fetches are ignored; mark errors as retrieved.
    if not task.cancelled():
        task.exception()


class SunTimesCache:
    """Sun-time records keyed by (date, rounded lat, rounded lon)."""

    def __init__(
        self,
        store: Store,
        fetcher: SunFetcher,
        clock: Clock,
        state: Optional[TrackerState] = None,
        request_timeout: float = 20.0,
        concurrency_limit: int = 5,
        dispatch_delay: float = 0.05,
    ):
        """Initialize sun-time cache.

        Args:
            store: Persistence backend
            fetcher: Remote source of authoritative sun times
            clock: Source of "now" (stamps updatedAt, resolves "today")
            state: Holds the single-entry cache used by today()
            request_timeout: Seconds to wait for the remote source
            concurrency_limit: Max concurrent fetches in request_list()
            dispatch_delay: Seconds between successive fetch dispatches
        """
        self.store = store
        self.fetcher = fetcher
        self.clock = clock
        self.state = state or TrackerState()
        self.request_timeout = request_timeout
        self.concurrency_limit = concurrency_limit
        self.dispatch_delay = dispatch_delay
        self._inflight: Dict[SunKey, asyncio.Future] = {}

    @staticmethod
    def make_key(date: Any, lat: Any, lon: Any) -> SunKey:
        rlat, rlon = require_coordinates(lat, lon)
        return (to_iso_date(date), rlat, rlon)

    async def get(self, date: Any, lat: Any, lon: Any) -> Optional[SunTimesRecord]:
        return await self.store.get_sun(*self.make_key(date, lat, lon))

    async def put(
        self,
        date: Any,
        lat: Any,
        lon: Any,
        sunrise: Any,
        sunset: Any,
        daylength: Optional[int] = None,
    ) -> SunTimesRecord:
        iso, rlat, rlon = self.make_key(date, lat, lon)
        rise = require_timestamp(sunrise, "sunrise")
        sets = require_timestamp(sunset, "sunset")
        record = SunTimesRecord(
            date=iso,
            lat=rlat,
            lon=rlon,
            sunrise=rise,
            sunset=sets,
            daylength=daylength if daylength is not None else sets - rise,
            updated_at=self.clock.timestamp(),
        )
        await self.store.upsert_sun(record)
        return record

    async def list(self, range_start: Any, range_end: Any, lat: Any, lon: Any) -> List[SunTimesRecord]:
        rlat, rlon = require_coordinates(lat, lon)
        days = Timebase.from_range(range_start, range_end)
        return await self.store.list_sun(rlat, rlon, days.start.isoformat(), days.end.isoformat())

    async def request(self, date: Any, lat: Any, lon: Any) -> SunTimesRecord:
        """Cached record, else the remote value, else the offline estimate.

        Concurrent requests for the same key share a single lookup. Only
        remote values are cached; an estimate is returned with
        `estimated=True` and the next request retries the network.
        """
        key = self.make_key(date, lat, lon)
        inflight = self._inflight.get(key)
        if inflight is None:
            inflight = asyncio.ensure_future(self._resolve(*key))
            self._inflight[key] = inflight

            def forget(fut: asyncio.Future, key: SunKey = key) -> None:
                self._inflight.pop(key, None)
                _drain(fut)

            inflight.add_done_callback(forget)
        return await asyncio.shield(inflight)

    async def _resolve(self, date: str, lat: float, lon: float) -> SunTimesRecord:
        cached = await self.store.get_sun(date, lat, lon)
        if cached is not None:
            logger.debug(f"Sun times cache hit for {date} at {lat},{lon}")
            return cached

        estimate = estimate_sun_times(date, lat, lon)
        try:
            payload = await self._fetch_with_timeout(date, lat, lon)
        except FALLBACK_ERRORS as e:
            logger.warning(
                f"Sun times request for {date} at {lat},{lon} failed or timed out, "
                f"using offline estimate: {e!r}"
            )
            return estimate

        record = SunTimesRecord(
            date=date,
            lat=lat,
            lon=lon,
            updated_at=self.clock.timestamp(),
            **payload,
        )
        await self.store.upsert_sun(record)
        logger.debug(
            f"Sun times for {date}: offline estimate off by "
            f"{(estimate.sunrise - record.sunrise) / 60:.2f} min (sunrise), "
            f"{(estimate.sunset - record.sunset) / 60:.2f} min (sunset)"
        )
        return record

    async def _fetch_with_timeout(self, date: str, lat: float, lon: float) -> Dict[str, int]:
        # The fetch is raced, not cancelled: on timeout it keeps running and
        # whatever it returns later is dropped.
        task = asyncio.ensure_future(self.fetcher.fetch(date, lat, lon))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.request_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if not done:
            task.add_done_callback(_drain)
            raise asyncio.TimeoutError(f"no response within {self.request_timeout}s")
        return task.result()

    async def request_list(self, range_start: Any, range_end: Any, lat: Any, lon: Any) -> List[SunTimesRecord]:
        """One record per day in the inclusive range, sorted by date.

        Cached days come from a single batched lookup; the rest are requested
        with bounded concurrency. A failing day is logged and left out without
        affecting the others.
        """
        rlat, rlon = require_coordinates(lat, lon)
        days = Timebase.from_range(range_start, range_end)
        cached = await self.store.list_sun(rlat, rlon, days.start.isoformat(), days.end.isoformat())
        by_date = {r.date: r for r in cached}

        missing = [d for d in days.iso_days() if d not in by_date]
        if missing:
            logger.info(f"Fetching sun times for {len(missing)} uncached day(s) at {rlat},{rlon}")
        outcomes = await run_bounded(
            [partial(self.request, d, rlat, rlon) for d in missing],
            limit=self.concurrency_limit,
            delay=self.dispatch_delay,
        )
        for day, outcome in zip(missing, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Sun times for {day} could not be resolved", exc_info=outcome)
                continue
            by_date[day] = outcome

        return [by_date[d] for d in sorted(by_date)]

    async def today(self, lat: Any, lon: Any) -> SunTimesRecord:
        """Sun times for the clock's current date, memoized in a single entry."""
        key = self.make_key(self.clock.now().date(), lat, lon)
        remembered = self.state.cached_sun(key)
        if remembered is not None:
            return remembered
        record = await self.request(*key)
        if not record.estimated:
            self.state.remember_sun(record)
        return record

    async def progress(self, lat: Any, lon: Any) -> Optional[float]:
        """Fraction of today's daylight elapsed (see core.daylight.day_progress)."""
        return day_progress(self.clock.timestamp(), await self.today(lat, lon))
