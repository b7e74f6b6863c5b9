"""Read-only statistics over sleep sessions and sun times."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import logging

import numpy as np

from ..core.circular import CircularMean, time_of_day_mean
from ..core.timebase import DAY_SECONDS, Timebase, day_floor, format_hms, from_epoch, require_range, require_timestamp, to_iso_date
from ..errors import ValidationError
from ..model.records import SleepSessionRecord, SunTimesRecord
from .suntimes import SunTimesCache
from .tracker import SessionTracker

logger = logging.getLogger(__name__)

SessionInput = Union[SleepSessionRecord, Dict[str, Any]]


@dataclass
class GraphBucket:
    date: str
    duration_seconds: int
    duration_time: str
    height: float

    def to_dict(self) -> dict:
        return {
            "durationSeconds": self.duration_seconds,
            "durationTime": self.duration_time,
            "height": self.height,
        }


@dataclass
class Averages:
    start: CircularMean
    end: CircularMean
    duration_seconds: float
    duration_time: str

    def to_dict(self) -> dict:
        return {
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
            "duration": {"meanSeconds": self.duration_seconds, "meanTime": self.duration_time},
        }


@dataclass
class SplitInterval:
    index: int
    start: int
    end: int
    sessions: List[SleepSessionRecord] = field(default_factory=list)
    sun_times: List[SunTimesRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "start": self.start,
            "end": self.end,
            "sessions": [s.to_dict() for s in self.sessions],
            "sunTimes": [s.to_dict() for s in self.sun_times],
        }


@dataclass
class LifelineEntry:
    session: SleepSessionRecord
    x: float
    length: float
    center: float
    shift: float
    gap: float

    def to_dict(self) -> dict:
        return {
            "session": self.session.to_dict(),
            "x": self.x,
            "length": self.length,
            "center": self.center,
            "shift": self.shift,
            "gap": self.gap,
        }


@dataclass
class LifelineSun:
    record: SunTimesRecord
    sunrise_x: float
    sunset_x: float

    def to_dict(self) -> dict:
        return {"sunTimes": self.record.to_dict(), "sunriseX": self.sunrise_x, "sunsetX": self.sunset_x}


@dataclass
class Lifeline:
    range_start: int
    range_end: int
    width: float
    entries: List[LifelineEntry]
    sun: List[LifelineSun]

    @property
    def scale(self) -> float:
        """Layout units per second."""
        return self.width / (self.range_end - self.range_start)

    def to_dict(self) -> dict:
        return {
            "rangeStart": self.range_start,
            "rangeEnd": self.range_end,
            "width": self.width,
            "entries": [e.to_dict() for e in self.entries],
            "sun": [s.to_dict() for s in self.sun],
        }


def _coerce(records: Sequence[SessionInput]) -> List[SleepSessionRecord]:
    """Accept stored records or plain mappings with any timestamp representation."""
    out = []
    for i, r in enumerate(records):
        if isinstance(r, SleepSessionRecord):
            out.append(r)
            continue
        data = dict(r)
        data["start"] = require_timestamp(data.get("start"), "start")
        data["end"] = require_timestamp(data.get("end"), "end")
        data.setdefault("id", f"input-{i}")
        if "createdAt" not in data and "created_at" not in data:
            data["createdAt"] = 0
        try:
            out.append(SleepSessionRecord.model_validate(data))
        except ValueError as e:
            raise ValidationError(f"invalid sleep session: {e}") from e
    return out


def _bucket_indices(spans: np.ndarray, origin: int, width: int, count: int) -> np.ndarray:
    """First/last bucket index per (start, end) row, clamped into [0, count-1]."""
    if spans.size == 0:
        return np.empty((0, 2), dtype=np.int64)
    idx = np.floor((spans - origin) / width).astype(np.int64)
    return np.clip(idx, 0, count - 1)


class StatisticsEngine:
    """Aggregates sessions into averages, graphs, split intervals and timelines."""

    def __init__(
        self,
        tracker: SessionTracker,
        sun_times: SunTimesCache,
        max_height: float = 100.0,
    ):
        """Initialize statistics engine.

        Args:
            tracker: Session source for range queries
            sun_times: Sun-time source for split intervals and lifelines
            max_height: Default height of the tallest graph bucket
        """
        self.tracker = tracker
        self.sun_times = sun_times
        self.max_height = max_height

    async def _sessions(
        self,
        records: Optional[Sequence[SessionInput]],
        range_start: Any,
        range_end: Any,
    ) -> Tuple[List[SleepSessionRecord], Optional[Tuple[int, int]]]:
        if records is not None:
            sessions = _coerce(records)
            if not sessions:
                raise ValidationError("0 records in input")
            return sessions, None
        if range_start is None or range_end is None:
            raise ValidationError("either records or rangeStart and rangeEnd required")
        bounds = require_range(range_start, range_end)
        return await self.tracker.list(*bounds), bounds

    async def get_averages(
        self,
        records: Optional[Sequence[SessionInput]] = None,
        range_start: Any = None,
        range_end: Any = None,
        utc_offset: int = 0,
    ) -> Averages:
        """Circular means of start and end clock times, arithmetic mean of durations."""
        sessions, _ = await self._sessions(records, range_start, range_end)
        if not sessions:
            raise ValidationError("0 records in input")
        durations = np.array([s.duration for s in sessions], dtype=np.float64)
        mean_duration = float(durations.mean())
        return Averages(
            start=time_of_day_mean([s.start for s in sessions], utc_offset),
            end=time_of_day_mean([s.end for s in sessions], utc_offset),
            duration_seconds=mean_duration,
            duration_time=format_hms(mean_duration),
        )

    async def get_graph(
        self,
        records: Optional[Sequence[SessionInput]] = None,
        range_start: Any = None,
        range_end: Any = None,
        max_height: Optional[float] = None,
        utc_offset: int = 0,
    ) -> Dict[str, GraphBucket]:
        """Total sleep per calendar day, keyed by ISO date of each session's end.

        Every day between the first and last bucket is present, zero-filled.
        Heights scale linearly so the largest bucket equals `max_height`.
        """
        max_height = self.max_height if max_height is None else max_height
        sessions, bounds = await self._sessions(records, range_start, range_end)

        ends = [s.end + utc_offset for s in sessions]
        if bounds is None:
            lo, hi = min(ends), max(ends)
        else:
            lo, hi = bounds[0] + utc_offset, max([bounds[1] + utc_offset] + ends)
        days = Timebase(from_epoch(lo).date(), from_epoch(hi).date())

        totals = {d: 0 for d in days.iso_days()}
        for session, end in zip(sessions, ends):
            totals[to_iso_date(end)] += session.duration

        values = np.array(list(totals.values()), dtype=np.float64)
        peak = values.max() if values.size else 0.0
        heights = np.round(values / peak * max_height, 2) if peak > 0 else np.zeros_like(values)

        return {
            day: GraphBucket(
                date=day,
                duration_seconds=int(seconds),
                duration_time=format_hms(seconds),
                height=float(height),
            )
            for (day, seconds), height in zip(totals.items(), heights)
        }

    async def get_split_intervals(
        self,
        range_start: Any,
        range_end: Any,
        split: int = DAY_SECONDS,
        offset: int = 0,
        sessions: Optional[Sequence[SessionInput]] = None,
        sun_times: Optional[Sequence[SunTimesRecord]] = None,
        lat: Any = None,
        lon: Any = None,
    ) -> List[SplitInterval]:
        """Partition a span into fixed-width buckets aligned to day boundaries.

        Buckets start at midnight UTC plus `offset` (e.g. noon to align
        nights). `range_end` is inclusive: an end exactly on a boundary
        opens one more bucket. Each session or sun-time record is attached
        to every bucket its [start, end] touches; indices falling outside
        the span clamp to the first or last bucket. Sessions default to
        those stored in the span; sun times are fetched only when lat/lon
        are given.

        Raises:
            ValidationError: Bad range, non-positive split, or offset outside [0, split]
        """
        start, end = require_range(range_start, range_end)
        if split <= 0:
            raise ValidationError(f"split must be positive, got {split}")
        if offset < 0 or offset > split:
            raise ValidationError(f"offset {offset} must be within the split duration {split}")

        origin = day_floor(start - offset) + offset
        count = (end - origin) // split + 1
        span_end = origin + count * split

        if sessions is None:
            session_list = await self.tracker.list(origin, span_end - 1)
        else:
            session_list = _coerce(sessions)
        if sun_times is None:
            sun_list = await self.sun_times.request_list(origin, span_end - 1, lat, lon) if lat is not None and lon is not None else []
        else:
            sun_list = list(sun_times)

        buckets = [
            SplitInterval(index=i, start=origin + i * split, end=origin + (i + 1) * split)
            for i in range(count)
        ]
        session_idx = _bucket_indices(
            np.array([[s.start, s.end] for s in session_list], dtype=np.int64).reshape(-1, 2),
            origin, split, count,
        )
        for session, (first, last) in zip(session_list, session_idx):
            for i in range(first, last + 1):
                buckets[i].sessions.append(session)

        sun_idx = _bucket_indices(
            np.array([[r.sunrise, r.sunset] for r in sun_list], dtype=np.int64).reshape(-1, 2),
            origin, split, count,
        )
        for record, (first, last) in zip(sun_list, sun_idx):
            for i in range(first, last + 1):
                buckets[i].sun_times.append(record)

        return buckets

    async def get_lifeline(
        self,
        records: Optional[Sequence[SessionInput]] = None,
        range_start: Any = None,
        range_end: Any = None,
        width: float = 1000.0,
        lat: Any = None,
        lon: Any = None,
    ) -> Lifeline:
        """Proportional horizontal layout of sessions against sun times.

        Sessions are ordered by midpoint over a span padded by half a day on
        each side. For each session, `shift` is the distance from the previous
        session's center and `gap` the space after the previous session's end
        (negative when they overlap), both in layout units. Sun times come from
        lat/lon, or the first session that recorded a location.
        """
        if width <= 0:
            raise ValidationError("width must be positive")
        sessions, _ = await self._sessions(records, range_start, range_end)
        if not sessions:
            raise ValidationError("0 records in input")
        sessions = sorted(sessions, key=lambda s: (s.midpoint, s.id))

        span_start = min(s.start for s in sessions) - DAY_SECONDS // 2
        span_end = max(s.end for s in sessions) + DAY_SECONDS // 2
        layout = Lifeline(range_start=span_start, range_end=span_end, width=width, entries=[], sun=[])
        scale = layout.scale

        previous = None
        for s in sessions:
            center = (s.midpoint - span_start) * scale
            layout.entries.append(LifelineEntry(
                session=s,
                x=(s.start - span_start) * scale,
                length=s.duration * scale,
                center=center,
                shift=0.0 if previous is None else (s.midpoint - previous.midpoint) * scale,
                gap=0.0 if previous is None else (s.start - previous.end) * scale,
            ))
            previous = s

        if lat is None or lon is None:
            located = next((s for s in sessions if s.lat is not None and s.lon is not None), None)
            if located is not None:
                lat, lon = located.lat, located.lon
        if lat is not None and lon is not None:
            for record in await self.sun_times.request_list(span_start, span_end, lat, lon):
                layout.sun.append(LifelineSun(
                    record=record,
                    sunrise_x=(record.sunrise - span_start) * scale,
                    sunset_x=(record.sunset - span_start) * scale,
                ))
        else:
            logger.debug("No location for lifeline, skipping sun times")

        return layout
