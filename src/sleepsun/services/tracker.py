"""Sleep session lifecycle: CRUD over stored sessions plus live tracking."""

from typing import Any, List, Optional
import logging
import uuid

from ..core.timebase import check_coordinates, require_range, require_timestamp, round_coordinate
from ..errors import NoActiveSessionError, NotFoundError, SessionTooShortError, ValidationError
from ..model.records import CurrentSession, SleepSessionRecord
from ..runtime.clock import Clock
from ..runtime.state import TrackerState
from ..storage.base import MatchMode, Store

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks a field that was not supplied to update(); None means "clear it".
UNSET: Any = _Unset()


def _optional_coordinate(value: Any, field: str) -> Optional[float]:
    if value is None:
        return None
    rounded = round_coordinate(value)
    if rounded is None:
        raise ValidationError(f"{field}: not a coordinate: {value!r}")
    return rounded


class SessionTracker:
    """Creates, updates, deletes and lists sleep sessions; runs live tracking.

    States: Idle --start_tracking--> Tracking --stop_tracking--> Idle, with
    the transition out of Tracking persisting one session.
    """

    def __init__(
        self,
        store: Store,
        state: TrackerState,
        clock: Clock,
        min_session_seconds: int = 900,
    ):
        """Initialize session tracker.

        Args:
            store: Persistence backend
            state: Tracking state (in-progress session and counters)
            clock: Source of "now"
            min_session_seconds: Shortest session stop_tracking accepts (0 disables)
        """
        self.store = store
        self.state = state
        self.clock = clock
        self.min_session_seconds = min_session_seconds

    async def create(
        self,
        start: Any,
        end: Any,
        lat: Any = None,
        lon: Any = None,
        id: Optional[str] = None,
    ) -> SleepSessionRecord:
        """Validate and persist a sleep session.

        Counters are only touched once the write has succeeded. Re-creating
        an existing id overwrites it without counting it twice.
        """
        start_sec = require_timestamp(start, "start")
        end_sec = require_timestamp(end, "end")
        if end_sec < start_sec:
            raise ValidationError("end cannot be before start")
        rlat, rlon = _optional_coordinate(lat, "lat"), _optional_coordinate(lon, "lon")
        check_coordinates(rlat, rlon)

        record = SleepSessionRecord(
            id=id or str(uuid.uuid4()),
            start=start_sec,
            end=end_sec,
            lat=rlat,
            lon=rlon,
            created_at=self.clock.timestamp(),
        )

        async def write() -> bool:
            existed = await self.store.get_sleep(record.id) is not None
            await self.store.upsert_sleep(record)
            return existed

        existed = await self.store.run_transaction(write)
        self.state.record_created(record.id, new=not existed)
        logger.debug(f"Stored sleep session {record.id} ({record.duration}s)")
        return record

    async def get(self, record_id: str) -> SleepSessionRecord:
        if not record_id:
            raise ValidationError("id required")
        record = await self.store.get_sleep(record_id)
        if record is None:
            raise NotFoundError(record_id)
        return record

    async def update(
        self,
        record_id: str,
        start: Any = UNSET,
        end: Any = UNSET,
        lat: Any = UNSET,
        lon: Any = UNSET,
    ) -> SleepSessionRecord:
        """Merge supplied fields over a stored session.

        An omitted field is left alone; lat/lon passed as None are cleared.
        The read-modify-write runs in one transaction.

        Raises:
            NotFoundError: No session with this id
            ValidationError: A supplied value is invalid or end < start
        """
        if not record_id:
            raise ValidationError("id required")

        changes = {}
        if start is not UNSET:
            changes["start"] = require_timestamp(start, "start")
        if end is not UNSET:
            changes["end"] = require_timestamp(end, "end")
        if lat is not UNSET:
            changes["lat"] = _optional_coordinate(lat, "lat")
        if lon is not UNSET:
            changes["lon"] = _optional_coordinate(lon, "lon")

        async def merge() -> SleepSessionRecord:
            existing = await self.store.get_sleep(record_id)
            if existing is None:
                raise NotFoundError(record_id)
            merged = {**existing.model_dump(), **changes, "updated_at": self.clock.timestamp()}
            if merged["end"] < merged["start"]:
                raise ValidationError("end cannot be before start")
            check_coordinates(merged["lat"], merged["lon"])
            updated = SleepSessionRecord(**merged)
            await self.store.upsert_sleep(updated)
            return updated

        return await self.store.run_transaction(merge)

    async def delete(self, record_id: str) -> bool:
        """Delete a session; returns False (not an error) when it is absent."""
        if not record_id:
            raise ValidationError("id required")
        deleted = await self.store.delete_sleep(record_id)
        if deleted:
            self.state.record_deleted(record_id)
        return deleted

    async def list(self, range_start: Any, range_end: Any, match: MatchMode = "overlapping") -> List[SleepSessionRecord]:
        start, end = require_range(range_start, range_end)
        return await self.store.list_sleep(start, end, match)

    async def resync_counters(self) -> int:
        """Recompute the session count from the store.

        The last session id is dropped when that session no longer exists.
        """
        count = await self.store.count_sleep()
        last = self.state.counters.last_session_id
        if last is not None and await self.store.get_sleep(last) is None:
            self.state.reset_counters()
        self.state.set_session_count(count)
        return count

    # ------------------------------------------------------------------
    # live tracking

    @property
    def current(self) -> Optional[CurrentSession]:
        return self.state.current_session

    def start_tracking(self, lat: Any = None, lon: Any = None) -> CurrentSession:
        """Begin a session now. A session already in progress is replaced."""
        session = CurrentSession(
            start=self.clock.timestamp(),
            lat=_optional_coordinate(lat, "lat"),
            lon=_optional_coordinate(lon, "lon"),
        )
        check_coordinates(session.lat, session.lon)
        discarded = self.state.begin_session(session)
        if discarded is not None:
            logger.warning(f"Discarded in-progress session started at {discarded.start}")
        logger.info(f"Started tracking at {session.start}")
        return session

    def cancel_tracking(self) -> Optional[CurrentSession]:
        """Drop the in-progress session without persisting it."""
        session = self.state.current_session
        if session is not None:
            self.state.end_session()
            logger.info(f"Cancelled tracking started at {session.start}")
        return session

    async def stop_tracking(self, lat: Any = None, lon: Any = None) -> SleepSessionRecord:
        """End the in-progress session and persist it.

        Coordinates given here only fill in what the session did not capture
        at start. If validation or the write fails, the session stays in
        progress so the caller can retry.

        Raises:
            NoActiveSessionError: Nothing is being tracked
            SessionTooShortError: Shorter than min_session_seconds
        """
        session = self.state.current_session
        if session is None:
            raise NoActiveSessionError()

        end = self.clock.timestamp()
        if end < session.start:
            raise ValidationError("end cannot be before start")
        duration = end - session.start
        if self.min_session_seconds and duration < self.min_session_seconds:
            raise SessionTooShortError(duration, self.min_session_seconds)

        record = await self.create(
            start=session.start,
            end=end,
            lat=session.lat if session.lat is not None else lat,
            lon=session.lon if session.lon is not None else lon,
        )
        self.state.end_session()
        logger.info(f"Stopped tracking, stored session {record.id} ({duration}s)")
        return record
