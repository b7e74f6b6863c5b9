"""Tracking state shared by the session tracker and the sun-time cache.

Holds the in-progress session, the denormalized session counters and the
single-entry "today" sun-time cache. One instance per engine; nothing here is
module-global, so independent engines (and tests) never share state.
"""
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Tuple
import logging

from ..model.records import Counters, CurrentSession, SunTimesRecord

logger = logging.getLogger(__name__)

StateListener = Callable[[str, "TrackerState"], None]


class TrackerState:
    """In-process tracking state with change listeners."""

    def __init__(self):
        self._lock = RLock()
        self._current: Optional[CurrentSession] = None
        self._counters = Counters()
        self._sun_entry: Optional[SunTimesRecord] = None
        self._listeners: List[StateListener] = []

    # ------------------------------------------------------------------
    # in-progress session

    @property
    def current_session(self) -> Optional[CurrentSession]:
        with self._lock:
            return self._current.model_copy() if self._current else None

    def begin_session(self, session: CurrentSession) -> Optional[CurrentSession]:
        """Replace the in-progress session.

        Returns:
            The session that was discarded, if one was in progress
        """
        with self._lock:
            previous = self._current
            self._current = session.model_copy()
        self._notify("current_session")
        return previous

    def end_session(self) -> None:
        with self._lock:
            self._current = None
        self._notify("current_session")

    # ------------------------------------------------------------------
    # counters

    @property
    def counters(self) -> Counters:
        with self._lock:
            return self._counters.model_copy()

    def record_created(self, record_id: str, new: bool = True) -> None:
        with self._lock:
            count = self._counters.session_count + (1 if new else 0)
            self._counters = Counters(last_session_id=record_id, session_count=count)
        self._notify("counters")

    def record_deleted(self, record_id: str) -> None:
        with self._lock:
            last = self._counters.last_session_id
            self._counters = Counters(
                last_session_id=None if last == record_id else last,
                session_count=max(self._counters.session_count - 1, 0),
            )
        self._notify("counters")

    def set_session_count(self, count: int) -> None:
        with self._lock:
            self._counters = Counters(
                last_session_id=self._counters.last_session_id,
                session_count=max(count, 0),
            )
        self._notify("counters")

    # ------------------------------------------------------------------
    # single-entry sun cache

    def cached_sun(self, key: Tuple[str, float, float]) -> Optional[SunTimesRecord]:
        with self._lock:
            if self._sun_entry is not None and self._sun_entry.key == key:
                return self._sun_entry.model_copy()
            return None

    def remember_sun(self, record: SunTimesRecord) -> None:
        with self._lock:
            self._sun_entry = record.model_copy()

    # ------------------------------------------------------------------
    # persistence hooks

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view, for hosts that persist state between runs."""
        with self._lock:
            return {
                "currentSession": self._current.model_dump() if self._current else None,
                **self._counters.model_dump(by_alias=True),
            }

    def restore(self, data: Dict[str, Any]) -> None:
        with self._lock:
            current = data.get("currentSession")
            self._current = CurrentSession(**current) if current else None
            self._counters = Counters(
                last_session_id=data.get("lastSessionID"),
                session_count=data.get("sessionCount", 0),
            )
        self._notify("restore")

    def reset_counters(self) -> None:
        """Forget the counters after the stored sessions were wiped; tracking is kept."""
        with self._lock:
            self._counters = Counters()
        self._notify("counters")

    def add_listener(self, callback: StateListener) -> None:
        """Add a change listener, called as callback(field, state)."""
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def remove_listener(self, callback: StateListener) -> bool:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)
                return True
            return False

    def _notify(self, field: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(field, self)
            except Exception:
                # Listener failures are logged, never raised.
                logger.exception(f"Error in state listener for {field}")
