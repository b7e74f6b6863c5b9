"""Wall-clock collaborator.

The engine never calls datetime.now() directly; it asks a Clock, which can
be frozen and moved by hand so tracking and "today" lookups are testable.
"""
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Optional
import math
import time


class Clock:
    """Source of the current time for the engine."""

    def __init__(
        self,
        start_time: Optional[datetime] = None,
        frozen: bool = False,
    ):
        """Initialize clock.

        Args:
            start_time: Time to report now (default: current UTC time)
            frozen: If True, time only moves through set_time()/advance()
        """
        self._lock = RLock()
        self._anchor = start_time or datetime.now(timezone.utc)
        if self._anchor.tzinfo is None:
            self._anchor = self._anchor.replace(tzinfo=timezone.utc)
        self._wall_anchor = time.time()
        self._frozen = frozen

    def now(self) -> datetime:
        with self._lock:
            if self._frozen:
                return self._anchor
            return self._anchor + timedelta(seconds=time.time() - self._wall_anchor)

    def timestamp(self) -> int:
        """Current time in whole epoch seconds."""
        return math.floor(self.now().timestamp())

    def set_time(self, new_time: datetime) -> None:
        if new_time.tzinfo is None:
            new_time = new_time.replace(tzinfo=timezone.utc)
        with self._lock:
            self._anchor = new_time
            self._wall_anchor = time.time()

    def advance(self, delta: timedelta) -> None:
        with self._lock:
            self.set_time(self.now() + delta)

    def freeze(self) -> None:
        with self._lock:
            if not self._frozen:
                self._anchor = self.now()
                self._frozen = True

    def unfreeze(self) -> None:
        with self._lock:
            if self._frozen:
                self._wall_anchor = time.time()
                self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __repr__(self) -> str:
        status = "frozen" if self._frozen else "running"
        return f"Clock({self.now().isoformat()}, {status})"
