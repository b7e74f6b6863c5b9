"""Persistence port shared by every storage backend.

The base class owns the parts of the contract that must behave identically
across backends: fail-closed initialization, serialization of access, and
non-nesting transactions. Backends only implement the raw record operations.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Awaitable, Callable, List, Literal, Optional, TypeVar
import asyncio
import logging

from ..errors import UninitializedError, ValidationError
from ..model.records import SleepSessionRecord, SunTimesRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")
MatchMode = Literal["overlapping", "contained"]
MATCH_MODES = ("overlapping", "contained")


class Store(ABC):
    """Record storage for sleep sessions and sun times."""

    name = "store"

    def __init__(self):
        """Initialize an unopened store; call init() before any other operation."""
        self._initialized = False
        self._lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(
            f"{self.name}_tx_{id(self)}", default=False
        )

    # ------------------------------------------------------------------
    # lifecycle

    async def init(self) -> None:
        """Open the backend. Calling it again is a no-op."""
        if self._initialized:
            return
        await self._open()
        self._initialized = True
        logger.info(f"Opened {self.name} store")

    async def close(self) -> None:
        if not self._initialized:
            return
        await self._close()
        self._initialized = False
        logger.info(f"Closed {self.name} store")

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _require(self) -> None:
        if not self._initialized:
            raise UninitializedError(f"{self.name} store")

    @asynccontextmanager
    async def _access(self):
        """Serialize access against open transactions of other callers."""
        self._require()
        if self._in_transaction.get():
            yield
        else:
            async with self._lock:
                yield

    async def run_transaction(self, action: Callable[[], Awaitable[T]]) -> T:
        """Run `action` atomically.

        All writes inside `action` are committed together or rolled back
        entirely when it raises; the exception is re-raised. A call made while
        already inside a transaction joins the outer one.

        Args:
            action: Zero-argument coroutine function

        Returns:
            Whatever `action` returns
        """
        self._require()
        if self._in_transaction.get():
            return await action()

        async with self._lock:
            token = self._in_transaction.set(True)
            try:
                await self._begin()
                try:
                    result = await action()
                except BaseException:
                    await self._rollback()
                    logger.debug(f"Rolled back {self.name} transaction")
                    raise
                await self._commit()
                return result
            finally:
                self._in_transaction.reset(token)

    # ------------------------------------------------------------------
    # sleep sessions

    async def upsert_sleep(self, record: SleepSessionRecord) -> None:
        async with self._access():
            await self._upsert_sleep(record)

    async def get_sleep(self, record_id: str) -> Optional[SleepSessionRecord]:
        async with self._access():
            return await self._get_sleep(record_id)

    async def delete_sleep(self, record_id: str) -> bool:
        """Delete a session; False when it did not exist."""
        async with self._access():
            return await self._delete_sleep(record_id)

    async def list_sleep(self, start: int, end: int, match: MatchMode = "overlapping") -> List[SleepSessionRecord]:
        """List sessions against [start, end], ordered by end time.

        Args:
            start: Range start (epoch seconds)
            end: Range end (epoch seconds)
            match: 'overlapping' for any intersection, 'contained' for
                sessions entirely inside the range

        Returns:
            Matching sessions ordered by (end, id)
        """
        if match not in MATCH_MODES:
            raise ValidationError(f"match must be one of {MATCH_MODES}, got {match!r}")
        async with self._access():
            return await self._list_sleep(start, end, match)

    async def get_all_sleep(self) -> List[SleepSessionRecord]:
        async with self._access():
            return await self._all_sleep()

    async def count_sleep(self) -> int:
        async with self._access():
            return await self._count_sleep()

    # ------------------------------------------------------------------
    # sun times

    async def upsert_sun(self, record: SunTimesRecord) -> None:
        async with self._access():
            await self._upsert_sun(record)

    async def get_sun(self, date: str, lat: float, lon: float) -> Optional[SunTimesRecord]:
        async with self._access():
            return await self._get_sun(date, lat, lon)

    async def list_sun(self, lat: float, lon: float, date_start: str, date_end: str) -> List[SunTimesRecord]:
        """Sun times for one rounded location between two ISO dates, inclusive, by date."""
        async with self._access():
            return await self._list_sun(lat, lon, date_start, date_end)

    async def get_all_sun(self) -> List[SunTimesRecord]:
        async with self._access():
            return await self._all_sun()

    # ------------------------------------------------------------------
    # maintenance

    async def clear_all(self) -> None:
        """Delete every record from both collections."""
        await self.run_transaction(self._clear_all)

    # ------------------------------------------------------------------
    # backend hooks

    @abstractmethod
    async def _open(self) -> None:
        pass

    @abstractmethod
    async def _close(self) -> None:
        pass

    @abstractmethod
    async def _begin(self) -> None:
        pass

    @abstractmethod
    async def _commit(self) -> None:
        pass

    @abstractmethod
    async def _rollback(self) -> None:
        pass

    @abstractmethod
    async def _upsert_sleep(self, record: SleepSessionRecord) -> None:
        pass

    @abstractmethod
    async def _get_sleep(self, record_id: str) -> Optional[SleepSessionRecord]:
        pass

    @abstractmethod
    async def _delete_sleep(self, record_id: str) -> bool:
        pass

    @abstractmethod
    async def _list_sleep(self, start: int, end: int, match: str) -> List[SleepSessionRecord]:
        pass

    @abstractmethod
    async def _all_sleep(self) -> List[SleepSessionRecord]:
        pass

    @abstractmethod
    async def _count_sleep(self) -> int:
        pass

    @abstractmethod
    async def _upsert_sun(self, record: SunTimesRecord) -> None:
        pass

    @abstractmethod
    async def _get_sun(self, date: str, lat: float, lon: float) -> Optional[SunTimesRecord]:
        pass

    @abstractmethod
    async def _list_sun(self, lat: float, lon: float, date_start: str, date_end: str) -> List[SunTimesRecord]:
        pass

    @abstractmethod
    async def _all_sun(self) -> List[SunTimesRecord]:
        pass

    @abstractmethod
    async def _clear_all(self) -> None:
        pass
