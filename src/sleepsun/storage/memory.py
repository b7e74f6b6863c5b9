"""Key-value object store backend.

Keeps sessions keyed by id with a sorted secondary index on `end`, and sun
times keyed by the composite (date, lat, lon), the same shape as a browser
object store. Nothing is written to disk.
"""

from bisect import bisect_left, insort
from typing import Dict, List, Optional, Tuple

from ..model.records import SleepSessionRecord, SunTimesRecord
from .base import Store

SunKey = Tuple[str, float, float]


class MemoryStore(Store):
    """In-process store with snapshot-based transactions."""

    name = "memory"

    def __init__(self):
        super().__init__()
        self._sleep: Dict[str, SleepSessionRecord] = {}
        self._by_end: List[Tuple[int, str]] = []
        self._sun: Dict[SunKey, SunTimesRecord] = {}
        self._snapshot: Optional[tuple] = None

    async def _open(self) -> None:
        pass

    async def _close(self) -> None:
        pass

    async def _begin(self) -> None:
        self._snapshot = (dict(self._sleep), list(self._by_end), dict(self._sun))

    async def _commit(self) -> None:
        self._snapshot = None

    async def _rollback(self) -> None:
        self._sleep, self._by_end, self._sun = self._snapshot
        self._snapshot = None

    async def _upsert_sleep(self, record: SleepSessionRecord) -> None:
        existing = self._sleep.get(record.id)
        if existing is not None:
            self._by_end.remove((existing.end, existing.id))
        self._sleep[record.id] = record.model_copy()
        insort(self._by_end, (record.end, record.id))

    async def _get_sleep(self, record_id: str) -> Optional[SleepSessionRecord]:
        record = self._sleep.get(record_id)
        return record.model_copy() if record else None

    async def _delete_sleep(self, record_id: str) -> bool:
        record = self._sleep.pop(record_id, None)
        if record is None:
            return False
        self._by_end.remove((record.end, record.id))
        return True

    async def _list_sleep(self, start: int, end: int, match: str) -> List[SleepSessionRecord]:
        results = []
        # Cursor over the end index from the first session ending at or after `start`.
        for rec_end, rec_id in self._by_end[bisect_left(self._by_end, (start, "")):]:
            record = self._sleep[rec_id]
            if match == "contained":
                if rec_end > end:
                    break
                if record.start >= start:
                    results.append(record.model_copy())
            elif record.start <= end:
                results.append(record.model_copy())
        return results

    async def _all_sleep(self) -> List[SleepSessionRecord]:
        return [self._sleep[rec_id].model_copy() for _, rec_id in self._by_end]

    async def _count_sleep(self) -> int:
        return len(self._sleep)

    async def _upsert_sun(self, record: SunTimesRecord) -> None:
        self._sun[record.key] = record.model_copy()

    async def _get_sun(self, date: str, lat: float, lon: float) -> Optional[SunTimesRecord]:
        record = self._sun.get((date, lat, lon))
        return record.model_copy() if record else None

    async def _list_sun(self, lat: float, lon: float, date_start: str, date_end: str) -> List[SunTimesRecord]:
        found = [
            r for r in self._sun.values()
            if r.lat == lat and r.lon == lon and date_start <= r.date <= date_end
        ]
        return [r.model_copy() for r in sorted(found, key=lambda r: r.date)]

    async def _all_sun(self) -> List[SunTimesRecord]:
        return [self._sun[k].model_copy() for k in sorted(self._sun)]

    async def _clear_all(self) -> None:
        self._sleep.clear()
        self._by_end.clear()
        self._sun.clear()
