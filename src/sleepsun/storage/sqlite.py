"""Embedded SQL backend (SQLite through aiosqlite)."""

from typing import List, Optional
import logging

import aiosqlite

from ..model.records import SleepSessionRecord, SunTimesRecord
from .base import Store

logger = logging.getLogger(__name__)

SCHEMA = """
PRAGMA journal_mode = WAL;
PRAGMA synchronous = NORMAL;

CREATE TABLE IF NOT EXISTS sleepSessions (
    id TEXT PRIMARY KEY NOT NULL,
    start INTEGER NOT NULL,
    "end" INTEGER NOT NULL,
    lat REAL,
    lon REAL,
    createdAt INTEGER NOT NULL,
    updatedAt INTEGER
);

CREATE TABLE IF NOT EXISTS sunTimes (
    date TEXT NOT NULL,
    lat REAL NOT NULL,
    lon REAL NOT NULL,
    sunrise INTEGER NOT NULL,
    sunset INTEGER NOT NULL,
    daylength INTEGER,
    updatedAt INTEGER,
    PRIMARY KEY (date, lat, lon)
);

CREATE INDEX IF NOT EXISTS idx_sleep_end_start ON sleepSessions("end", start);
"""

SLEEP_COLUMNS = 'id, start, "end", lat, lon, createdAt, updatedAt'
SUN_COLUMNS = "date, lat, lon, sunrise, sunset, daylength, updatedAt"


class SQLiteStore(Store):
    """Store backed by a single SQLite database file."""

    name = "sqlite"

    def __init__(self, path: str = "sleep_sun.db"):
        """Initialize SQLite store.

        Args:
            path: Database file path (':memory:' for a throwaway database)
        """
        super().__init__()
        self.path = path
        self._db: Optional[aiosqlite.Connection] = None

    async def _open(self) -> None:
        # Autocommit mode; transactions are opened explicitly by run_transaction.
        self._db = await aiosqlite.connect(self.path, isolation_level=None)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        logger.debug(f"SQLite schema ready at {self.path}")

    async def _close(self) -> None:
        await self._db.close()
        self._db = None

    async def _begin(self) -> None:
        await self._db.execute("BEGIN")

    async def _commit(self) -> None:
        await self._db.execute("COMMIT")

    async def _rollback(self) -> None:
        await self._db.execute("ROLLBACK")

    async def _fetch_all(self, sql: str, params: tuple = ()) -> List[dict]:
        async with self._db.execute(sql, params) as cursor:
            return [dict(row) for row in await cursor.fetchall()]

    async def _upsert_sleep(self, record: SleepSessionRecord) -> None:
        await self._db.execute(
            f"INSERT OR REPLACE INTO sleepSessions ({SLEEP_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (record.id, record.start, record.end, record.lat, record.lon, record.created_at, record.updated_at),
        )

    async def _get_sleep(self, record_id: str) -> Optional[SleepSessionRecord]:
        rows = await self._fetch_all(
            f"SELECT {SLEEP_COLUMNS} FROM sleepSessions WHERE id = ?", (record_id,)
        )
        return SleepSessionRecord(**rows[0]) if rows else None

    async def _delete_sleep(self, record_id: str) -> bool:
        async with self._db.execute("DELETE FROM sleepSessions WHERE id = ?", (record_id,)) as cursor:
            return cursor.rowcount > 0

    async def _list_sleep(self, start: int, end: int, match: str) -> List[SleepSessionRecord]:
        where = 'start >= ? AND "end" <= ?' if match == "contained" else '"end" >= ? AND start <= ?'
        rows = await self._fetch_all(
            f'SELECT {SLEEP_COLUMNS} FROM sleepSessions WHERE {where} ORDER BY "end" ASC, id ASC',
            (start, end),
        )
        return [SleepSessionRecord(**row) for row in rows]

    async def _all_sleep(self) -> List[SleepSessionRecord]:
        rows = await self._fetch_all(f'SELECT {SLEEP_COLUMNS} FROM sleepSessions ORDER BY "end" ASC, id ASC')
        return [SleepSessionRecord(**row) for row in rows]

    async def _count_sleep(self) -> int:
        rows = await self._fetch_all("SELECT COUNT(*) AS n FROM sleepSessions")
        return rows[0]["n"]

    async def _upsert_sun(self, record: SunTimesRecord) -> None:
        await self._db.execute(
            f"INSERT OR REPLACE INTO sunTimes ({SUN_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (record.date, record.lat, record.lon, record.sunrise, record.sunset, record.daylength, record.updated_at),
        )

    async def _get_sun(self, date: str, lat: float, lon: float) -> Optional[SunTimesRecord]:
        rows = await self._fetch_all(
            f"SELECT {SUN_COLUMNS} FROM sunTimes WHERE date = ? AND lat = ? AND lon = ?",
            (date, lat, lon),
        )
        return SunTimesRecord(**rows[0]) if rows else None

    async def _list_sun(self, lat: float, lon: float, date_start: str, date_end: str) -> List[SunTimesRecord]:
        rows = await self._fetch_all(
            f"SELECT {SUN_COLUMNS} FROM sunTimes "
            "WHERE lat = ? AND lon = ? AND date BETWEEN ? AND ? ORDER BY date ASC",
            (lat, lon, date_start, date_end),
        )
        return [SunTimesRecord(**row) for row in rows]

    async def _all_sun(self) -> List[SunTimesRecord]:
        rows = await self._fetch_all(f"SELECT {SUN_COLUMNS} FROM sunTimes ORDER BY date ASC, lat ASC, lon ASC")
        return [SunTimesRecord(**row) for row in rows]

    async def _clear_all(self) -> None:
        await self._db.execute("DELETE FROM sleepSessions")
        await self._db.execute("DELETE FROM sunTimes")
