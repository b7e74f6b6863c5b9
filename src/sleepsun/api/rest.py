"""REST API exposing the sleep/sun engine."""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Union
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import logging

from ..errors import (
    NoActiveSessionError,
    NotFoundError,
    RemoteSourceError,
    SleepSunError,
    UninitializedError,
    ValidationError,
)
from ..services import UNSET

logger = logging.getLogger(__name__)

Timestamp = Union[int, float, str]


# Pydantic models for request validation
class SessionCreateData(BaseModel):
    """New sleep session."""
    start: Timestamp
    end: Timestamp
    lat: Optional[float] = None
    lon: Optional[float] = None
    id: Optional[str] = None


class SessionUpdateData(BaseModel):
    """Partial session update; explicit nulls clear lat/lon."""
    start: Optional[Timestamp] = None
    end: Optional[Timestamp] = None
    lat: Optional[float] = None
    lon: Optional[float] = None


class LocationData(BaseModel):
    """Optional coordinates for live tracking."""
    lat: Optional[float] = None
    lon: Optional[float] = None


class StatsQuery(BaseModel):
    """Statistics input: explicit records or a stored range."""
    records: Optional[List[Dict[str, Any]]] = None
    rangeStart: Optional[Timestamp] = None
    rangeEnd: Optional[Timestamp] = None
    utcOffset: int = 0
    maxHeight: Optional[float] = None
    width: float = 1000.0
    lat: Optional[float] = None
    lon: Optional[float] = None


# Error kinds mapped to HTTP status codes, most specific first
ERROR_STATUS = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (NoActiveSessionError, 409),
    (RemoteSourceError, 502),
    (UninitializedError, 503),
]


def status_for(error: SleepSunError) -> int:
    for kind, status in ERROR_STATUS:
        if isinstance(error, kind):
            return status
    return 500


class SleepSunRestAPI:
    """JSON API over sessions, tracking, sun times, statistics and snapshots."""

    def __init__(self, engine):
        """Initialize REST API.

        Args:
            engine: SleepSunEngine instance; opened and closed with the app lifespan
        """
        self.engine = engine

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await self.engine.init()
            try:
                yield
            finally:
                await self.engine.close()

        self.app = FastAPI(
            title="Sleep Sun API",
            description="Sleep session tracking with sunrise/sunset context",
            version="0.1.0",
            lifespan=lifespan,
        )

        self._setup_error_handlers()
        self._setup_routes()

    def _setup_error_handlers(self) -> None:
        @self.app.exception_handler(SleepSunError)
        async def engine_error(request: Request, exc: SleepSunError):
            status = status_for(exc)
            if status >= 500:
                logger.error(f"{request.method} {request.url.path} failed: {exc}")
            else:
                logger.debug(f"{request.method} {request.url.path} rejected: {exc}")
            return JSONResponse(status_code=status, content={"error": type(exc).__name__, "message": str(exc)})

        @self.app.exception_handler(RequestValidationError)
        async def request_error(request: Request, exc: RequestValidationError):
            return JSONResponse(
                status_code=400,
                content={"error": "ValidationError", "message": "invalid request", "detail": jsonable_encoder(exc.errors())},
            )

    def _setup_routes(self) -> None:
        """Setup all API routes."""
        engine = self.engine

        @self.app.get("/health")
        async def health():
            stats = await engine.get_stats()
            return {"status": "healthy", **stats}

        # sessions

        @self.app.post("/api/sessions", status_code=201)
        async def create_session(data: SessionCreateData):
            record = await engine.sessions.create(**data.model_dump())
            return record.to_dict()

        @self.app.get("/api/sessions")
        async def list_sessions(rangeStart: str, rangeEnd: str, match: str = "overlapping"):
            records = await engine.sessions.list(rangeStart, rangeEnd, match)
            return [r.to_dict() for r in records]

        @self.app.get("/api/sessions/{record_id}")
        async def get_session(record_id: str):
            return (await engine.sessions.get(record_id)).to_dict()

        @self.app.patch("/api/sessions/{record_id}")
        async def update_session(record_id: str, data: SessionUpdateData):
            fields = {name: getattr(data, name, UNSET) for name in data.model_fields_set}
            record = await engine.sessions.update(record_id, **fields)
            return record.to_dict()

        @self.app.delete("/api/sessions/{record_id}")
        async def delete_session(record_id: str):
            deleted = await engine.sessions.delete(record_id)
            return {"id": record_id, "deleted": deleted}

        # live tracking

        @self.app.get("/api/tracking")
        async def tracking_status():
            current = engine.sessions.current
            return {"tracking": current is not None, "session": current.model_dump() if current else None}

        @self.app.post("/api/tracking/start")
        async def start_tracking(data: Optional[LocationData] = None):
            data = data or LocationData()
            return engine.sessions.start_tracking(data.lat, data.lon).model_dump()

        @self.app.post("/api/tracking/stop")
        async def stop_tracking(data: Optional[LocationData] = None):
            data = data or LocationData()
            record = await engine.sessions.stop_tracking(data.lat, data.lon)
            return record.to_dict()

        @self.app.post("/api/tracking/cancel")
        async def cancel_tracking():
            cancelled = engine.sessions.cancel_tracking()
            return {"cancelled": cancelled.model_dump() if cancelled else None}

        # sun times

        @self.app.get("/api/sun")
        async def sun_times(date: str, lat: float, lon: float):
            record = await engine.sun_times.request(date, lat, lon)
            return {**record.to_dict(), "estimated": record.estimated}

        @self.app.get("/api/sun/range")
        async def sun_times_range(rangeStart: str, rangeEnd: str, lat: float, lon: float):
            records = await engine.sun_times.request_list(rangeStart, rangeEnd, lat, lon)
            return [{**r.to_dict(), "estimated": r.estimated} for r in records]

        @self.app.get("/api/sun/progress")
        async def sun_progress(lat: float, lon: float):
            return {"progress": await engine.sun_times.progress(lat, lon)}

        # statistics

        @self.app.post("/api/stats/averages")
        async def averages(query: StatsQuery):
            result = await engine.statistics.get_averages(
                query.records, query.rangeStart, query.rangeEnd, utc_offset=query.utcOffset,
            )
            return result.to_dict()

        @self.app.post("/api/stats/graph")
        async def graph(query: StatsQuery):
            buckets = await engine.statistics.get_graph(
                query.records, query.rangeStart, query.rangeEnd,
                max_height=query.maxHeight, utc_offset=query.utcOffset,
            )
            return {day: bucket.to_dict() for day, bucket in buckets.items()}

        @self.app.get("/api/stats/intervals")
        async def intervals(
            rangeStart: str,
            rangeEnd: str,
            split: int = 86400,
            offset: int = 0,
            lat: Optional[float] = None,
            lon: Optional[float] = None,
        ):
            buckets = await engine.statistics.get_split_intervals(
                rangeStart, rangeEnd, split=split, offset=offset, lat=lat, lon=lon,
            )
            return [b.to_dict() for b in buckets]

        @self.app.post("/api/stats/lifeline")
        async def lifeline(query: StatsQuery):
            layout = await engine.statistics.get_lifeline(
                query.records, query.rangeStart, query.rangeEnd,
                width=query.width, lat=query.lat, lon=query.lon,
            )
            return layout.to_dict()

        # snapshots

        @self.app.get("/api/export")
        async def export():
            return (await engine.export_data()).to_dict()

        @self.app.post("/api/import")
        async def import_(data: Dict[str, Any], clear: bool = False):
            return await engine.import_data(data, clear=clear)

    def get_app(self) -> FastAPI:
        """Get FastAPI application."""
        return self.app
