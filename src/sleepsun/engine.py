"""Coordinator that wires storage, state and services into one engine."""

from typing import Any, Dict, Optional
import logging

from .io.schema import Snapshot
from .io.snapshot import export_snapshot, import_snapshot
from .model.config import EngineConfig
from .runtime import Clock, TrackerState
from .services import SessionTracker, StatisticsEngine, SunriseSunsetClient, SunTimesCache
from .services.suntimes import SunFetcher
from .storage import Store, create_store

logger = logging.getLogger(__name__)


class SleepSunEngine:
    """One independent instance of the sleep/sun data engine."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        store: Optional[Store] = None,
        fetcher: Optional[SunFetcher] = None,
        clock: Optional[Clock] = None,
        state: Optional[TrackerState] = None,
    ):
        """Initialize the engine.

        Args:
            config: Engine configuration (default: EngineConfig())
            store: Storage backend (default: selected by config.backend)
            fetcher: Remote sun-time source (default: sunrise-sunset.org client)
            clock: Wall clock (default: real time)
            state: Tracking state (default: fresh, empty state)
        """
        self.config = config or EngineConfig()
        self.store = store or create_store(self.config.backend, self.config.db_path)
        self.clock = clock or Clock()
        self.state = state or TrackerState()
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or SunriseSunsetClient(url=self.config.api_url)

        self.sessions = SessionTracker(
            self.store,
            self.state,
            self.clock,
            min_session_seconds=self.config.min_session_seconds,
        )
        self.sun_times = SunTimesCache(
            self.store,
            self.fetcher,
            self.clock,
            state=self.state,
            request_timeout=self.config.request_timeout,
            concurrency_limit=self.config.concurrency_limit,
            dispatch_delay=self.config.dispatch_delay,
        )
        self.statistics = StatisticsEngine(
            self.sessions,
            self.sun_times,
            max_height=self.config.graph_max_height,
        )

    async def init(self) -> None:
        """Open the store and bring the session counter in line with it."""
        await self.store.init()
        await self.sessions.resync_counters()
        logger.info(f"Engine ready ({self.config.backend} backend)")

    async def close(self) -> None:
        if self._owns_fetcher and hasattr(self.fetcher, "close"):
            await self.fetcher.close()
        await self.store.close()

    async def __aenter__(self) -> "SleepSunEngine":
        await self.init()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def export_data(self) -> Snapshot:
        return await export_snapshot(self.store, self.clock)

    async def import_data(self, data: Any, clear: bool = False) -> Dict[str, int]:
        counts = await import_snapshot(self.store, data, clear=clear)
        await self.sessions.resync_counters()
        return counts

    async def clear_all(self) -> None:
        await self.store.clear_all()
        await self.sessions.resync_counters()

    def get_api_app(self):
        """FastAPI app serving this engine."""
        from .api.rest import SleepSunRestAPI

        return SleepSunRestAPI(self).get_app()

    async def get_stats(self) -> Dict[str, Any]:
        counters = self.state.counters
        return {
            "backend": self.config.backend,
            "sessions": counters.session_count,
            "last_session_id": counters.last_session_id,
            "tracking": self.state.current_session is not None,
            "current_time": self.clock.now().isoformat(),
        }
