from datetime import datetime, timezone

import pytest
import pytest_asyncio

from fakes import FakeFetcher
from sleepsun.engine import SleepSunEngine
from sleepsun.model.config import EngineConfig
from sleepsun.runtime import Clock, TrackerState
from sleepsun.storage import MemoryStore, SQLiteStore


@pytest.fixture
def fetcher():
  return FakeFetcher()


@pytest.fixture
def clock():
  return Clock(datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc), frozen=True)


@pytest.fixture
def state():
  return TrackerState()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path):
  s = MemoryStore() if request.param == "memory" else SQLiteStore(str(tmp_path / "sleep.db"))
  await s.init()
  yield s
  await s.close()


@pytest_asyncio.fixture
async def engine(fetcher, clock):
  cfg = EngineConfig(backend="memory", dispatch_delay=0, request_timeout=1.0)
  e = SleepSunEngine(cfg, fetcher=fetcher, clock=clock)
  await e.init()
  yield e
  await e.close()
