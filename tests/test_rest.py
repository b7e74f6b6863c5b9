from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from fakes import FakeFetcher
from sleepsun.engine import SleepSunEngine
from sleepsun.model.config import EngineConfig
from sleepsun.runtime import Clock

JAN1 = 1704067200


@pytest.fixture
def api():
  clock = Clock(datetime(2024, 1, 2, 12, tzinfo=timezone.utc), frozen=True)
  engine = SleepSunEngine(EngineConfig(backend="memory", dispatch_delay=0), fetcher=FakeFetcher(), clock=clock)
  with TestClient(engine.get_api_app()) as client:
    yield client, engine


def test_health(api):
  client, _ = api
  r = client.get("/health")
  assert r.status_code == 200
  assert r.json()["status"] == "healthy"
  assert r.json()["backend"] == "memory"


def test_session_lifecycle(api):
  client, _ = api
  r = client.post("/api/sessions", json={"start": "2024-01-01T23:00:00Z", "end": JAN1 + 31 * 3600, "lat": 51.5074})
  assert r.status_code == 201
  rec = r.json()
  assert rec["lat"] == 51.51
  assert rec["createdAt"] == JAN1 + 36 * 3600

  assert client.get(f"/api/sessions/{rec['id']}").json() == rec
  listed = client.get("/api/sessions", params={"rangeStart": JAN1, "rangeEnd": JAN1 + 86400}).json()
  assert [s["id"] for s in listed] == [rec["id"]]

  r = client.patch(f"/api/sessions/{rec['id']}", json={"lat": None})
  assert r.status_code == 200
  assert r.json()["lat"] is None

  r = client.delete(f"/api/sessions/{rec['id']}")
  assert r.status_code == 200
  assert r.json() == {"id": rec["id"], "deleted": True}
  r = client.delete(f"/api/sessions/{rec['id']}")
  assert r.status_code == 200
  assert r.json()["deleted"] is False
  assert client.get(f"/api/sessions/{rec['id']}").status_code == 404


def test_errors_map_to_status_codes(api):
  client, _ = api
  r = client.post("/api/sessions", json={"start": JAN1 + 10, "end": JAN1})
  assert r.status_code == 400
  assert r.json()["error"] == "ValidationError"
  assert client.post("/api/sessions", json={"end": JAN1}).status_code == 400
  assert client.post("/api/tracking/stop").status_code == 409
  r = client.get("/api/sessions", params={"rangeStart": JAN1 + 1, "rangeEnd": JAN1})
  assert r.status_code == 400


def test_tracking(api):
  client, engine = api
  assert client.get("/api/tracking").json()["tracking"] is False
  client.post("/api/tracking/start", json={"lat": 1, "lon": 2})
  assert client.get("/api/tracking").json()["session"]["lat"] == 1.0

  engine.clock.advance(timedelta(minutes=1))
  r = client.post("/api/tracking/stop")
  assert r.status_code == 400
  assert "minimum" in r.json()["message"]

  engine.clock.advance(timedelta(hours=7))
  r = client.post("/api/tracking/stop")
  assert r.status_code == 200
  assert r.json()["end"] - r.json()["start"] == 7 * 3600 + 60


def test_sun_and_stats(api):
  client, _ = api
  r = client.get("/api/sun", params={"date": "2024-01-01", "lat": 1, "lon": 2})
  assert r.json()["estimated"] is False
  assert r.json()["daylength"] == 12 * 3600
  days = client.get("/api/sun/range", params={"rangeStart": JAN1, "rangeEnd": JAN1 + 86400, "lat": 1, "lon": 2}).json()
  assert [d["date"] for d in days] == ["2024-01-01", "2024-01-02"]
  assert client.get("/api/sun/progress", params={"lat": 1, "lon": 2}).json()["progress"] == pytest.approx(0.5)

  records = [
    {"start": "2024-01-01T23:00:00Z", "end": "2024-01-02T07:00:00Z"},
    {"start": "2024-01-02T23:30:00Z", "end": "2024-01-03T06:30:00Z"},
  ]
  graph = client.post("/api/stats/graph", json={"records": records}).json()
  assert graph["2024-01-02"]["height"] == 100
  assert graph["2024-01-03"]["height"] == pytest.approx(87.5)
  avg = client.post("/api/stats/averages", json={"records": records}).json()
  assert avg["duration"]["meanTime"] == "07:30:00"
  assert client.post("/api/stats/averages", json={"records": []}).status_code == 400
  lifeline = client.post("/api/stats/lifeline", json={"records": records}).json()
  assert len(lifeline["entries"]) == 2
  intervals = client.get("/api/stats/intervals", params={"rangeStart": JAN1, "rangeEnd": JAN1 + 86400 - 1}).json()
  assert len(intervals) == 1


def test_export_import(api):
  client, _ = api
  client.post("/api/sessions", json={"start": JAN1, "end": JAN1 + 3600, "id": "one"})
  doc = client.get("/api/export").json()
  assert doc["meta"]["sleepCount"] == 1

  client.delete("/api/sessions/one")
  r = client.post("/api/import", params={"clear": "true"}, json=doc)
  assert r.json() == {"sleepSessions": 1, "sunTimes": 0}
  assert client.get("/api/sessions/one").status_code == 200
  assert client.get("/health").json()["sessions"] == 1
