import json

import pytest

from sleepsun.errors import ValidationError
from sleepsun.io.snapshot import dataset_hash, read_snapshot, write_snapshot

JAN1 = 1704067200
DAY = 86400


async def _populate(engine):
  await engine.sessions.create(JAN1, JAN1 + 8 * 3600, lat=1, lon=2, id="s1")
  await engine.sessions.create(JAN1 + DAY, JAN1 + DAY + 7 * 3600, id="s2")
  await engine.sun_times.request_list(JAN1, JAN1 + DAY, 1, 2)


@pytest.mark.asyncio
async def test_export_clear_import_round_trip(engine):
  await _populate(engine)
  snapshot = await engine.export_data()
  assert snapshot.meta.exported_at == engine.clock.timestamp()
  assert (snapshot.meta.sleep_count, snapshot.meta.sun_count) == (2, 2)

  before_sleep = [r.to_dict() for r in await engine.store.get_all_sleep()]
  before_sun = [r.to_dict() for r in await engine.store.get_all_sun()]

  await engine.clear_all()
  assert engine.state.counters.session_count == 0
  assert engine.state.counters.last_session_id is None

  counts = await engine.import_data(snapshot.to_dict())
  assert counts == {"sleepSessions": 2, "sunTimes": 2}
  assert [r.to_dict() for r in await engine.store.get_all_sleep()] == before_sleep
  assert [r.to_dict() for r in await engine.store.get_all_sun()] == before_sun
  assert engine.state.counters.session_count == 2


@pytest.mark.asyncio
async def test_import_with_clear_replaces(engine):
  await _populate(engine)
  snapshot = await engine.export_data()
  await engine.sessions.create(JAN1 + 5 * DAY, JAN1 + 5 * DAY + 3600, id="extra")

  await engine.import_data(snapshot, clear=True)
  ids = [r.id for r in await engine.store.get_all_sleep()]
  assert ids == ["s1", "s2"]
  assert engine.state.counters.session_count == 2
  assert engine.state.counters.last_session_id is None


@pytest.mark.asyncio
async def test_invalid_import_changes_nothing(engine):
  await _populate(engine)
  with pytest.raises(ValidationError):
    await engine.import_data({"meta": {}, "sleepSessions": []}, clear=True)
  assert await engine.store.count_sleep() == 2


@pytest.mark.asyncio
async def test_snapshot_file_round_trip(engine, tmp_path):
  await _populate(engine)
  snapshot = await engine.export_data()
  path = tmp_path / "out" / "snapshot.json"
  write_snapshot(str(path), snapshot)

  loaded = read_snapshot(str(path))
  assert loaded.meta.dataset_hash == dataset_hash(loaded)
  assert loaded.to_dict() == snapshot.to_dict()

  doc = json.loads(path.read_text(encoding="utf-8"))
  assert doc["meta"]["exportedAt"] == snapshot.meta.exported_at
  doc["sleepSessions"][0]["end"] += 60
  path.write_text(json.dumps(doc), encoding="utf-8")
  with pytest.raises(ValidationError, match="hash mismatch"):
    read_snapshot(str(path))


@pytest.mark.asyncio
async def test_clear_all_keeps_tracking_but_drops_last_id(engine):
  await engine.sessions.create(JAN1, JAN1 + 3600, id="gone")
  engine.sessions.start_tracking(lat=1)
  await engine.clear_all()
  assert engine.state.counters.last_session_id is None
  assert engine.state.counters.session_count == 0
  assert engine.sessions.current.lat == 1.0


@pytest.mark.asyncio
async def test_import_keeps_last_id_that_survives(engine):
  await _populate(engine)
  snapshot = await engine.export_data()
  await engine.import_data(snapshot, clear=True)
  assert engine.state.counters.last_session_id == "s2"
