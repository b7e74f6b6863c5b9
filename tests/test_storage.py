import pytest

from sleepsun.errors import UninitializedError, ValidationError
from sleepsun.model.records import SleepSessionRecord, SunTimesRecord
from sleepsun.storage import MemoryStore, SQLiteStore, create_store

H = 3600


def _session(id, start, end, **kw):
  return SleepSessionRecord(id=id, start=start, end=end, created_at=0, **kw)


async def _seed(store):
  for rec in (
    _session("a", 0, 8 * H),
    _session("b", 20 * H, 30 * H),
    _session("c", 40 * H, 41 * H, lat=1.234, lon=5.678),
    _session("d", 100 * H, 108 * H),
  ):
    await store.upsert_sleep(rec)


@pytest.mark.asyncio
async def test_sleep_crud(store):
  await store.upsert_sleep(_session("a", 10, 20, lat=1, lon=2))
  got = await store.get_sleep("a")
  assert got.start == 10 and got.lat == 1.0

  await store.upsert_sleep(_session("a", 10, 50))
  assert (await store.get_sleep("a")).end == 50
  assert await store.count_sleep() == 1

  assert await store.delete_sleep("a") is True
  assert await store.delete_sleep("a") is False
  assert await store.get_sleep("a") is None


@pytest.mark.asyncio
async def test_list_overlapping_and_contained(store):
  await _seed(store)
  overlapping = await store.list_sleep(7 * H, 40 * H)
  assert [r.id for r in overlapping] == ["a", "b", "c"]
  contained = await store.list_sleep(7 * H, 40 * H, match="contained")
  assert [r.id for r in contained] == ["b"]
  with pytest.raises(ValidationError):
    await store.list_sleep(0, 1, match="sideways")


@pytest.mark.asyncio
async def test_backends_agree(tmp_path):
  mem, sql = MemoryStore(), SQLiteStore(str(tmp_path / "agree.db"))
  for s in (mem, sql):
    await s.init()
    await _seed(s)
  try:
    for lo, hi in ((0, 200 * H), (8 * H, 20 * H), (50 * H, 60 * H)):
      for match in ("overlapping", "contained"):
        a = await mem.list_sleep(lo, hi, match)
        b = await sql.list_sleep(lo, hi, match)
        assert [r.to_dict() for r in a] == [r.to_dict() for r in b]
  finally:
    await mem.close()
    await sql.close()


@pytest.mark.asyncio
async def test_sun_times_by_composite_key(store):
  for day in ("2024-01-03", "2024-01-01", "2024-01-02"):
    await store.upsert_sun(SunTimesRecord(date=day, lat=1, lon=2, sunrise=1, sunset=2))
  await store.upsert_sun(SunTimesRecord(date="2024-01-02", lat=3, lon=4, sunrise=1, sunset=2))

  assert (await store.get_sun("2024-01-02", 3.0, 4.0)).lat == 3.0
  assert await store.get_sun("2024-01-02", 9.0, 9.0) is None
  listed = await store.list_sun(1.0, 2.0, "2024-01-01", "2024-01-02")
  assert [r.date for r in listed] == ["2024-01-01", "2024-01-02"]
  assert len(await store.get_all_sun()) == 4


@pytest.mark.asyncio
async def test_transaction_rolls_back(store):
  await store.upsert_sleep(_session("keep", 0, 10))

  async def fail():
    await store.upsert_sleep(_session("new", 0, 10))
    await store.delete_sleep("keep")
    raise RuntimeError("boom")

  with pytest.raises(RuntimeError):
    await store.run_transaction(fail)
  assert await store.get_sleep("keep") is not None
  assert await store.get_sleep("new") is None


@pytest.mark.asyncio
async def test_nested_transaction_joins_outer(store):
  async def inner():
    await store.upsert_sleep(_session("inner", 0, 10))
    return "inner"

  async def outer():
    result = await store.run_transaction(inner)
    raise RuntimeError(result)

  with pytest.raises(RuntimeError, match="inner"):
    await store.run_transaction(outer)
  assert await store.get_sleep("inner") is None


@pytest.mark.asyncio
async def test_clear_all(store):
  await _seed(store)
  await store.upsert_sun(SunTimesRecord(date="2024-01-01", lat=1, lon=2, sunrise=1, sunset=2))
  await store.clear_all()
  assert await store.count_sleep() == 0
  assert await store.get_all_sun() == []


@pytest.mark.asyncio
async def test_uninitialized_store_fails_closed(tmp_path):
  for s in (create_store("memory"), create_store("sqlite", str(tmp_path / "x.db"))):
    with pytest.raises(UninitializedError):
      await s.get_sleep("a")
    with pytest.raises(UninitializedError):
      await s.run_transaction(s.get_all_sun)
