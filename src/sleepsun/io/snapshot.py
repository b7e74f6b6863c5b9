import hashlib
import json
import logging
import os
from typing import Any, Dict, Union

import pydantic

from ..errors import ValidationError
from ..runtime.clock import Clock
from ..storage.base import Store
from .schema import Snapshot, SnapshotMeta

logger = logging.getLogger(__name__)


def dataset_hash(snapshot: Snapshot) -> str:
  body = {
    "sleepSessions": [r.to_dict() for r in snapshot.sleep_sessions],
    "sunTimes": [r.to_dict() for r in snapshot.sun_times],
  }
  s = json.dumps(body, sort_keys=True).encode()
  return hashlib.sha256(s).hexdigest()[:16]


def parse_snapshot(data: Union[Snapshot, Dict[str, Any]]) -> Snapshot:
  if isinstance(data, Snapshot):
    return data
  try:
    return Snapshot.model_validate(data)
  except pydantic.ValidationError as e:
    raise ValidationError(f"invalid snapshot: {e}") from e


async def export_snapshot(store: Store, clock: Clock) -> Snapshot:
  """Read every record in one transaction so the two lists are consistent."""
  async def read():
    return await store.get_all_sleep(), await store.get_all_sun()

  sleep, sun = await store.run_transaction(read)
  snapshot = Snapshot(
    meta=SnapshotMeta(exported_at=clock.timestamp(), sleep_count=len(sleep), sun_count=len(sun)),
    sleep_sessions=sleep,
    sun_times=sun,
  )
  snapshot.meta.dataset_hash = dataset_hash(snapshot)
  logger.info(f"Exported {len(sleep)} sleep sessions and {len(sun)} sun times")
  return snapshot


async def import_snapshot(store: Store, data: Union[Snapshot, Dict[str, Any]], clear: bool = False) -> Dict[str, int]:
  """
  Bulk-load a snapshot as a raw mirror, atomically.

  Records are written as-is, without the tracker's bookkeeping; with
  `clear` the existing data is removed first in the same transaction.
  """
  snapshot = parse_snapshot(data)

  async def load():
    if clear:
      await store.clear_all()
    for record in snapshot.sleep_sessions:
      await store.upsert_sleep(record)
    for record in snapshot.sun_times:
      await store.upsert_sun(record)

  await store.run_transaction(load)
  counts = {"sleepSessions": len(snapshot.sleep_sessions), "sunTimes": len(snapshot.sun_times)}
  logger.info(f"Imported {counts['sleepSessions']} sleep sessions and {counts['sunTimes']} sun times (clear={clear})")
  return counts


def write_snapshot(path: str, snapshot: Snapshot):
  os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
  if snapshot.meta.dataset_hash is None:
    snapshot.meta.dataset_hash = dataset_hash(snapshot)
  with open(path, "w", encoding="utf-8") as f:
    json.dump(snapshot.to_dict(), f, indent=2)


def read_snapshot(path: str) -> Snapshot:
  with open(path, "r", encoding="utf-8") as f:
    try:
      data = json.load(f)
    except json.JSONDecodeError as e:
      raise ValidationError(f"{path} is not valid JSON: {e}") from e
  snapshot = parse_snapshot(data)
  expected = snapshot.meta.dataset_hash
  if expected is not None and expected != dataset_hash(snapshot):
    raise ValidationError(f"{path}: dataset hash mismatch")
  return snapshot
