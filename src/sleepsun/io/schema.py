from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..model.records import SleepSessionRecord, SunTimesRecord

SNAPSHOT_VERSION = "1"


class SnapshotMeta(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  exported_at: int = Field(alias="exportedAt")
  version: str = SNAPSHOT_VERSION
  sleep_count: Optional[int] = Field(default=None, alias="sleepCount")
  sun_count: Optional[int] = Field(default=None, alias="sunCount")
  dataset_hash: Optional[str] = Field(default=None, alias="datasetHash")


class Snapshot(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  meta: SnapshotMeta
  sleep_sessions: List[SleepSessionRecord] = Field(default_factory=list, alias="sleepSessions")
  sun_times: List[SunTimesRecord] = Field(default_factory=list, alias="sunTimes")

  def to_dict(self) -> dict:
    return self.model_dump(by_alias=True)
