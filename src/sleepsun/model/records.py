from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.timebase import check_coordinates, round_coordinate, to_iso_date


def _coordinate(v: Any) -> Optional[float]:
  if v is None:
    return None
  r = round_coordinate(v)
  if r is None:
    raise ValueError(f"not a coordinate: {v!r}")
  return r


class SleepSessionRecord(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  id: str
  start: int
  end: int
  lat: Optional[float] = None
  lon: Optional[float] = None
  created_at: int = Field(alias="createdAt")
  updated_at: Optional[int] = Field(default=None, alias="updatedAt")

  @field_validator("lat", "lon", mode="before")
  @classmethod
  def round_coordinates(cls, v: Any) -> Optional[float]:
    return _coordinate(v)

  @model_validator(mode="after")
  def check_record(self):
    if self.end < self.start:
      raise ValueError("end cannot be before start")
    check_coordinates(self.lat, self.lon)
    return self

  @property
  def duration(self) -> int:
    return self.end - self.start

  @property
  def midpoint(self) -> float:
    return (self.start + self.end) / 2

  def to_dict(self) -> dict:
    return self.model_dump(by_alias=True)


class SunTimesRecord(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  date: str
  lat: float
  lon: float
  sunrise: int
  sunset: int
  daylength: Optional[int] = None
  updated_at: Optional[int] = Field(default=None, alias="updatedAt")
  # Offline estimates are never persisted; the marker does not travel either.
  estimated: bool = Field(default=False, exclude=True)

  @field_validator("lat", "lon", mode="before")
  @classmethod
  def round_coordinates(cls, v: Any) -> Optional[float]:
    return _coordinate(v)

  @field_validator("date", mode="before")
  @classmethod
  def normalize_date(cls, v: Any) -> str:
    return to_iso_date(v)

  @model_validator(mode="after")
  def check_record(self):
    check_coordinates(self.lat, self.lon)
    return self

  @property
  def key(self) -> tuple[str, float, float]:
    return (self.date, self.lat, self.lon)

  @property
  def day_length_seconds(self) -> int:
    return self.daylength if self.daylength is not None else self.sunset - self.sunrise

  def to_dict(self) -> dict:
    return self.model_dump(by_alias=True)


class CurrentSession(BaseModel):
  start: int
  lat: Optional[float] = None
  lon: Optional[float] = None

  @field_validator("lat", "lon", mode="before")
  @classmethod
  def round_coordinates(cls, v: Any) -> Optional[float]:
    return _coordinate(v)


class Counters(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  last_session_id: Optional[str] = Field(default=None, alias="lastSessionID")
  session_count: int = Field(default=0, ge=0, alias="sessionCount")
