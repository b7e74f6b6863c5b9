from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional
import math

from ..model.records import SunTimesRecord
from .timebase import DAY_SECONDS, check_coordinates, require_timestamp, to_iso_date

AXIAL_TILT_RAD = math.radians(23.45)


@dataclass
class Daylight:
  latitude: float
  longitude: float

  def __post_init__(self):
    check_coordinates(self.latitude, self.longitude)

  def declination(self, day_of_year: int) -> float:
    return AXIAL_TILT_RAD * math.sin(2 * math.pi / 365 * (day_of_year - 81))

  def day_length(self, day_of_year: int) -> float:
    """Seconds between sunrise and sunset."""
    phi = math.radians(self.latitude)
    term = -math.tan(phi) * math.tan(self.declination(day_of_year))
    # Clamped for polar day/night, where the sun never crosses the horizon.
    omega = math.acos(max(-1.0, min(1.0, term)))
    return omega / math.pi * DAY_SECONDS

  def equation_of_time(self, day_of_year: int) -> float:
    """Minutes the apparent sun runs ahead of the mean sun."""
    b = 2 * math.pi / 365 * (day_of_year - 81)
    return 9.87 * math.sin(2 * b) - 7.53 * math.cos(b) - 1.5 * math.sin(b)

  def solar_noon(self, d: date) -> datetime:
    doy = d.timetuple().tm_yday
    noon = datetime(d.year, d.month, d.day, 12, 0, tzinfo=timezone.utc)
    return noon - timedelta(minutes=self.longitude * 4 + self.equation_of_time(doy))

  def sunrise_sunset(self, d: date) -> tuple[datetime, datetime]:
    half = timedelta(seconds=self.day_length(d.timetuple().tm_yday) / 2)
    noon = self.solar_noon(d)
    return noon - half, noon + half


def estimate_sun_times(day: Any, lat: float, lon: float) -> SunTimesRecord:
  """Closed-form sunrise/sunset for a date; never touches the network."""
  d = date.fromisoformat(to_iso_date(day))
  model = Daylight(latitude=lat, longitude=lon)
  sunrise, sunset = model.sunrise_sunset(d)
  return SunTimesRecord(
    date=d.isoformat(),
    lat=lat,
    lon=lon,
    sunrise=math.floor(sunrise.timestamp()),
    sunset=math.floor(sunset.timestamp()),
    daylength=math.floor(model.day_length(d.timetuple().tm_yday)),
    estimated=True,
  )


def day_progress(now: Any, record: Optional[SunTimesRecord]) -> Optional[float]:
  """
  Fraction of the daylight period elapsed at `now`.

  Negative before sunrise, above 1 after sunset, None without a record or
  when the sun never rises.
  """
  if record is None:
    return None
  length = record.day_length_seconds
  if length <= 0:
    return None
  return (require_timestamp(now, "now") - record.sunrise) / length
