from datetime import date, datetime, timezone

from sleepsun.core.daylight import Daylight, day_progress, estimate_sun_times
from sleepsun.model.records import SunTimesRecord


def test_day_length_by_latitude():
  equator = Daylight(latitude=0.0, longitude=0.0)
  assert abs(equator.day_length(172) - 12 * 3600) < 60

  london = Daylight(latitude=51.5, longitude=0.0)
  summer, winter = london.day_length(172), london.day_length(355)
  assert summer > 16 * 3600
  assert winter < 8.5 * 3600


def test_polar_day_and_night_are_clamped():
  arctic = Daylight(latitude=80.0, longitude=0.0)
  assert arctic.day_length(172) == 86400
  assert arctic.day_length(355) == 0


def test_solar_noon_tracks_longitude():
  greenwich = Daylight(latitude=0.0, longitude=0.0).solar_noon(date(2024, 3, 21))
  assert abs((greenwich - datetime(2024, 3, 21, 12, tzinfo=timezone.utc)).total_seconds()) < 20 * 60
  east = Daylight(latitude=0.0, longitude=15.0).solar_noon(date(2024, 3, 21))
  assert abs((greenwich - east).total_seconds() - 3600) < 1


def test_estimate_is_flagged_and_ordered():
  rec = estimate_sun_times("2024-06-21", 51.51, -0.13)
  assert rec.estimated
  assert rec.date == "2024-06-21"
  assert rec.sunrise < rec.sunset
  assert "estimated" not in rec.to_dict()


def test_day_progress():
  rec = SunTimesRecord(date="2024-01-01", lat=0, lon=0, sunrise=1000, sunset=2000, daylength=1000)
  assert day_progress(1500, rec) == 0.5
  assert day_progress(500, rec) < 0
  assert day_progress(2500, rec) > 1
  assert day_progress(1500, None) is None
