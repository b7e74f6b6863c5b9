import pytest

from sleepsun.core.circular import time_of_day_mean
from sleepsun.errors import ValidationError

DAY = 86400
JAN1 = 1704067200


def _circular_distance(a, b):
  d = abs(a - b) % DAY
  return min(d, DAY - d)


def test_mean_across_midnight():
  m = time_of_day_mean([JAN1 - 600, JAN1 + 600])
  assert _circular_distance(m.mean_seconds, 0) < 5
  assert m.mean_time == "00:00:00"
  assert m.concentration > 0.99


def test_identical_times_full_concentration():
  m = time_of_day_mean([JAN1 + 7 * 3600, JAN1 + DAY + 7 * 3600])
  assert m.mean_time == "07:00:00"
  assert m.concentration == pytest.approx(1.0)


def test_opposite_times_no_concentration():
  m = time_of_day_mean([JAN1, JAN1 + 12 * 3600])
  assert m.concentration < 1e-9


def test_utc_offset_shifts_clock_time():
  m = time_of_day_mean([JAN1 + 22 * 3600], utc_offset=3600)
  assert m.mean_time == "23:00:00"


def test_empty_input():
  with pytest.raises(ValidationError, match="0 records"):
    time_of_day_mean([])
