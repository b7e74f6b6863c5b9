from dataclasses import dataclass
from typing import Iterable

import numpy as np

from ..errors import ValidationError
from .timebase import DAY_SECONDS, format_hms


@dataclass
class CircularMean:
  concentration: float
  mean_seconds: float
  mean_time: str

  def to_dict(self) -> dict:
    return {
      "concentration": self.concentration,
      "meanSeconds": self.mean_seconds,
      "meanTime": self.mean_time,
    }


def time_of_day_mean(epoch_seconds: Iterable[int], utc_offset: int = 0) -> CircularMean:
  """
  Vector mean of clock times on the unit circle.

  23:50 and 00:10 average to 00:00; the concentration R is the length of
  the mean resultant vector, 1 for identical times and 0 for times spread
  evenly (or split between opposite points) around the clock.
  """
  secs = np.asarray(list(epoch_seconds), dtype=np.int64)
  if secs.size == 0:
    raise ValidationError("0 records in input")
  theta = 2 * np.pi * (((secs + utc_offset) % DAY_SECONDS) / DAY_SECONDS)
  c = float(np.cos(theta).mean())
  s = float(np.sin(theta).mean())
  r = min(1.0, float(np.hypot(c, s)))
  angle = float(np.arctan2(s, c)) % (2 * np.pi)
  mean_seconds = angle / (2 * np.pi) * DAY_SECONDS
  # Rounding can land exactly on 86400; fold it back to midnight.
  mean_time = format_hms(round(mean_seconds) % DAY_SECONDS)
  return CircularMean(concentration=r, mean_seconds=mean_seconds, mean_time=mean_time)
