from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterator, NamedTuple, Optional
import math

from ..errors import ValidationError

DAY_SECONDS = 86400

# Numeric inputs at or above this magnitude are epoch milliseconds.
_MS_THRESHOLD = 1e11

# Epoch seconds of 0001-01-01 and 9999-12-31T23:59:59, the datetime range.
MIN_EPOCH = -62135596800
MAX_EPOCH = 253402300799
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ParsedTimestamp(NamedTuple):
  ok: bool
  value: Optional[int]
  error: Optional[str]


def _ok(value: int) -> ParsedTimestamp:
  return ParsedTimestamp(True, value, None)


def _fail(error: str) -> ParsedTimestamp:
  return ParsedTimestamp(False, None, error)


def parse_timestamp(value: Any) -> ParsedTimestamp:
  """
  Parse any accepted timestamp representation into epoch seconds (UTC).

  Accepts epoch seconds or milliseconds, datetime (naive = UTC), date
  (UTC midnight) and ISO-8601 strings. Never raises.
  """
  if value is None:
    return _fail("missing timestamp")
  if isinstance(value, bool):
    return _fail(f"not a timestamp: {value!r}")
  if isinstance(value, (int, float)):
    if isinstance(value, float) and not math.isfinite(value):
      return _fail(f"not a finite timestamp: {value!r}")
    seconds = math.floor(value)
    if abs(value) >= _MS_THRESHOLD:
      seconds //= 1000
    if not MIN_EPOCH <= seconds <= MAX_EPOCH:
      return _fail(f"timestamp out of range: {value!r}")
    return _ok(seconds)
  if isinstance(value, datetime):
    if value.tzinfo is None:
      value = value.replace(tzinfo=timezone.utc)
    return _ok(math.floor(value.timestamp()))
  if isinstance(value, date):
    return _ok(int(datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp()))
  if isinstance(value, str):
    text = value.strip()
    if not text:
      return _fail("empty timestamp")
    try:
      return parse_timestamp(float(text))
    except ValueError:
      pass
    try:
      parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
      return _fail(f"unparsable timestamp: {value!r}")
    return parse_timestamp(parsed)
  return _fail(f"unsupported timestamp type: {type(value).__name__}")


def require_timestamp(value: Any, field: str) -> int:
  parsed = parse_timestamp(value)
  if not parsed.ok:
    raise ValidationError(f"{field}: {parsed.error}")
  return parsed.value


def require_range(range_start: Any, range_end: Any) -> tuple[int, int]:
  start = require_timestamp(range_start, "rangeStart")
  end = require_timestamp(range_end, "rangeEnd")
  if end < start:
    raise ValidationError("rangeEnd cannot be before rangeStart")
  return start, end


def from_epoch(seconds: int) -> datetime:
  return _EPOCH + timedelta(seconds=seconds)


def to_iso_date(value: Any) -> str:
  """ISO calendar date (UTC) of a timestamp or date-like value."""
  if isinstance(value, str):
    try:
      return date.fromisoformat(value.strip()).isoformat()
    except ValueError:
      pass
  if isinstance(value, date) and not isinstance(value, datetime):
    return value.isoformat()
  return from_epoch(require_timestamp(value, "date")).date().isoformat()


def day_floor(seconds: int) -> int:
  return (seconds // DAY_SECONDS) * DAY_SECONDS


def seconds_of_day(seconds: int, utc_offset: int = 0) -> int:
  return (seconds + utc_offset) % DAY_SECONDS


def format_hms(seconds: float) -> str:
  # Hours are not wrapped at 24 so totals stay readable.
  total = int(round(seconds))
  sign = "-" if total < 0 else ""
  total = abs(total)
  return f"{sign}{total // 3600:02d}:{total // 60 % 60:02d}:{total % 60:02d}"


def round_coordinate(value: Any) -> Optional[float]:
  """Round half away from zero to 2 decimals; None for missing or non-numeric."""
  if value is None or isinstance(value, bool):
    return None
  try:
    dec = Decimal(str(value).strip())
  except (InvalidOperation, ValueError):
    return None
  if not dec.is_finite():
    return None
  return float(dec.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def require_coordinates(lat: Any, lon: Any) -> tuple[float, float]:
  rlat, rlon = round_coordinate(lat), round_coordinate(lon)
  if rlat is None or rlon is None:
    raise ValidationError("lat and lon required")
  check_coordinates(rlat, rlon)
  return rlat, rlon


def check_coordinates(lat: Optional[float], lon: Optional[float]) -> None:
  if lat is not None and not -90 <= lat <= 90:
    raise ValidationError(f"latitude out of range: {lat}")
  if lon is not None and not -180 <= lon <= 180:
    raise ValidationError(f"longitude out of range: {lon}")


@dataclass
class Timebase:
  start: date
  end: date

  @classmethod
  def from_range(cls, range_start: Any, range_end: Any) -> "Timebase":
    start, end = require_range(range_start, range_end)
    return cls(from_epoch(start).date(), from_epoch(end).date())

  def days(self) -> Iterator[date]:
    d = self.start
    while d <= self.end:
      yield d
      d += timedelta(days=1)

  def iso_days(self) -> Iterator[str]:
    for d in self.days():
      yield d.isoformat()
