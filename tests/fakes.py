import asyncio
from datetime import datetime, timezone

from sleepsun.errors import RemoteSourceError


class FakeFetcher:
  """Stands in for the remote API: answers 06:00/18:00 UTC for any day."""

  def __init__(self, fail_dates=(), hang=False, error=None):
    self.calls = []
    self.fail_dates = set(fail_dates)
    self.hang = hang
    self.error = error

  async def fetch(self, date, lat, lon):
    self.calls.append((date, lat, lon))
    if self.hang:
      await asyncio.sleep(3600)
    if self.error is not None:
      raise self.error
    if date in self.fail_dates:
      raise RemoteSourceError("API returned INVALID_REQUEST")
    midnight = int(datetime.fromisoformat(date).replace(tzinfo=timezone.utc).timestamp())
    return {"sunrise": midnight + 6 * 3600, "sunset": midnight + 18 * 3600, "daylength": 12 * 3600}
