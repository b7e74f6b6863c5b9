"""Client for the sunrise-sunset.org astronomical API."""

from typing import Any, Dict, Optional
import logging

import aiohttp

from ..core.timebase import parse_timestamp
from ..errors import RemoteSourceError
from ..model.config import SUNRISE_SUNSET_URL

logger = logging.getLogger(__name__)


def parse_payload(data: Any) -> Dict[str, int]:
    """Extract sunrise/sunset/daylength from a formatted=0 response body.

    Raises:
        RemoteSourceError: Status is not "OK" or a timestamp is missing/unparsable
    """
    if not isinstance(data, dict):
        raise RemoteSourceError("response body is not a JSON object")
    status = data.get("status")
    if status != "OK":
        raise RemoteSourceError(f"API returned {status}")
    results = data.get("results")
    if not isinstance(results, dict):
        raise RemoteSourceError("response has no results")

    sunrise = parse_timestamp(results.get("sunrise"))
    sunset = parse_timestamp(results.get("sunset"))
    if not (sunrise.ok and sunset.ok):
        raise RemoteSourceError(f"unparsable sun times: {sunrise.error or sunset.error}")

    day_length = results.get("day_length")
    if isinstance(day_length, (int, float)) and not isinstance(day_length, bool):
        daylength = int(day_length)
    else:
        daylength = sunset.value - sunrise.value
    return {"sunrise": sunrise.value, "sunset": sunset.value, "daylength": daylength}


class SunriseSunsetClient:
    """Fetches sun times for one (date, lat, lon) per request."""

    def __init__(self, url: str = SUNRISE_SUNSET_URL, session: Optional[aiohttp.ClientSession] = None):
        """Initialize client.

        Args:
            url: API endpoint
            session: Shared aiohttp session; one is created lazily otherwise
        """
        self.url = url
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def fetch(self, date: str, lat: float, lon: float) -> Dict[str, int]:
        """GET sun times; network errors propagate as aiohttp/asyncio errors.

        Raises:
            RemoteSourceError: Non-2xx status or a malformed payload
        """
        params = {"lat": str(lat), "lng": str(lon), "date": date, "formatted": "0"}
        session = await self._get_session()
        logger.debug(f"Requesting sun times for {date} at {lat},{lon}")
        async with session.get(self.url, params=params) as resp:
            if not 200 <= resp.status < 300:
                raise RemoteSourceError(f"sunrise-sunset.org error: {resp.status}", status=resp.status)
            try:
                data = await resp.json(content_type=None)
            except ValueError as e:
                raise RemoteSourceError(f"invalid JSON from sunrise-sunset.org: {e}") from e
        return parse_payload(data)

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
