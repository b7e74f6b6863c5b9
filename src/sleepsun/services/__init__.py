"""Session tracking, sun-time lookup and statistics services."""

from .remote import SunriseSunsetClient, parse_payload
from .statistics import StatisticsEngine
from .suntimes import SunTimesCache
from .tracker import UNSET, SessionTracker

__all__ = [
    "SessionTracker",
    "StatisticsEngine",
    "SunTimesCache",
    "SunriseSunsetClient",
    "UNSET",
    "parse_payload",
]
