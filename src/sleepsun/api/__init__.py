"""HTTP surface for the sleep/sun engine."""

from .rest import SleepSunRestAPI

__all__ = [
    "SleepSunRestAPI",
]
