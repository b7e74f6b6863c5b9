"""Runtime context for the sleep/sun engine."""

from .clock import Clock
from .pool import run_bounded
from .state import TrackerState

__all__ = [
    "Clock",
    "TrackerState",
    "run_bounded",
]
