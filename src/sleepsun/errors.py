"""Error kinds raised by the sleep/sun data engine."""

from typing import Optional


class SleepSunError(Exception):
    """Base class for all engine errors."""


class ValidationError(SleepSunError, ValueError):
    """A required timestamp or coordinate is missing, unparsable or out of order."""


class SessionTooShortError(ValidationError):
    """A tracked session is shorter than the configured minimum duration."""

    def __init__(self, duration: int, minimum: int):
        self.duration = duration
        self.minimum = minimum
        super().__init__(
            f"session lasted {duration}s, shorter than the minimum of {minimum}s"
        )


class NotFoundError(SleepSunError, LookupError):
    """No record exists for the given id."""

    def __init__(self, record_id: str, kind: str = "sleep session"):
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class NoActiveSessionError(SleepSunError):
    """stop_tracking was called without a session in progress."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "no current session started")


class RemoteSourceError(SleepSunError):
    """The astronomical API answered with a non-success or malformed payload."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class UninitializedError(SleepSunError, RuntimeError):
    """A store operation was attempted before init()."""

    def __init__(self, store: str):
        super().__init__(f"attempted to access {store} before calling init()")
