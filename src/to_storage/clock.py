"""Time sources used to name direct objects."""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Provides the current UTC time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock that returns a set instant until moved.

    Useful for deterministic direct object names.
    """

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, delta: timedelta) -> None:
        self.instant = self.instant + delta
